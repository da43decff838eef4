"""
Appointment time composition and the scheduled-queue projection
"""
import re
from datetime import date, datetime, time, timezone
from typing import Iterable, List, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from leadflow.database.models.enums import SCHEDULED_STATUSES

_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

DateInput = Union[str, date, datetime]


def calendar_date_string(value: DateInput) -> str:
    """
    Reduce a date input to its plain ``YYYY-MM-DD`` calendar date.

    A datetime contributes the calendar date it carries in its own offset; it is
    never converted to UTC first, which would move late-evening dates to the
    next day (or early-morning ones to the previous day).
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        candidate = value.strip()
        # Accept full ISO timestamps by keeping only their date part
        if "T" in candidate:
            candidate = candidate.split("T", 1)[0]
        if not _DATE_RE.match(candidate):
            raise ValueError(f"Invalid appointment date: {value!r} (expected YYYY-MM-DD)")
        date.fromisoformat(candidate)
        return candidate
    raise ValueError(f"Unsupported appointment date type: {type(value).__name__}")


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a time"""
    match = _TIME_RE.match((value or "").strip())
    if not match:
        raise ValueError(f"Invalid appointment time: {value!r} (expected HH:MM)")
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise ValueError(f"Invalid appointment time: {value!r}")
    return time(hour, minute, second)


def get_zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {tz_name!r}") from e


def compose_appointment_time(appointment_date: DateInput, appointment_time: str, tz_name: str) -> datetime:
    """
    Combine a calendar date and a time of day into one aware timestamp.

    The date is first reduced to a plain ``YYYY-MM-DD`` string, then the time
    of day is anchored to that calendar date in ``tz_name``. The result's
    calendar date and hour in ``tz_name`` are exactly the ones supplied.

    A wall time repeated when clocks fall back resolves to its first
    occurrence (``fold=0``, still on daylight time).

    Raises:
        ValueError: If the date, time or timezone is malformed, or the wall
            time is skipped when clocks spring forward
    """
    day = date.fromisoformat(calendar_date_string(appointment_date))
    time_of_day = parse_time_of_day(appointment_time)
    zone = get_zone(tz_name)
    result = datetime.combine(day, time_of_day, tzinfo=zone)

    round_trip = result.astimezone(timezone.utc).astimezone(zone)
    if round_trip.replace(tzinfo=None) != result.replace(tzinfo=None):
        raise ValueError(
            f"Appointment time {time_of_day.strftime('%H:%M')} does not exist on {day.isoformat()} in {tz_name}"
        )
    return result


def as_utc(value: datetime) -> datetime:
    """Aware values convert to UTC; naive values are taken to be UTC already"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_window(day: DateInput, tz_name: str):
    """Half-open [start, end) covering one calendar day in ``tz_name``"""
    start = compose_appointment_time(day, "00:00", tz_name)
    next_day = date.fromordinal(start.date().toordinal() + 1)
    end = compose_appointment_time(next_day, "00:00", tz_name)
    return start, end


def has_missing_appointment(lead) -> bool:
    """Data-quality check: scheduled-family status without an appointment time"""
    return lead.status in SCHEDULED_STATUSES and lead.scheduled_appointment_time is None


def filter_scheduled_queue(leads: Iterable, start: datetime, end: datetime) -> List:
    """
    Leads with a pending future appointment in [start, end), earliest first.

    Leads missing their appointment time are excluded.
    """
    window_start, window_end = as_utc(start), as_utc(end)
    selected = [
        lead for lead in leads
        if lead.status in SCHEDULED_STATUSES
        and lead.scheduled_appointment_time is not None
        and window_start <= as_utc(lead.scheduled_appointment_time) < window_end
    ]
    return sorted(selected, key=lambda lead: as_utc(lead.scheduled_appointment_time))
