from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import actor_for, make_lead, make_user
from leadflow.database.models.database import Activity, AppointmentReminder, Closer, Lead
from leadflow.database.models.enums import ActivityType, DispatchType, LeadStatus
from leadflow.schemas.leads import LeadCreate
from leadflow.services.lead_service import LeadService
from leadflow.services.reminder_service import ReminderService
from leadflow.utils.exceptions import (
    ConflictError,
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)

NOW = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)
LA = ZoneInfo("America/Los_Angeles")


def service(db):
    return LeadService(db, clock=lambda: NOW)


def activity_types(db, lead_id):
    return [a.type for a in db.query(Activity).filter(Activity.lead_id == lead_id).order_by(Activity.created_at)]


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------

def test_create_immediate_lead_goes_to_front_of_lineup(db, staff):
    svc = service(db)
    lead = svc.create_lead(
        LeadCreate(customer_name="Ann", customer_phone="555-1", address="2 Oak St"),
        actor_for(staff["setter"]),
    )

    assert lead.status == LeadStatus.WAITING_ASSIGNMENT.value
    assert lead.team_id == "team-north"
    assert lead.setter_id == "setter-1"
    assert lead.assigned_closer_id == "closer-1"
    assert sorted(activity_types(db, lead.id)) == sorted([ActivityType.LEAD_CREATED.value, ActivityType.LEAD_ASSIGNED.value])
    assert [n.user_ids for n in svc.outbox] == [["closer-1"]]


def test_create_scheduled_lead_composes_local_appointment(db, staff):
    lead = service(db).create_lead(
        LeadCreate(
            customer_name="Ann",
            customer_phone="555-1",
            address="2 Oak St",
            dispatch_type=DispatchType.SCHEDULED,
            appointment_date="2025-07-10",
            appointment_time="21:00",
        ),
        actor_for(staff["setter"]),
    )

    assert lead.status == LeadStatus.SCHEDULED.value
    assert lead.setter_verified is False
    assert lead.assigned_closer_id is None
    local = lead.scheduled_appointment_time.astimezone(LA)
    assert (local.month, local.day, local.hour) == (7, 10, 21)


def test_create_scheduled_lead_requires_future_date_and_time(db, staff):
    svc = service(db)
    setter = actor_for(staff["setter"])
    base = dict(customer_name="Ann", customer_phone="555-1", address="2 Oak St", dispatch_type=DispatchType.SCHEDULED)

    with pytest.raises(InvalidArgumentError):
        svc.create_lead(LeadCreate(**base), setter)
    with pytest.raises(InvalidArgumentError):
        svc.create_lead(LeadCreate(**base, appointment_date="2025-06-01", appointment_time="10:00"), setter)
    with pytest.raises(InvalidArgumentError):
        svc.create_lead(LeadCreate(**base, appointment_date="not-a-date", appointment_time="10:00"), setter)


def test_create_rejects_blank_fields_and_wrong_roles(db, staff):
    svc = service(db)
    with pytest.raises(InvalidArgumentError):
        svc.create_lead(LeadCreate(customer_name="   ", customer_phone="555", address="x"), actor_for(staff["setter"]))
    with pytest.raises(PermissionDeniedError):
        svc.create_lead(LeadCreate(customer_name="A", customer_phone="555", address="x"), actor_for(staff["closer"]))
    with pytest.raises(PermissionDeniedError):
        svc.create_lead(
            LeadCreate(customer_name="A", customer_phone="555", address="x", team_id="team-south"),
            actor_for(staff["setter"]),
        )


# ---------------------------------------------------------------------------
# accept
# ---------------------------------------------------------------------------

def test_concurrent_accepts_have_exactly_one_winner(db, staff, session_factory):
    lead_id = make_lead(db, "team-north").id
    first_db, second_db = session_factory(), session_factory()

    # Both closers load the lead while it is still waiting
    first_lead = first_db.get(Lead, lead_id)
    second_lead = second_db.get(Lead, lead_id)
    assert first_lead.status == second_lead.status == LeadStatus.WAITING_ASSIGNMENT.value

    winner = service(first_db).accept_lead(first_lead, actor_for(staff["closer"]))
    assert winner.status == LeadStatus.ACCEPTED.value

    with pytest.raises(ConflictError):
        service(second_db).accept_lead(second_lead, actor_for(staff["closer2"]))

    db.expire_all()
    stored = db.get(Lead, lead_id)
    assert stored.status == LeadStatus.ACCEPTED.value
    assert stored.assigned_closer_id == "closer-1"
    assert activity_types(db, lead_id) == [ActivityType.JOB_ACCEPTED.value]


def test_stale_reschedule_cannot_reopen_completed_lead(db, staff, session_factory):
    lead_id = make_lead(
        db, "team-north",
        status=LeadStatus.ACCEPTED.value,
        assigned_closer_id="closer-1",
        accepted_at=NOW,
    ).id
    first_db, second_db = session_factory(), session_factory()
    first_lead = first_db.get(Lead, lead_id)
    second_lead = second_db.get(Lead, lead_id)

    service(first_db).complete_lead(first_lead, "Sold", [], actor_for(staff["closer"]))

    with pytest.raises(ConflictError):
        service(second_db).schedule_lead(second_lead, "2025-07-10", "10:00", actor_for(staff["manager"]))

    db.expire_all()
    assert db.get(Lead, lead_id).status == LeadStatus.COMPLETED.value
    assert db.query(AppointmentReminder).count() == 0


def test_stale_verify_does_not_touch_accepted_lead(db, staff, session_factory):
    lead_id = make_lead(
        db, "team-north",
        status=LeadStatus.SCHEDULED.value,
        scheduled_appointment_time=NOW + timedelta(days=2),
        assigned_closer_id="closer-1",
        setter_verified=True,
    ).id
    first_db, second_db = session_factory(), session_factory()
    first_lead = first_db.get(Lead, lead_id)
    second_lead = second_db.get(Lead, lead_id)

    service(first_db).accept_lead(first_lead, actor_for(staff["closer"]))

    with pytest.raises(ConflictError):
        service(second_db).verify_lead(second_lead, False, actor_for(staff["manager"]))

    db.expire_all()
    stored = db.get(Lead, lead_id)
    assert stored.status == LeadStatus.ACCEPTED.value
    assert stored.setter_verified is True


def test_accept_records_assignee_and_notifies_setter(db, staff):
    lead = make_lead(db, "team-north")
    svc = service(db)
    lead = svc.accept_lead(lead, actor_for(staff["closer"]))

    assert lead.assigned_closer_id == "closer-1"
    assert lead.accepted_by == "closer-1"
    assert lead.accepted_at == NOW
    assert svc.outbox[0].user_ids == ["setter-1"]
    assert svc.outbox[0].data["type"] == "job_accepted"


def test_manager_accepts_on_behalf_of_closer(db, staff):
    lead = make_lead(db, "team-north")
    lead = service(db).accept_lead(lead, actor_for(staff["manager"]), on_behalf_of="closer-2")

    assert lead.assigned_closer_id == "closer-2"
    assert lead.accepted_by == "manager-1"
    entry = db.query(Activity).filter(Activity.lead_id == lead.id).one()
    assert entry.actor_id == "manager-1"
    assert entry.closer_id == "closer-2"
    assert entry.on_behalf_of == "closer-2"


def test_on_behalf_of_must_be_a_closer_of_the_lead_team(db, staff):
    lead = make_lead(db, "team-north")
    svc = service(db)
    with pytest.raises(InvalidArgumentError):
        svc.accept_lead(lead, actor_for(staff["manager"]), on_behalf_of="manager-2")
    with pytest.raises(InvalidArgumentError):
        svc.accept_lead(lead, actor_for(staff["manager"]), on_behalf_of="setter-1")
    with pytest.raises(NotFoundError):
        svc.accept_lead(lead, actor_for(staff["manager"]), on_behalf_of="nobody")
    with pytest.raises(PermissionDeniedError):
        svc.accept_lead(lead, actor_for(staff["closer"]), on_behalf_of="closer-2")


def test_accept_rules_by_state(db, staff):
    svc = service(db)
    closer = actor_for(staff["closer"])

    taken = make_lead(db, "team-north", assigned_closer_id="closer-2")
    with pytest.raises(PermissionDeniedError):
        svc.accept_lead(taken, closer)

    done = make_lead(db, "team-north", status=LeadStatus.COMPLETED.value, assigned_closer_id="closer-1")
    with pytest.raises(ConflictError):
        svc.accept_lead(done, closer)

    other_team = make_lead(db, "team-south")
    with pytest.raises(PermissionDeniedError):
        svc.accept_lead(other_team, actor_for(staff["manager"]))


def test_prebooked_job_needs_setter_verification(db, staff):
    when = datetime(2025, 7, 10, 17, 0, tzinfo=timezone.utc)
    lead = make_lead(db, "team-north", status=LeadStatus.SCHEDULED.value, scheduled_appointment_time=when)
    svc = service(db)

    with pytest.raises(FailedPreconditionError):
        svc.accept_lead(lead, actor_for(staff["closer"]))

    svc.verify_lead(lead, True, actor_for(staff["setter"]))
    lead = svc.accept_lead(lead, actor_for(staff["closer"]))
    assert lead.status == LeadStatus.ACCEPTED.value


# ---------------------------------------------------------------------------
# schedule / complete / verify
# ---------------------------------------------------------------------------

def test_first_booking_is_scheduled(db, staff):
    lead = make_lead(db, "team-north")
    lead = service(db).schedule_lead(lead, "2025-07-10", "09:30", actor_for(staff["manager"]))

    assert lead.status == LeadStatus.SCHEDULED.value
    local = lead.scheduled_appointment_time.astimezone(LA)
    assert (local.day, local.hour, local.minute) == (10, 9, 30)


def test_reschedule_out_of_active_job_moves_closer_to_front(db, staff):
    lead = make_lead(
        db, "team-north",
        status=LeadStatus.ACCEPTED.value,
        assigned_closer_id="closer-1",
        assigned_closer_name="Closer 1",
        accepted_at=NOW,
    )
    lead = service(db).schedule_lead(lead, "2025-07-10", "10:00", actor_for(staff["closer"]))

    assert lead.status == LeadStatus.RESCHEDULED.value
    assert db.get(Closer, "closer-1").lineup_order == 0
    assert ActivityType.ROUND_ROBIN_EXCEPTION.value in activity_types(db, lead.id)

    reminder = db.query(AppointmentReminder).filter(AppointmentReminder.lead_id == lead.id).one()
    assert reminder.assigned_closer_id == "closer-1"
    assert reminder.appointment_time - reminder.reminder_time == timedelta(minutes=30)


def test_schedule_rejects_past_and_malformed_times(db, staff):
    lead = make_lead(db, "team-north", status=LeadStatus.ACCEPTED.value, assigned_closer_id="closer-1")
    svc = service(db)
    with pytest.raises(InvalidArgumentError):
        svc.schedule_lead(lead, "2025-06-30", "10:00", actor_for(staff["closer"]))
    with pytest.raises(InvalidArgumentError):
        svc.schedule_lead(lead, "2025-07-10", "25:00", actor_for(staff["closer"]))
    with pytest.raises(PermissionDeniedError):
        svc.schedule_lead(lead, "2025-07-10", "10:00", actor_for(staff["closer2"]))


def test_complete_moves_closer_to_back(db, staff):
    lead = make_lead(db, "team-north", status=LeadStatus.ACCEPTED.value, assigned_closer_id="closer-1")
    svc = service(db)
    lead = svc.complete_lead(lead, "Signed contract", ["https://files.example.com/a.jpg"], actor_for(staff["closer"]))

    assert lead.status == LeadStatus.COMPLETED.value
    assert lead.disposition_notes == "Signed contract"
    assert lead.photo_urls == ["https://files.example.com/a.jpg"]
    assert lead.completed_at == NOW
    # Manager and admin entries sit at 999, the highest order in the team
    assert db.get(Closer, "closer-1").lineup_order == 1999
    assert svc.outbox[0].user_ids == ["setter-1"]


def test_complete_requires_active_job(db, staff):
    lead = make_lead(db, "team-north", assigned_closer_id="closer-1")
    with pytest.raises(FailedPreconditionError):
        service(db).complete_lead(lead, "", [], actor_for(staff["closer"]))


def test_legacy_in_process_counts_as_active_job(db, staff):
    lead = make_lead(db, "team-north", status=LeadStatus.IN_PROCESS.value, assigned_closer_id="closer-1")
    lead = service(db).complete_lead(lead, "done", [], actor_for(staff["manager"]))
    assert lead.status == LeadStatus.COMPLETED.value


def test_verify_toggles_flag_without_changing_status(db, staff):
    when = datetime(2025, 7, 10, 17, 0, tzinfo=timezone.utc)
    lead = make_lead(db, "team-north", status=LeadStatus.SCHEDULED.value, scheduled_appointment_time=when)
    svc = service(db)

    with pytest.raises(PermissionDeniedError):
        svc.verify_lead(lead, True, actor_for(staff["closer"]))

    lead = svc.verify_lead(lead, True, actor_for(staff["setter"]))
    assert lead.setter_verified is True
    assert lead.verified_by == "setter-1"
    assert lead.status == LeadStatus.SCHEDULED.value

    lead = svc.verify_lead(lead, False, actor_for(staff["manager"]))
    assert lead.setter_verified is False
    assert lead.verified_at is None


# ---------------------------------------------------------------------------
# assign
# ---------------------------------------------------------------------------

def test_manual_assignment(db, staff):
    svc = service(db)
    manager = actor_for(staff["manager"])
    lead = make_lead(db, "team-north")

    lead = svc.assign_lead(lead, manager, closer_id="closer-2")
    assert lead.assigned_closer_id == "closer-2"
    assert lead.status == LeadStatus.WAITING_ASSIGNMENT.value

    with pytest.raises(PermissionDeniedError):
        svc.assign_lead(lead, actor_for(staff["closer"]), closer_id="closer-1")
    with pytest.raises(FailedPreconditionError):
        svc.assign_lead(lead, manager, closer_id="manager-1")


def test_assignment_rules(db, staff):
    svc = service(db)
    manager = actor_for(staff["manager"])
    when = datetime(2025, 7, 10, 17, 0, tzinfo=timezone.utc)

    unverified = make_lead(db, "team-north", status=LeadStatus.SCHEDULED.value, scheduled_appointment_time=when)
    with pytest.raises(FailedPreconditionError):
        svc.assign_lead(unverified, manager)

    make_lead(db, "team-north", status=LeadStatus.ACCEPTED.value, assigned_closer_id="closer-1")
    make_lead(db, "team-north", status=LeadStatus.ACCEPTED.value, assigned_closer_id="closer-2")
    waiting = make_lead(db, "team-north")
    with pytest.raises(NotFoundError):
        svc.assign_lead(waiting, manager)


# ---------------------------------------------------------------------------
# reads and periodic jobs
# ---------------------------------------------------------------------------

def test_leads_outside_team_read_as_missing(db, staff):
    lead = make_lead(db, "team-south")
    with pytest.raises(NotFoundError):
        service(db).get_lead(lead.id, actor_for(staff["manager"]))
    assert service(db).get_lead(lead.id, actor_for(staff["admin"])).id == lead.id


def test_scheduled_queue_and_data_quality(db, staff):
    first = make_lead(
        db, "team-north",
        status=LeadStatus.SCHEDULED.value,
        scheduled_appointment_time=datetime(2025, 7, 10, 15, 0, tzinfo=timezone.utc),
    )
    make_lead(
        db, "team-north",
        status=LeadStatus.SCHEDULED.value,
        scheduled_appointment_time=datetime(2025, 7, 11, 9, 0, tzinfo=timezone.utc),
    )
    broken = make_lead(db, "team-north", status=LeadStatus.SCHEDULED.value, scheduled_appointment_time=None)

    svc = service(db)
    manager = actor_for(staff["manager"])
    queue = svc.scheduled_queue(
        manager,
        datetime(2025, 7, 10, tzinfo=timezone.utc),
        datetime(2025, 7, 11, tzinfo=timezone.utc),
    )
    assert [lead.id for lead in queue] == [first.id]

    assert [lead.id for lead in svc.data_quality_report(manager)] == [broken.id]
    assert [lead.id for lead in svc.data_quality_report()] == [broken.id]
    with pytest.raises(PermissionDeniedError):
        svc.data_quality_report(actor_for(staff["closer"]))


def test_transition_rule_releases_verified_and_flags_unverified(db, staff, team):
    make_user(db, "closer-3", "closer", team.id, on_duty=False)
    verified = make_lead(
        db, "team-north",
        status=LeadStatus.SCHEDULED.value,
        scheduled_appointment_time=NOW + timedelta(minutes=30),
        setter_verified=True,
    )
    unverified = make_lead(
        db, "team-north",
        status=LeadStatus.RESCHEDULED.value,
        scheduled_appointment_time=NOW + timedelta(minutes=20),
        assigned_closer_id="closer-3",
    )
    later = make_lead(
        db, "team-north",
        status=LeadStatus.SCHEDULED.value,
        scheduled_appointment_time=NOW + timedelta(hours=2),
        setter_verified=True,
    )

    counts = service(db).process_scheduled_transitions(NOW)
    db.expire_all()

    assert counts == {"released": 1, "flagged": 1, "assigned": 1}
    released = db.get(Lead, verified.id)
    assert released.status == LeadStatus.WAITING_ASSIGNMENT.value
    assert released.transition_reason == "45_minute_rule"
    assert released.assigned_closer_id == "closer-1"
    assert db.get(Lead, unverified.id).status == LeadStatus.NEEDS_VERIFICATION.value
    assert db.get(Lead, later.id).status == LeadStatus.SCHEDULED.value


def test_due_reminders_are_sent_once(db, staff):
    lead = make_lead(
        db, "team-north",
        status=LeadStatus.ACCEPTED.value,
        assigned_closer_id="closer-1",
        assigned_closer_name="Closer 1",
        accepted_at=NOW,
    )
    service(db).schedule_lead(lead, "2025-07-10", "10:00", actor_for(staff["closer"]))
    reminder = db.query(AppointmentReminder).one()

    svc = ReminderService(db, clock=lambda: NOW)
    assert svc.process_due_reminders(NOW) == 0

    due_at = reminder.reminder_time + timedelta(minutes=1)
    assert svc.process_due_reminders(due_at) == 1
    assert [n.user_ids for n in svc.outbox] == [["closer-1"]]
    assert svc.process_due_reminders(due_at) == 0


def test_stale_reminders_are_dropped(db, staff):
    lead = make_lead(
        db, "team-north",
        status=LeadStatus.ACCEPTED.value,
        assigned_closer_id="closer-1",
        accepted_at=NOW,
    )
    service(db).schedule_lead(lead, "2025-07-10", "10:00", actor_for(staff["closer"]))
    lead.status = LeadStatus.COMPLETED.value
    db.commit()

    reminder = db.query(AppointmentReminder).one()
    svc = ReminderService(db, clock=lambda: NOW)
    assert svc.process_due_reminders(reminder.reminder_time) == 0
    assert svc.outbox == []
    db.expire_all()
    assert db.get(AppointmentReminder, reminder.id).processed is True


def test_schedule_rejects_time_skipped_by_daylight_saving(db, staff):
    lead = make_lead(db, "team-north", status=LeadStatus.ACCEPTED.value, assigned_closer_id="closer-1")
    with pytest.raises(InvalidArgumentError):
        service(db).schedule_lead(lead, "2026-03-08", "02:30", actor_for(staff["closer"]))
