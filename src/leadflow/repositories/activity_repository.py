"""
Activity log and appointment reminder repositories
"""
from datetime import datetime
from typing import List

from leadflow.database.models.database import Activity, AppointmentReminder
from leadflow.repositories.base_repository import BaseRepository


class ActivityRepository(BaseRepository[Activity]):
    model = Activity

    def find_for_lead(self, lead_id: str) -> List[Activity]:
        return (
            self.db.query(Activity)
            .filter(Activity.lead_id == lead_id)
            .order_by(Activity.created_at.asc())
            .all()
        )


class ReminderRepository(BaseRepository[AppointmentReminder]):
    model = AppointmentReminder

    def find_due(self, now: datetime, limit: int = 50) -> List[AppointmentReminder]:
        """Unprocessed reminders whose reminder time has passed"""
        return (
            self.db.query(AppointmentReminder)
            .filter(
                AppointmentReminder.processed.is_(False),
                AppointmentReminder.reminder_time <= now,
            )
            .order_by(AppointmentReminder.reminder_time.asc())
            .limit(limit)
            .all()
        )
