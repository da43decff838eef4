"""
Appointment reminders for assigned closers
"""
from datetime import datetime, timedelta
from typing import Optional

from leadflow.core.config import settings
from leadflow.database.models.database import AppointmentReminder, Lead
from leadflow.database.models.enums import ACTIVE_JOB_STATUSES, SCHEDULED_STATUSES
from leadflow.repositories.activity_repository import ReminderRepository
from leadflow.repositories.lead_repository import LeadRepository
from leadflow.services.base_service import BaseService
from leadflow.services.notification_service import LeadNotifications
from leadflow.services.scheduling import as_utc
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)


class ReminderService(BaseService):

    def __init__(self, db, **kwargs):
        super().__init__(db, **kwargs)
        self.reminders = ReminderRepository(db)
        self.leads = LeadRepository(db)

    def schedule_for(self, lead: Lead) -> Optional[AppointmentReminder]:
        """Store a reminder ahead of the lead's appointment, if it is still in the future"""
        if not lead.assigned_closer_id or lead.scheduled_appointment_time is None:
            return None

        appointment_time = as_utc(lead.scheduled_appointment_time)
        reminder_time = appointment_time - timedelta(minutes=settings.dispatch.reminder_lead_minutes)
        if reminder_time <= self.now():
            logger.info(f"[dim]Reminder time already passed for lead {lead.id}, skipping[/dim]")
            return None

        reminder = self.reminders.create(
            lead_id=lead.id,
            assigned_closer_id=lead.assigned_closer_id,
            appointment_time=appointment_time,
            reminder_time=reminder_time,
            customer_name=lead.customer_name,
            address=lead.address,
            processed=False,
        )
        logger.info(f"[green]✅ Scheduled reminder for lead {lead.id}[/green] at {reminder_time.isoformat()}")
        return reminder

    def process_due_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Queue notifications for every due reminder and mark them processed.

        Reminders whose lead is gone, finished or reassigned are marked
        processed without sending.

        Returns:
            Number of reminder notifications queued
        """
        now = now or self.now()
        due = self.reminders.find_due(now, limit=settings.dispatch.reminder_batch_size)
        if not due:
            logger.info("[dim]No reminders due[/dim]")
            return 0

        sent = 0
        for reminder in due:
            lead = self.leads.find_by_id(reminder.lead_id)
            still_pending = (
                lead is not None
                and lead.assigned_closer_id == reminder.assigned_closer_id
                and (lead.status in SCHEDULED_STATUSES or lead.status in ACTIVE_JOB_STATUSES)
            )
            if still_pending:
                self.notify(LeadNotifications.appointment_reminder(
                    lead, reminder.assigned_closer_id, reminder.appointment_time
                ))
                sent += 1
            else:
                logger.info(f"[yellow]Skipping stale reminder {reminder.id} for lead {reminder.lead_id}[/yellow]")
            reminder.processed = True

        self.commit()
        logger.info(f"[green]✅ Processed {len(due)} reminder(s), {sent} sent[/green]")
        return sent
