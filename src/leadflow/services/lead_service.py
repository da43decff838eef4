"""
Lead service: the status and assignment state machine
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from leadflow.core.config import settings
from leadflow.database.models.database import Activity, Lead
from leadflow.database.models.enums import (
    ACTIVE_JOB_STATUSES,
    CLOSING_ROLES,
    SCHEDULED_STATUSES,
    ActivityType,
    DispatchType,
    LeadStatus,
)
from leadflow.repositories.closer_repository import CloserRepository
from leadflow.repositories.lead_repository import LeadRepository
from leadflow.repositories.user_repository import TeamRepository, UserRepository
from leadflow.schemas.leads import LeadCreate
from leadflow.services.authorization import (
    Action,
    ActorContext,
    can_create_lead,
    can_transition,
    can_verify,
    can_view_team,
)
from leadflow.services.base_service import BaseService
from leadflow.services.lineup_service import LineupService
from leadflow.services.notification_service import LeadNotifications
from leadflow.services.reminder_service import ReminderService
from leadflow.services.scheduling import as_utc, compose_appointment_time
from leadflow.utils.exceptions import (
    ConflictError,
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)

TRANSITION_REASON_45_MINUTE = "45_minute_rule"
TRANSITION_REASON_VERIFICATION = "verification_required"


class LeadService(BaseService):
    """
    Applies lead transitions on behalf of an explicit actor.

    Every mutating method checks the authorization guard first, then the
    lead's state, writes, records an activity and queues notifications.
    Failures raise typed errors; nothing is silently skipped.
    """

    def __init__(self, db, **kwargs):
        super().__init__(db, **kwargs)
        self.leads = LeadRepository(db)
        self.users = UserRepository(db)
        self.teams = TeamRepository(db)
        self.closers = CloserRepository(db)
        shared = {"outbox": self.outbox, "clock": self.clock}
        self.lineup = LineupService(db, **shared)
        self.reminders = ReminderService(db, **shared)
        self.timezone = settings.dispatch.timezone

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_lead(self, lead_id: str, actor: ActorContext) -> Lead:
        """Leads outside the caller's team read as missing"""
        lead = self.leads.find_by_id(lead_id)
        if lead is None or not can_view_team(actor, lead.team_id):
            raise NotFoundError("Lead not found")
        return lead

    def list_leads(
        self,
        actor: ActorContext,
        team_id: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Lead]:
        team_id = team_id or actor.team_id
        if not can_view_team(actor, team_id):
            raise PermissionDeniedError("You can only view leads for your own team")
        if status is not None and status not in {s.value for s in LeadStatus}:
            raise InvalidArgumentError(f"Unknown lead status: {status}")
        return self.leads.find_for_team(team_id, status=status, skip=skip, limit=limit)

    def lead_activities(self, lead_id: str, actor: ActorContext) -> List[Activity]:
        lead = self.get_lead(lead_id, actor)
        return self.activities.find_for_lead(lead.id)

    def scheduled_queue(
        self,
        actor: ActorContext,
        start: datetime,
        end: datetime,
        team_id: Optional[str] = None,
    ) -> List[Lead]:
        """Pending appointments of a team in [start, end), earliest first"""
        team_id = team_id or actor.team_id
        if not can_view_team(actor, team_id):
            raise PermissionDeniedError("You can only view the schedule of your own team")
        start, end = as_utc(start), as_utc(end)
        if end <= start:
            raise InvalidArgumentError("Window end must be after its start")
        return self.leads.find_scheduled_window(team_id, start, end)

    def data_quality_report(
        self,
        actor: Optional[ActorContext] = None,
        team_id: Optional[str] = None,
    ) -> List[Lead]:
        """
        Scheduled-family leads with no appointment time.

        Without an actor (maintenance jobs) every team is checked.
        """
        if actor is not None:
            team_id = team_id or actor.team_id
            if not actor.is_supervisor or not can_view_team(actor, team_id):
                raise PermissionDeniedError("Only managers and admins can run data-quality checks")
        issues = self.leads.find_scheduled_without_time(team_id)
        if issues:
            logger.warning(f"[yellow]⚠️  Found {len(issues)} scheduled lead(s) without appointment time[/yellow]")
        else:
            logger.info("[green]✅ All scheduled leads have appointment times[/green]")
        return issues

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create_lead(self, data: LeadCreate, actor: ActorContext) -> Lead:
        for field in ("customer_name", "customer_phone", "address"):
            if not (getattr(data, field) or "").strip():
                raise InvalidArgumentError(f"Missing required field: {field}")

        team_id = data.team_id or actor.team_id
        if not can_create_lead(actor, team_id):
            raise PermissionDeniedError("Only setters, managers and admins can create leads for their team")

        team = self.teams.find_by_id(team_id)
        if team is None:
            raise NotFoundError("Team not found")
        if not team.is_active:
            raise FailedPreconditionError("Team is not active")

        values = dict(
            customer_name=data.customer_name.strip(),
            customer_phone=data.customer_phone.strip(),
            address=data.address.strip(),
            dispatch_type=DispatchType(data.dispatch_type).value,
            team_id=team_id,
            setter_id=actor.uid,
            setter_name=actor.display_name,
            setter_verified=False,
        )

        if values["dispatch_type"] == DispatchType.SCHEDULED.value:
            if not data.appointment_date or not data.appointment_time:
                raise InvalidArgumentError("Scheduled leads require an appointment date and time")
            values["scheduled_appointment_time"] = self._future_appointment(
                data.appointment_date, data.appointment_time
            )
            values["status"] = LeadStatus.SCHEDULED.value
        else:
            values["status"] = LeadStatus.WAITING_ASSIGNMENT.value

        lead = self.leads.create(**values)
        self.record_activity(
            ActivityType.LEAD_CREATED.value,
            actor=actor,
            lead_id=lead.id,
            team_id=team_id,
            customer_name=lead.customer_name,
            dispatch_type=lead.dispatch_type,
        )

        if lead.status == LeadStatus.WAITING_ASSIGNMENT.value and settings.dispatch.auto_assign:
            closer = self.lineup.next_available_closer(team_id)
            if closer is not None:
                lead.assigned_closer_id = closer.id
                lead.assigned_closer_name = closer.name
                self.db.flush()
                self.record_activity(
                    ActivityType.LEAD_ASSIGNED.value,
                    actor=actor,
                    lead_id=lead.id,
                    team_id=team_id,
                    closer_id=closer.id,
                    closer_name=closer.name,
                    customer_name=lead.customer_name,
                )

        self.notify(LeadNotifications.new_lead(lead, lead.assigned_closer_id))
        self.commit()
        self.db.refresh(lead)
        logger.info(f"[green]✅ Created lead {lead.id}[/green] [dim]({lead.status}, team {team_id})[/dim]")
        return lead

    def accept_lead(self, lead: Lead, actor: ActorContext, on_behalf_of: Optional[str] = None) -> Lead:
        """
        Accept a job: waiting leads, or pre-booked scheduled leads the setter verified.

        The write only lands if the lead is still acceptable and still held by
        the same assignee; otherwise the caller lost a race and gets a conflict.
        """
        if not can_transition(actor, lead, Action.ACCEPT):
            raise PermissionDeniedError("You do not have permission to accept this lead")

        if lead.status == LeadStatus.SCHEDULED.value:
            if not lead.setter_verified:
                raise FailedPreconditionError("Cannot accept scheduled lead - setter verification required")
            acceptable = [LeadStatus.SCHEDULED.value]
        elif lead.status == LeadStatus.WAITING_ASSIGNMENT.value:
            acceptable = [LeadStatus.WAITING_ASSIGNMENT.value]
        else:
            raise ConflictError(f"Lead is no longer awaiting acceptance (status: {lead.status})")

        assignee_id, assignee_name = self._resolve_assignee(lead, actor, on_behalf_of)
        now = self.now()

        updated = self.leads.conditional_update(
            lead.id,
            acceptable,
            {
                "status": LeadStatus.ACCEPTED.value,
                "assigned_closer_id": assignee_id,
                "assigned_closer_name": assignee_name,
                "accepted_at": now,
                "accepted_by": actor.uid,
                "transition_reason": None,
            },
            expected_closer_id=lead.assigned_closer_id,
        )
        if not updated:
            self.rollback()
            logger.warning(f"[yellow]⚠️  Accept conflict on lead {lead.id} for {actor.uid}[/yellow]")
            raise ConflictError("Lead was accepted or changed by someone else; refresh and try again")

        self.record_activity(
            ActivityType.JOB_ACCEPTED.value,
            actor=actor,
            lead_id=lead.id,
            team_id=lead.team_id,
            closer_id=assignee_id,
            on_behalf_of=assignee_id if assignee_id != actor.uid else None,
            customer_name=lead.customer_name,
            previous_status=lead.status,
        )
        if lead.setter_id:
            self.notify(LeadNotifications.job_accepted(lead, lead.setter_id, assignee_name))

        self.commit()
        self.db.refresh(lead)
        logger.info(f"[green]✅ Lead {lead.id} accepted[/green] by {actor.uid} for {assignee_id}")
        return lead

    def _resolve_assignee(self, lead: Lead, actor: ActorContext, on_behalf_of: Optional[str]):
        if not actor.is_supervisor:
            if on_behalf_of and on_behalf_of != actor.uid:
                raise PermissionDeniedError("Only managers and admins can accept on behalf of another closer")
            return actor.uid, actor.display_name

        if on_behalf_of:
            user = self.users.find_by_id(on_behalf_of)
            if user is None:
                raise NotFoundError("Closer not found")
            if user.team_id != lead.team_id:
                raise InvalidArgumentError("Closer must belong to the lead's team")
            if user.role not in CLOSING_ROLES:
                raise InvalidArgumentError(f"User {on_behalf_of} cannot close leads (role: {user.role})")
            closer = self.closers.find_by_id(user.id)
            return user.id, (closer.name if closer else None) or user.display_name or user.email

        if lead.assigned_closer_id:
            return lead.assigned_closer_id, lead.assigned_closer_name
        return actor.uid, actor.display_name

    def schedule_lead(
        self,
        lead: Lead,
        appointment_date,
        appointment_time: str,
        actor: ActorContext,
    ) -> Lead:
        """
        Book or move the lead's appointment.

        The first booking of a never-accepted lead is ``scheduled``; anything
        after that is ``rescheduled``.
        """
        if not can_transition(actor, lead, Action.SCHEDULE):
            raise PermissionDeniedError("You do not have permission to schedule this lead")
        if lead.status == LeadStatus.COMPLETED.value:
            raise FailedPreconditionError("Completed leads cannot be scheduled")

        appointment = self._future_appointment(appointment_date, appointment_time)
        previous_status = lead.status
        first_booking = (
            previous_status == LeadStatus.WAITING_ASSIGNMENT.value
            and lead.scheduled_appointment_time is None
            and lead.accepted_at is None
        )
        new_status = LeadStatus.SCHEDULED.value if first_booking else LeadStatus.RESCHEDULED.value

        updated = self.leads.conditional_update(
            lead.id,
            [previous_status],
            {
                "scheduled_appointment_time": appointment,
                "status": new_status,
                "transition_reason": None,
            },
            expected_closer_id=lead.assigned_closer_id,
        )
        if not updated:
            self.rollback()
            raise ConflictError("Lead was changed by someone else; refresh and try again")
        self.db.refresh(lead)

        if previous_status in ACTIVE_JOB_STATUSES and lead.assigned_closer_id:
            self.lineup.move_to_front(lead.assigned_closer_id, lead.id, reason="rescheduled")

        self.record_activity(
            ActivityType.LEAD_SCHEDULED.value,
            actor=actor,
            lead_id=lead.id,
            team_id=lead.team_id,
            closer_id=lead.assigned_closer_id,
            previous_status=previous_status,
            new_status=new_status,
            appointment_time=appointment.isoformat(),
        )
        self.reminders.schedule_for(lead)
        if lead.assigned_closer_id and lead.assigned_closer_id != actor.uid:
            self.notify(LeadNotifications.lead_updated(lead, lead.assigned_closer_id, new_status))

        self.commit()
        self.db.refresh(lead)
        logger.info(f"[green]✅ Lead {lead.id} {new_status}[/green] for {appointment.isoformat()}")
        return lead

    def complete_lead(
        self,
        lead: Lead,
        notes: Optional[str],
        photo_urls: Optional[List[str]],
        actor: ActorContext,
    ) -> Lead:
        if not can_transition(actor, lead, Action.COMPLETE):
            raise PermissionDeniedError("You do not have permission to complete this lead")
        if lead.status not in ACTIVE_JOB_STATUSES:
            raise FailedPreconditionError(f"Only accepted jobs can be completed (status: {lead.status})")

        photo_urls = list(photo_urls or [])
        for url in photo_urls:
            if not isinstance(url, str) or not url.strip():
                raise InvalidArgumentError("Photo URLs must be non-empty strings")

        updated = self.leads.conditional_update(
            lead.id,
            ACTIVE_JOB_STATUSES,
            {
                "status": LeadStatus.COMPLETED.value,
                "disposition_notes": (notes or "").strip(),
                "photo_urls": photo_urls,
                "completed_at": self.now(),
            },
            expected_closer_id=lead.assigned_closer_id,
        )
        if not updated:
            self.rollback()
            raise ConflictError("Lead was changed by someone else; refresh and try again")

        if lead.assigned_closer_id:
            self.lineup.move_to_back(lead.assigned_closer_id, lead.id, reason="completed")

        self.record_activity(
            ActivityType.LEAD_COMPLETED.value,
            actor=actor,
            lead_id=lead.id,
            team_id=lead.team_id,
            closer_id=lead.assigned_closer_id,
            photo_count=len(photo_urls),
        )
        if lead.setter_id and lead.setter_id != actor.uid:
            self.notify(LeadNotifications.lead_updated(lead, lead.setter_id, LeadStatus.COMPLETED.value))

        self.commit()
        self.db.refresh(lead)
        logger.info(f"[green]✅ Lead {lead.id} completed[/green] by {actor.uid}")
        return lead

    def verify_lead(self, lead: Lead, verified: bool, actor: ActorContext) -> Lead:
        """Set or clear the setter's confirmation of a booked appointment"""
        if not can_verify(actor, lead):
            raise PermissionDeniedError("Only the lead's setter or a team manager can verify this lead")
        if lead.status not in SCHEDULED_STATUSES:
            raise FailedPreconditionError(f"Only scheduled appointments can be verified (status: {lead.status})")

        updated = self.leads.conditional_update(
            lead.id,
            SCHEDULED_STATUSES,
            {
                "setter_verified": bool(verified),
                "verified_by": actor.uid if verified else None,
                "verified_at": self.now() if verified else None,
            },
        )
        if not updated:
            self.rollback()
            raise ConflictError("Lead was changed by someone else; refresh and try again")
        self.db.refresh(lead)

        self.record_activity(
            ActivityType.LEAD_VERIFIED.value,
            actor=actor,
            lead_id=lead.id,
            team_id=lead.team_id,
            verified=bool(verified),
        )
        self.commit()
        self.db.refresh(lead)
        return lead

    def assign_lead(self, lead: Lead, actor: ActorContext, closer_id: Optional[str] = None) -> Lead:
        """Manual assignment or reassignment; the closer still has to accept"""
        if not can_transition(actor, lead, Action.ASSIGN):
            raise PermissionDeniedError("Only managers and admins can assign leads")

        assignable = set(SCHEDULED_STATUSES) | {LeadStatus.WAITING_ASSIGNMENT.value}
        if lead.status not in assignable:
            raise FailedPreconditionError(f"Lead cannot be assigned in status {lead.status}")
        if lead.status in SCHEDULED_STATUSES and not lead.setter_verified:
            raise FailedPreconditionError("Cannot assign scheduled lead - setter verification required")

        if closer_id:
            closer = self.closers.find_by_id(closer_id)
            if closer is None:
                raise NotFoundError("Closer not found")
            if closer.team_id != lead.team_id:
                raise InvalidArgumentError("Closer must belong to the lead's team")
            if not closer.on_duty:
                raise FailedPreconditionError(f"Closer {closer.name} is not on duty")
        else:
            closer = self.lineup.next_available_closer(lead.team_id)
            if closer is None:
                raise NotFoundError("No available closers found for this team")

        updated = self.leads.conditional_update(
            lead.id,
            [lead.status],
            {"assigned_closer_id": closer.id, "assigned_closer_name": closer.name},
            expected_closer_id=lead.assigned_closer_id,
        )
        if not updated:
            self.rollback()
            raise ConflictError("Lead was changed by someone else; refresh and try again")

        self.record_activity(
            ActivityType.LEAD_ASSIGNED.value,
            actor=actor,
            lead_id=lead.id,
            team_id=lead.team_id,
            closer_id=closer.id,
            closer_name=closer.name,
            previous_closer_id=lead.assigned_closer_id,
            customer_name=lead.customer_name,
        )
        self.notify(LeadNotifications.lead_assigned(lead, closer.id))
        self.commit()
        self.db.refresh(lead)
        logger.info(f"[green]✅ Lead {lead.id} assigned[/green] to {closer.name}")
        return lead

    # ------------------------------------------------------------------
    # Periodic jobs
    # ------------------------------------------------------------------

    def process_scheduled_transitions(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Release appointments that are about to start.

        Verified leads due within the transition window go back to
        ``waiting_assignment`` so a closer can pick them up; unverified ones
        are flagged ``needs_verification``.
        """
        now = as_utc(now or self.now())
        until = now + timedelta(minutes=settings.dispatch.transition_window_minutes)
        due = self.leads.find_due_for_transition(now, until, limit=settings.dispatch.transition_batch_size)

        counts = {"released": 0, "flagged": 0, "assigned": 0}
        for lead in due:
            previous_status = lead.status
            if lead.setter_verified:
                lead.status = LeadStatus.WAITING_ASSIGNMENT.value
                lead.transition_reason = TRANSITION_REASON_45_MINUTE
                counts["released"] += 1
            elif lead.status in (LeadStatus.SCHEDULED.value, LeadStatus.RESCHEDULED.value):
                lead.status = LeadStatus.NEEDS_VERIFICATION.value
                lead.transition_reason = TRANSITION_REASON_VERIFICATION
                counts["flagged"] += 1
            else:
                continue
            self.db.flush()

            self.record_activity(
                ActivityType.SCHEDULED_LEAD_TRANSITION.value,
                lead_id=lead.id,
                team_id=lead.team_id,
                closer_id=lead.assigned_closer_id,
                previous_status=previous_status,
                new_status=lead.status,
                reason=lead.transition_reason,
            )

            if lead.assigned_closer_id:
                self.notify(LeadNotifications.lead_updated(lead, lead.assigned_closer_id, lead.status))
            elif lead.status == LeadStatus.WAITING_ASSIGNMENT.value and settings.dispatch.auto_assign:
                closer = self.lineup.next_available_closer(lead.team_id)
                if closer is not None:
                    self.lineup.assign(lead, closer)
                    counts["assigned"] += 1

        self.commit()
        logger.info(
            f"[green]✅ Scheduled transitions:[/green] {counts['released']} released, "
            f"{counts['flagged']} flagged, {counts['assigned']} auto-assigned"
        )
        return counts

    def _future_appointment(self, appointment_date, appointment_time: str) -> datetime:
        try:
            appointment = compose_appointment_time(appointment_date, appointment_time, self.timezone)
        except ValueError as e:
            raise InvalidArgumentError(str(e))
        if as_utc(appointment) <= as_utc(self.now()):
            raise InvalidArgumentError("Scheduled appointment time must be in the future")
        return appointment
