"""
Closer lineup: duty status, round-robin order and next-available selection
"""
from typing import List, Optional

from leadflow.core.config import settings
from leadflow.database.models.database import AppUser, Closer, Lead
from leadflow.database.models.enums import CLOSING_ROLES, ActivityType, LeadStatus
from leadflow.repositories.closer_repository import CloserRepository
from leadflow.repositories.lead_repository import LeadRepository
from leadflow.services.authorization import ActorContext, can_administer, can_view_team
from leadflow.services.base_service import BaseService
from leadflow.services.notification_service import LeadNotifications
from leadflow.utils.exceptions import NotFoundError, PermissionDeniedError
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)

LINEUP_STEP = 1000
FIRST_LINEUP_ORDER = 100000
NEW_CLOSER_LINEUP_ORDER = 999


class LineupService(BaseService):
    """Round-robin rotation of a team's closers"""

    def __init__(self, db, **kwargs):
        super().__init__(db, **kwargs)
        self.closers = CloserRepository(db)
        self.leads = LeadRepository(db)

    def list_lineup(self, actor: ActorContext, team_id: Optional[str] = None) -> List[Closer]:
        team_id = team_id or actor.team_id
        if not can_view_team(actor, team_id):
            raise PermissionDeniedError("You can only view your own team's lineup")
        return self.closers.find_for_team(team_id)

    def next_available_closer(self, team_id: str, exclude: Optional[str] = None) -> Optional[Closer]:
        """
        Pick the closer who should get the next lead.
        On-duty closers of the team with no active assignment, front of the lineup first.
        """
        on_duty = self.closers.find_for_team(team_id, on_duty=True)
        if not on_duty:
            logger.warning(f"[yellow]⚠️  No on-duty closers found for team {team_id}[/yellow]")
            return None

        for closer in on_duty:
            if closer.id == exclude:
                continue
            if self.leads.count_active_assignments(closer.id) == 0:
                logger.info(
                    f"[green]✅ Selected closer {closer.name}[/green] "
                    f"[dim](order: {closer.lineup_order}) for team {team_id}[/dim]"
                )
                return closer

        logger.warning(f"[yellow]⚠️  All closers are assigned for team {team_id}[/yellow]")
        return None

    def assign(self, lead: Lead, closer: Closer, actor: Optional[ActorContext] = None) -> None:
        """Point a lead at a closer within the current unit of work"""
        lead.assigned_closer_id = closer.id
        lead.assigned_closer_name = closer.name
        self.db.flush()
        self.record_activity(
            ActivityType.LEAD_ASSIGNED.value,
            actor=actor,
            lead_id=lead.id,
            team_id=lead.team_id,
            closer_id=closer.id,
            closer_name=closer.name,
            customer_name=lead.customer_name,
        )
        self.notify(LeadNotifications.lead_assigned(lead, closer.id))

    def set_duty(self, closer_id: str, on_duty: bool, actor: ActorContext) -> Closer:
        """
        Toggle a closer on or off duty.

        Coming on duty places the closer at the back of the lineup. Going off
        duty hands back every lead the closer has not started yet.
        """
        closer = self.closers.find_by_id(closer_id)
        if closer is None:
            raise NotFoundError("Closer profile not found")

        is_self = actor.uid == closer.id and actor.is_active
        if not is_self and not can_administer(actor, closer.team_id):
            raise PermissionDeniedError("You can only change duty status for yourself or your team")

        if closer.on_duty == on_duty:
            return closer

        closer.on_duty = on_duty
        if on_duty:
            self._add_to_lineup(closer, actor)
        else:
            self._release_leads(closer, actor)

        self.commit()
        self.db.refresh(closer)
        return closer

    def _add_to_lineup(self, closer: Closer, actor: ActorContext) -> None:
        others = [c.lineup_order for c in self.closers.find_for_team(closer.team_id) if c.id != closer.id]
        closer.lineup_order = max(others) + LINEUP_STEP if others else FIRST_LINEUP_ORDER
        self.db.flush()
        self.record_activity(
            ActivityType.CLOSER_ADDED_TO_LINEUP.value,
            actor=actor,
            team_id=closer.team_id,
            closer_id=closer.id,
            closer_name=closer.name,
            new_lineup_order=closer.lineup_order,
        )
        logger.info(f"[green]✅ Added closer {closer.name} to lineup[/green] [dim](order: {closer.lineup_order})[/dim]")

    def _release_leads(self, closer: Closer, actor: ActorContext) -> None:
        released = self.leads.find_unaccepted_for_closer(closer.id)
        if not released:
            logger.info(f"[dim]No unstarted leads held by off-duty closer {closer.id}[/dim]")
            return

        for lead in released:
            lead.assigned_closer_id = None
            lead.assigned_closer_name = None
            self.record_activity(
                ActivityType.LEAD_RELEASED.value,
                actor=actor,
                lead_id=lead.id,
                team_id=lead.team_id,
                closer_id=closer.id,
                reason="closer_off_duty",
            )
        self.db.flush()

        if settings.dispatch.auto_assign:
            for lead in released:
                if lead.status != LeadStatus.WAITING_ASSIGNMENT.value:
                    continue
                replacement = self.next_available_closer(lead.team_id, exclude=closer.id)
                if replacement is None:
                    break
                self.assign(lead, replacement, actor)

        logger.info(f"[cyan]Released {len(released)} lead(s) from off-duty closer {closer.name}[/cyan]")

    def move_to_back(self, closer_id: str, lead_id: str, reason: str) -> Optional[Closer]:
        """Completed work sends the closer to the back of the rotation"""
        closer = self.closers.find_by_id(closer_id)
        if closer is None:
            logger.warning(f"[yellow]Closer {closer_id} not found for round robin rotation[/yellow]")
            return None
        previous = closer.lineup_order
        closer.lineup_order = (self.closers.max_lineup_order(closer.team_id) or 0) + LINEUP_STEP
        self._record_rotation(ActivityType.ROUND_ROBIN_COMPLETION, closer, lead_id, reason, previous)
        return closer

    def move_to_front(self, closer_id: str, lead_id: str, reason: str) -> Optional[Closer]:
        """A job that fell through (rescheduled) puts the closer back at the front"""
        closer = self.closers.find_by_id(closer_id)
        if closer is None:
            logger.warning(f"[yellow]Closer {closer_id} not found for round robin rotation[/yellow]")
            return None
        previous = closer.lineup_order
        closer.lineup_order = max(0, (self.closers.min_lineup_order(closer.team_id) or 0) - LINEUP_STEP)
        self._record_rotation(ActivityType.ROUND_ROBIN_EXCEPTION, closer, lead_id, reason, previous)
        return closer

    def _record_rotation(self, kind: ActivityType, closer: Closer, lead_id: str, reason: str, previous: int) -> None:
        self.db.flush()
        self.record_activity(
            kind.value,
            lead_id=lead_id,
            team_id=closer.team_id,
            closer_id=closer.id,
            closer_name=closer.name,
            reason=reason,
            previous_lineup_order=previous,
            new_lineup_order=closer.lineup_order,
        )
        logger.info(
            f"[cyan]Moved closer {closer.id}[/cyan] from {previous} to {closer.lineup_order} "
            f"[dim]({reason}, lead {lead_id})[/dim]"
        )

    def sync_closer_entry(self, user: AppUser, previous_role: Optional[str]) -> None:
        """Keep the lineup table in step with a user's role"""
        was_closing = previous_role in CLOSING_ROLES
        is_closing = user.role in CLOSING_ROLES
        closer = self.closers.find_by_id(user.id)

        if is_closing and closer is None:
            self.closers.create(
                id=user.id,
                name=user.display_name or user.email or "Unknown User",
                team_id=user.team_id,
                role=user.role,
                on_duty=False,
                lineup_order=NEW_CLOSER_LINEUP_ORDER,
            )
            logger.info(f"[green]Created closer record for new {user.role}:[/green] {user.display_name}")
        elif not is_closing and closer is not None:
            self.closers.delete(closer)
            logger.info(f"[yellow]Removed closer record for former {previous_role}:[/yellow] {user.display_name}")
        elif closer is not None:
            self.closers.update(closer, role=user.role, team_id=user.team_id)
            if was_closing:
                logger.info(f"[cyan]Updated closer record for {user.display_name}:[/cyan] {previous_role} → {user.role}")
