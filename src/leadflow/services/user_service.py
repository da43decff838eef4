"""
User administration: profiles, approvals, roles and team membership
"""
from typing import List, Optional, Tuple

from leadflow.database.models.database import AppUser
from leadflow.database.models.enums import ASSIGNABLE_ROLES, ActivityType, UserRole, UserStatus
from leadflow.repositories.user_repository import TeamRepository, UserRepository
from leadflow.services.authorization import ActorContext, can_administer
from leadflow.services.base_service import BaseService
from leadflow.services.lineup_service import LineupService
from leadflow.utils.exceptions import (
    ConflictError,
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)


class UserService(BaseService):

    def __init__(self, db, **kwargs):
        super().__init__(db, **kwargs)
        self.users = UserRepository(db)
        self.teams = TeamRepository(db)
        self.lineup = LineupService(db, outbox=self.outbox, clock=self.clock)

    def register_profile(
        self,
        uid: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> AppUser:
        """Create the caller's own profile; it waits for approval before it can act"""
        if self.users.find_by_id(uid) is not None:
            raise ConflictError("Profile already exists")
        if team_id is not None:
            self._active_team(team_id)

        user = self.users.create(
            id=uid,
            email=email,
            display_name=display_name,
            team_id=team_id,
            role=UserRole.PENDING.value,
            status=UserStatus.PENDING_APPROVAL.value,
        )
        self.commit()
        self.db.refresh(user)
        logger.info(f"[cyan]Registered profile {uid}[/cyan] [dim](pending approval)[/dim]")
        return user

    def get_profile(self, uid: str) -> AppUser:
        user = self.users.find_by_id(uid)
        if user is None:
            raise NotFoundError("User profile not found")
        return user

    def list_pending_users(self, actor: ActorContext) -> List[AppUser]:
        if not actor.is_supervisor or not actor.is_active:
            raise PermissionDeniedError("Only managers and admins can view pending approvals")
        # Admins see every team, managers their own
        return self.users.find_pending(None if actor.is_admin else actor.team_id)

    def approve_user(self, user_id: str, actor: ActorContext) -> Tuple[AppUser, str]:
        user = self.get_profile(user_id)
        if not can_administer(actor, user.team_id):
            raise PermissionDeniedError("Only managers and admins can approve users")

        if user.status == UserStatus.ACTIVE.value:
            return user, "User is already approved"

        previous_role = user.role
        user.status = UserStatus.ACTIVE.value
        if user.role == UserRole.PENDING.value:
            user.role = UserRole.SETTER.value
        user.approved_by = actor.uid
        user.approved_at = self.now()
        self.db.flush()
        self.lineup.sync_closer_entry(user, previous_role)

        self.record_activity(
            ActivityType.USER_APPROVED.value,
            actor=actor,
            team_id=user.team_id,
            user_id=user.id,
            role=user.role,
        )
        self.commit()
        self.db.refresh(user)
        logger.info(f"[green]✅ User {user.id} approved[/green] by {actor.uid} as {user.role}")
        return user, "User approved successfully"

    def update_user_role(self, user_id: str, role: str, actor: ActorContext) -> Tuple[AppUser, str]:
        if role not in ASSIGNABLE_ROLES:
            raise InvalidArgumentError(f"Invalid role: {role}. Must be one of: {', '.join(sorted(ASSIGNABLE_ROLES))}")

        user = self.get_profile(user_id)
        if not can_administer(actor, user.team_id):
            raise PermissionDeniedError("Only managers and admins can change roles for their team")
        if role == UserRole.ADMIN.value and not actor.is_admin:
            raise PermissionDeniedError("Only admins can grant the admin role")
        if user.team_id is not None:
            self._active_team(user.team_id)

        if user.role == role:
            return user, "no_change_needed"

        previous_role = user.role
        user.role = role
        if user.status == UserStatus.PENDING_APPROVAL.value:
            user.status = UserStatus.ACTIVE.value
            user.approved_by = actor.uid
            user.approved_at = self.now()
        self.db.flush()
        self.lineup.sync_closer_entry(user, previous_role)

        self.commit()
        self.db.refresh(user)
        logger.info(f"[green]✅ User {user.id} role updated[/green] {previous_role} → {role}")
        return user, f"Role updated from {previous_role} to {role}"

    def assign_team(self, user_id: str, team_id: str, actor: ActorContext) -> AppUser:
        """Admins may move users into any team; managers only into their own"""
        user = self.get_profile(user_id)
        if not can_administer(actor, team_id):
            raise PermissionDeniedError("Managers can only assign users to their own team")
        if not actor.is_admin and user.team_id not in (None, actor.team_id):
            raise PermissionDeniedError("Managers can only move users within their own team")
        self._active_team(team_id)

        previous_team = user.team_id
        user.team_id = team_id
        self.db.flush()
        self.lineup.sync_closer_entry(user, user.role)

        self.commit()
        self.db.refresh(user)
        logger.info(f"[green]✅ User {user.id} moved[/green] from team {previous_team} to {team_id}")
        return user

    def _active_team(self, team_id: str):
        team = self.teams.find_by_id(team_id)
        if team is None:
            raise NotFoundError("Team not found")
        if not team.is_active:
            raise FailedPreconditionError("Team is not active")
        return team
