"""
Authorization guard for lead actions.

Every decision is a pure function of an explicit actor context and the lead;
nothing here reads request or session state.
"""
import enum
from dataclasses import dataclass
from typing import Optional

from leadflow.database.models.enums import UserRole, UserStatus


class Action(str, enum.Enum):
    ACCEPT = "accept"
    SCHEDULE = "schedule"
    COMPLETE = "complete"
    ASSIGN = "assign"


@dataclass(frozen=True)
class ActorContext:
    """Who is acting: resolved once per request and passed to every service call"""
    uid: str
    role: str
    team_id: Optional[str]
    status: str = UserStatus.ACTIVE.value
    display_name: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> "ActorContext":
        return cls(
            uid=user.id,
            role=user.role,
            team_id=user.team_id,
            status=user.status,
            display_name=user.display_name or user.email,
        )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value and self.role != UserRole.PENDING.value

    @property
    def is_supervisor(self) -> bool:
        return self.role in (UserRole.MANAGER.value, UserRole.ADMIN.value)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def _same_team(actor: ActorContext, team_id: Optional[str]) -> bool:
    return actor.team_id is not None and actor.team_id == team_id


def can_transition(actor: ActorContext, lead, action: Action) -> bool:
    """
    Decide whether ``actor`` may apply ``action`` to ``lead``.

    - admin/manager: any lead within their team, never other teams
    - closer: only leads assigned to them, plus accepting unassigned team leads
    - setter: never (setters only create)
    """
    if not actor.is_active:
        return False

    if actor.is_supervisor:
        return _same_team(actor, lead.team_id)

    if actor.role == UserRole.CLOSER.value:
        if action == Action.ASSIGN:
            return False
        if lead.assigned_closer_id is None:
            return action == Action.ACCEPT and _same_team(actor, lead.team_id)
        return lead.assigned_closer_id == actor.uid

    return False


def can_create_lead(actor: ActorContext, team_id: Optional[str] = None) -> bool:
    """Setters, managers and admins create leads; admins may target any team"""
    if not actor.is_active:
        return False
    if actor.role not in (UserRole.SETTER.value, UserRole.MANAGER.value, UserRole.ADMIN.value):
        return False
    target = team_id or actor.team_id
    if target is None:
        return False
    return actor.is_admin or _same_team(actor, target)


def can_verify(actor: ActorContext, lead) -> bool:
    """The lead's own setter, or a manager/admin of the lead's team"""
    if not actor.is_active:
        return False
    if actor.is_supervisor:
        return _same_team(actor, lead.team_id)
    return (
        actor.role == UserRole.SETTER.value
        and lead.setter_id == actor.uid
        and _same_team(actor, lead.team_id)
    )


def can_view_team(actor: ActorContext, team_id: Optional[str]) -> bool:
    if not actor.is_active:
        return False
    return actor.is_admin or _same_team(actor, team_id)


def can_administer(actor: ActorContext, team_id: Optional[str]) -> bool:
    """User administration: admins anywhere, managers within their own team"""
    if not actor.is_active or not actor.is_supervisor:
        return False
    return actor.is_admin or _same_team(actor, team_id)
