"""
Team management and statistics
"""
from typing import Any, Dict, List, Optional

from leadflow.database.models.database import Team
from leadflow.repositories.closer_repository import CloserRepository
from leadflow.repositories.lead_repository import LeadRepository
from leadflow.repositories.user_repository import TeamRepository
from leadflow.services.authorization import ActorContext, can_view_team
from leadflow.services.base_service import BaseService
from leadflow.utils.exceptions import InvalidArgumentError, NotFoundError, PermissionDeniedError
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)


class TeamService(BaseService):

    def __init__(self, db, **kwargs):
        super().__init__(db, **kwargs)
        self.teams = TeamRepository(db)
        self.leads = LeadRepository(db)
        self.closers = CloserRepository(db)

    def create_team(self, name: str, actor: ActorContext, region_id: Optional[str] = None) -> Team:
        if not actor.is_active or not actor.is_admin:
            raise PermissionDeniedError("Only admins can create teams")
        name = (name or "").strip()
        if not name:
            raise InvalidArgumentError("Missing required field: name")

        team = self.teams.create(name=name, region_id=region_id, is_active=True)
        self.commit()
        self.db.refresh(team)
        logger.info(f"[green]✅ Created team {team.name}[/green] [dim]({team.id})[/dim]")
        return team

    def list_teams(self, actor: ActorContext) -> List[Team]:
        if actor.is_admin and actor.is_active:
            return self.teams.find_visible(include_inactive=True)
        return [team for team in self.teams.find_visible() if team.id == actor.team_id]

    def get_team_stats(self, team_id: str, actor: ActorContext) -> Dict[str, Any]:
        if not can_view_team(actor, team_id):
            raise PermissionDeniedError("You can only view statistics for your own team")
        team = self.teams.find_by_id(team_id)
        if team is None:
            raise NotFoundError("Team not found")

        by_status = self.leads.count_by_status(team_id)
        by_closer = self.leads.count_by_closer(team_id)
        closers = self.closers.find_for_team(team_id)

        return {
            "team_id": team.id,
            "team_name": team.name,
            "total_leads": sum(by_status.values()),
            "by_status": by_status,
            "on_duty_closers": sum(1 for c in closers if c.on_duty),
            "closers": [
                {
                    "id": c.id,
                    "name": c.name,
                    "on_duty": c.on_duty,
                    "lineup_order": c.lineup_order,
                    "assigned_leads": by_closer.get(c.id, 0),
                }
                for c in closers
            ],
        }
