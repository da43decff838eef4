"""
Repositories for users and teams
"""
from typing import List, Optional

from leadflow.database.models.database import AppUser, Team
from leadflow.database.models.enums import UserStatus
from leadflow.repositories.base_repository import BaseRepository


class UserRepository(BaseRepository[AppUser]):
    model = AppUser

    def find_pending(self, team_id: Optional[str] = None) -> List[AppUser]:
        """Users waiting for a manager or admin to approve them"""
        query = self.db.query(AppUser).filter(AppUser.status == UserStatus.PENDING_APPROVAL.value)
        if team_id:
            query = query.filter(AppUser.team_id == team_id)
        return query.order_by(AppUser.created_at.asc()).all()


class TeamRepository(BaseRepository[Team]):
    model = Team

    def find_visible(self, include_inactive: bool = False) -> List[Team]:
        query = self.db.query(Team)
        if not include_inactive:
            query = query.filter(Team.is_active.is_(True))
        return query.order_by(Team.name.asc()).all()
