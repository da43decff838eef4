"""
Closer lineup repository
"""
from typing import List, Optional

from sqlalchemy import func

from leadflow.database.models.database import Closer
from leadflow.repositories.base_repository import BaseRepository


class CloserRepository(BaseRepository[Closer]):
    model = Closer

    def find_for_team(self, team_id: str, on_duty: Optional[bool] = None) -> List[Closer]:
        """Team lineup, front of the rotation first"""
        query = self.db.query(Closer).filter(Closer.team_id == team_id)
        if on_duty is not None:
            query = query.filter(Closer.on_duty.is_(on_duty))
        return query.order_by(Closer.lineup_order.asc(), Closer.created_at.asc()).all()

    def max_lineup_order(self, team_id: str) -> Optional[int]:
        return self.db.query(func.max(Closer.lineup_order)).filter(Closer.team_id == team_id).scalar()

    def min_lineup_order(self, team_id: str) -> Optional[int]:
        return self.db.query(func.min(Closer.lineup_order)).filter(Closer.team_id == team_id).scalar()
