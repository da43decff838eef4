"""
Base service class for common service functionality
"""
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leadflow.database.models.base import utcnow
from leadflow.database.models.database import Activity
from leadflow.repositories.activity_repository import ActivityRepository
from leadflow.services.authorization import ActorContext
from leadflow.services.notification_service import PushNotification
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)


class BaseService:
    """
    Base service class.
    A service owns the unit of work for one request: repositories flush,
    the service commits. Notifications produced along the way are collected
    in ``outbox`` and delivered by the caller once the commit succeeded.
    """

    def __init__(
        self,
        db: Session,
        outbox: Optional[List[PushNotification]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.outbox: List[PushNotification] = outbox if outbox is not None else []
        self.clock = clock or utcnow
        self.activities = ActivityRepository(db)

    def now(self) -> datetime:
        return self.clock()

    def commit(self) -> None:
        """Commit the unit of work, rolling back on store failure"""
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"[red]❌ Database commit failed:[/red] {e}")
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()

    def record_activity(
        self,
        type: str,
        actor: Optional[ActorContext] = None,
        lead_id: Optional[str] = None,
        team_id: Optional[str] = None,
        closer_id: Optional[str] = None,
        on_behalf_of: Optional[str] = None,
        **details,
    ) -> Activity:
        """Append an activity entry to the current unit of work"""
        return self.activities.create(
            type=type,
            lead_id=lead_id,
            team_id=team_id,
            closer_id=closer_id,
            actor_id=actor.uid if actor else None,
            actor_role=actor.role if actor else None,
            on_behalf_of=on_behalf_of,
            details=details,
        )

    def notify(self, notification: PushNotification) -> None:
        self.outbox.append(notification)
