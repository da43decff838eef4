"""
Lead repository: queries and conditional writes against the leads table
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, func, or_, update

from leadflow.database.models.base import utcnow
from leadflow.database.models.database import Lead
from leadflow.database.models.enums import (
    ACTIVE_JOB_STATUSES,
    SCHEDULED_STATUSES,
    LeadStatus,
)
from leadflow.repositories.base_repository import BaseRepository

# Sentinel for "do not constrain the assignee" in conditional updates
ANY_CLOSER = object()


class LeadRepository(BaseRepository[Lead]):
    model = Lead

    def find_for_team(
        self,
        team_id: str,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Lead]:
        """Newest-first page of a team's leads, optionally filtered by status"""
        query = self.db.query(Lead).filter(Lead.team_id == team_id)
        if status:
            query = query.filter(Lead.status == status)
        return (
            query.order_by(Lead.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def find_scheduled_window(
        self,
        team_id: str,
        start: datetime,
        end: datetime,
    ) -> List[Lead]:
        """
        Leads with a pending future appointment in the half-open window [start, end),
        ordered by appointment time.
        """
        return (
            self.db.query(Lead)
            .filter(
                Lead.team_id == team_id,
                Lead.status.in_(SCHEDULED_STATUSES),
                Lead.scheduled_appointment_time.isnot(None),
                Lead.scheduled_appointment_time >= start,
                Lead.scheduled_appointment_time < end,
            )
            .order_by(Lead.scheduled_appointment_time.asc())
            .all()
        )

    def find_scheduled_without_time(self, team_id: Optional[str] = None) -> List[Lead]:
        """Leads in the scheduled family that are missing their appointment time"""
        query = self.db.query(Lead).filter(
            Lead.status.in_(SCHEDULED_STATUSES),
            Lead.scheduled_appointment_time.is_(None),
        )
        if team_id:
            query = query.filter(Lead.team_id == team_id)
        return query.order_by(Lead.created_at.asc()).all()

    def find_due_for_transition(self, now: datetime, until: datetime, limit: int = 100) -> List[Lead]:
        """Scheduled-family leads whose appointment lies in (now, until]"""
        return (
            self.db.query(Lead)
            .filter(
                Lead.status.in_(SCHEDULED_STATUSES),
                Lead.scheduled_appointment_time > now,
                Lead.scheduled_appointment_time <= until,
            )
            .order_by(Lead.scheduled_appointment_time.asc())
            .limit(limit)
            .all()
        )

    def find_unaccepted_for_closer(self, closer_id: str) -> List[Lead]:
        """Leads assigned to a closer that the closer has not started yet"""
        statuses = set(SCHEDULED_STATUSES) | {LeadStatus.WAITING_ASSIGNMENT.value}
        return (
            self.db.query(Lead)
            .filter(Lead.assigned_closer_id == closer_id, Lead.status.in_(statuses))
            .all()
        )

    def count_active_assignments(self, closer_id: str) -> int:
        """
        Leads that occupy a closer in the round-robin.
        Unverified leads in the scheduled family do not count towards the limit.
        """
        occupying = set(ACTIVE_JOB_STATUSES) | {LeadStatus.WAITING_ASSIGNMENT.value}
        return (
            self.db.query(func.count(Lead.id))
            .filter(
                Lead.assigned_closer_id == closer_id,
                or_(
                    Lead.status.in_(occupying),
                    and_(
                        Lead.status.in_(SCHEDULED_STATUSES),
                        Lead.setter_verified.is_(True),
                    ),
                ),
            )
            .scalar()
        )

    def count_by_status(self, team_id: str) -> Dict[str, int]:
        rows = (
            self.db.query(Lead.status, func.count(Lead.id))
            .filter(Lead.team_id == team_id)
            .group_by(Lead.status)
            .all()
        )
        return {status: count for status, count in rows}

    def count_by_closer(self, team_id: str) -> Dict[str, int]:
        rows = (
            self.db.query(Lead.assigned_closer_id, func.count(Lead.id))
            .filter(Lead.team_id == team_id, Lead.assigned_closer_id.isnot(None))
            .group_by(Lead.assigned_closer_id)
            .all()
        )
        return {closer_id: count for closer_id, count in rows}

    def conditional_update(
        self,
        lead_id: str,
        expected_statuses: Iterable[str],
        values: Dict[str, Any],
        expected_closer_id: Any = ANY_CLOSER,
    ) -> bool:
        """
        Apply ``values`` only if the row still matches the expected state.

        Args:
            lead_id: Lead to update
            expected_statuses: Statuses the row must still be in at write time
            values: Column values to write
            expected_closer_id: Required current assignee (None means unassigned);
                                ANY_CLOSER leaves the assignee unconstrained

        Returns:
            True if exactly one row was updated, False if the lead changed underneath
        """
        conditions = [Lead.id == lead_id, Lead.status.in_(list(expected_statuses))]
        if expected_closer_id is None:
            conditions.append(Lead.assigned_closer_id.is_(None))
        elif expected_closer_id is not ANY_CLOSER:
            conditions.append(Lead.assigned_closer_id == expected_closer_id)

        stmt = (
            update(Lead)
            .where(*conditions)
            .values(**values, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1
