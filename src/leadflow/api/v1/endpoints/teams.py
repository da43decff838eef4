"""
Team and closer lineup endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from leadflow.core.dependencies import get_current_actor, get_db
from leadflow.schemas.users import (
    CloserResponse,
    DutyUpdate,
    TeamCreate,
    TeamResponse,
    TeamStatsResponse,
)
from leadflow.services.authorization import ActorContext
from leadflow.services.lineup_service import LineupService
from leadflow.services.notification_service import deliver_notifications
from leadflow.services.team_service import TeamService
from leadflow.utils.exceptions import InternalError
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/teams", response_model=List[TeamResponse])
async def list_teams(
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Admins see every team; everyone else sees their own"""
    try:
        return TeamService(db).list_teams(actor)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error fetching teams:[/red] {e}")
        raise InternalError()


@router.post("/teams", response_model=TeamResponse, status_code=201)
async def create_team(
    payload: TeamCreate,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        return TeamService(db).create_team(payload.name, actor, region_id=payload.region_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error creating team:[/red] {e}")
        raise InternalError()


@router.get("/teams/{team_id}/stats", response_model=TeamStatsResponse)
async def get_team_stats(
    team_id: str,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        return TeamService(db).get_team_stats(team_id, actor)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error fetching stats for team {team_id}:[/red] {e}")
        raise InternalError()


@router.get("/closers", response_model=List[CloserResponse])
async def list_closers(
    team_id: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Team lineup, front of the rotation first"""
    try:
        return LineupService(db).list_lineup(actor, team_id=team_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error fetching lineup:[/red] {e}")
        raise InternalError()


@router.put("/closers/{closer_id}/duty", response_model=CloserResponse)
async def set_duty(
    closer_id: str,
    payload: DutyUpdate,
    background_tasks: BackgroundTasks,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Going off duty hands the closer's unstarted leads back to the queue"""
    try:
        service = LineupService(db)
        closer = service.set_duty(closer_id, payload.on_duty, actor)
        if service.outbox:
            background_tasks.add_task(deliver_notifications, list(service.outbox))
        return closer
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error updating duty for closer {closer_id}:[/red] {e}")
        raise InternalError()
