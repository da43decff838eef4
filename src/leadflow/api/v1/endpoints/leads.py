"""
Leads API endpoints
"""
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from leadflow.api.v1.dependencies import require_admin
from leadflow.core.config import settings
from leadflow.core.dependencies import get_current_actor, get_db
from leadflow.schemas.leads import (
    AcceptRequest,
    ActivityResponse,
    AssignRequest,
    CompleteRequest,
    DataQualityReport,
    JobRunResponse,
    LeadCreate,
    LeadDetail,
    LeadListResponse,
    ScheduledQueueResponse,
    ScheduleRequest,
    VerifyRequest,
)
from leadflow.services.authorization import ActorContext
from leadflow.services.lead_service import LeadService
from leadflow.services.notification_service import deliver_notifications
from leadflow.services.reminder_service import ReminderService
from leadflow.services.scheduling import day_window, get_zone
from leadflow.utils.exceptions import InternalError, InvalidArgumentError
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def _dispatch(background_tasks: BackgroundTasks, service) -> None:
    """Deliver the service's queued notifications after the response is sent"""
    if service.outbox:
        background_tasks.add_task(deliver_notifications, list(service.outbox))


@router.post("/leads", response_model=LeadDetail, status_code=201)
async def create_lead(
    payload: LeadCreate,
    background_tasks: BackgroundTasks,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Create a lead; immediate leads go to the next available closer"""
    try:
        service = LeadService(db)
        lead = service.create_lead(payload, actor)
        _dispatch(background_tasks, service)
        return lead
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error creating lead:[/red] {e}")
        raise InternalError()


@router.get("/leads", response_model=LeadListResponse)
async def list_leads(
    team_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Get a team's leads, newest first.

    Args:
        team_id: Team to list (defaults to the caller's team)
        status: Optional status filter
        skip: Number of records to skip
        limit: Maximum number of records to return
    """
    try:
        leads = LeadService(db).list_leads(actor, team_id=team_id, status=status, skip=skip, limit=limit)
        return {"total": len(leads), "skip": skip, "limit": limit, "leads": leads}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error fetching leads:[/red] {e}")
        raise InternalError()


@router.get("/leads/scheduled", response_model=ScheduledQueueResponse)
async def scheduled_queue(
    date: Optional[str] = Query(None, description="Calendar day in the dispatch timezone, YYYY-MM-DD"),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    team_id: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Pending appointments in a half-open window, earliest first.
    Either ``date`` or both ``start`` and ``end``; defaults to today.
    """
    try:
        tz_name = settings.dispatch.timezone
        if start is not None or end is not None:
            if start is None or end is None:
                raise InvalidArgumentError("Both start and end are required for a custom window")
            if start.tzinfo is None:
                start = start.replace(tzinfo=get_zone(tz_name))
            if end.tzinfo is None:
                end = end.replace(tzinfo=get_zone(tz_name))
        else:
            day = date or datetime.now(get_zone(tz_name)).date()
            try:
                start, end = day_window(day, tz_name)
            except ValueError as e:
                raise InvalidArgumentError(str(e))

        target_team = team_id or actor.team_id
        leads = LeadService(db).scheduled_queue(actor, start, end, team_id=target_team)
        return {"team_id": target_team, "start": start, "end": end, "total": len(leads), "leads": leads}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error fetching scheduled queue:[/red] {e}")
        raise InternalError()


@router.get("/leads/data-quality", response_model=DataQualityReport)
async def data_quality(
    team_id: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Scheduled leads that are missing their appointment time"""
    try:
        issues = LeadService(db).data_quality_report(actor, team_id=team_id)
        return {
            "checked_at": datetime.now(timezone.utc),
            "total_issues": len(issues),
            "issues": [
                {
                    "lead_id": lead.id,
                    "team_id": lead.team_id,
                    "status": lead.status,
                    "customer_name": lead.customer_name,
                    "problem": "missing_appointment_time",
                }
                for lead in issues
            ],
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error running data-quality check:[/red] {e}")
        raise InternalError()


@router.post("/leads/transitions/run", response_model=JobRunResponse)
async def run_scheduled_transitions(
    background_tasks: BackgroundTasks,
    actor: ActorContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Apply the pre-appointment transition rule now"""
    try:
        service = LeadService(db)
        counts = service.process_scheduled_transitions()
        _dispatch(background_tasks, service)
        return {"job": "scheduled_transitions", "processed": counts["released"] + counts["flagged"], "details": counts}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error processing scheduled transitions:[/red] {e}")
        raise InternalError()


@router.post("/leads/reminders/run", response_model=JobRunResponse)
async def run_reminders(
    background_tasks: BackgroundTasks,
    actor: ActorContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Send appointment reminders that are due"""
    try:
        service = ReminderService(db)
        sent = service.process_due_reminders()
        _dispatch(background_tasks, service)
        return {"job": "appointment_reminders", "processed": sent}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error processing reminders:[/red] {e}")
        raise InternalError()


@router.get("/leads/{lead_id}", response_model=LeadDetail)
async def get_lead(
    lead_id: str,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        return LeadService(db).get_lead(lead_id, actor)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error fetching lead {lead_id}:[/red] {e}")
        raise InternalError()


@router.get("/leads/{lead_id}/activities", response_model=List[ActivityResponse])
async def get_lead_activities(
    lead_id: str,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        return LeadService(db).lead_activities(lead_id, actor)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error fetching activities for lead {lead_id}:[/red] {e}")
        raise InternalError()


@router.post("/leads/{lead_id}/accept", response_model=LeadDetail)
async def accept_lead(
    lead_id: str,
    background_tasks: BackgroundTasks,
    payload: Optional[AcceptRequest] = None,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Accept a job. Returns 409 when another closer got there first.
    Managers and admins may accept on behalf of a closer of their team.
    """
    try:
        service = LeadService(db)
        lead = service.get_lead(lead_id, actor)
        lead = service.accept_lead(lead, actor, on_behalf_of=payload.on_behalf_of if payload else None)
        _dispatch(background_tasks, service)
        return lead
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error accepting lead {lead_id}:[/red] {e}")
        raise InternalError()


@router.post("/leads/{lead_id}/schedule", response_model=LeadDetail)
async def schedule_lead(
    lead_id: str,
    payload: ScheduleRequest,
    background_tasks: BackgroundTasks,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Book or move the appointment; date and time are local to the dispatch timezone"""
    try:
        service = LeadService(db)
        lead = service.get_lead(lead_id, actor)
        lead = service.schedule_lead(lead, payload.appointment_date, payload.appointment_time, actor)
        _dispatch(background_tasks, service)
        return lead
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error scheduling lead {lead_id}:[/red] {e}")
        raise InternalError()


@router.post("/leads/{lead_id}/complete", response_model=LeadDetail)
async def complete_lead(
    lead_id: str,
    payload: CompleteRequest,
    background_tasks: BackgroundTasks,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        service = LeadService(db)
        lead = service.get_lead(lead_id, actor)
        lead = service.complete_lead(lead, payload.notes, payload.photo_urls, actor)
        _dispatch(background_tasks, service)
        return lead
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error completing lead {lead_id}:[/red] {e}")
        raise InternalError()


@router.post("/leads/{lead_id}/verify", response_model=LeadDetail)
async def verify_lead(
    lead_id: str,
    payload: VerifyRequest,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        service = LeadService(db)
        lead = service.get_lead(lead_id, actor)
        return service.verify_lead(lead, payload.verified, actor)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error verifying lead {lead_id}:[/red] {e}")
        raise InternalError()


@router.post("/leads/{lead_id}/assign", response_model=LeadDetail)
async def assign_lead(
    lead_id: str,
    background_tasks: BackgroundTasks,
    payload: Optional[AssignRequest] = None,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Assign to a specific on-duty closer, or the next one in the lineup"""
    try:
        service = LeadService(db)
        lead = service.get_lead(lead_id, actor)
        lead = service.assign_lead(lead, actor, closer_id=payload.closer_id if payload else None)
        _dispatch(background_tasks, service)
        return lead
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error assigning lead {lead_id}:[/red] {e}")
        raise InternalError()
