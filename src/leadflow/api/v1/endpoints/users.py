"""
User administration endpoints
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from leadflow.core.dependencies import get_current_actor, get_current_user, get_db, get_token_claims
from leadflow.database.models.database import AppUser
from leadflow.schemas.users import (
    ProfileCreate,
    RoleUpdate,
    TeamAssignment,
    UserResponse,
    UserUpdateResponse,
)
from leadflow.services.authorization import ActorContext
from leadflow.services.user_service import UserService
from leadflow.utils.exceptions import InternalError
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("/users/me", response_model=UserResponse, status_code=201)
async def register_profile(
    payload: ProfileCreate,
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db),
):
    """Create the caller's profile; it stays pending until approved"""
    try:
        return UserService(db).register_profile(
            uid=claims["sub"],
            email=payload.email or claims.get("email"),
            display_name=payload.display_name or claims.get("name"),
            team_id=payload.team_id,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error registering profile:[/red] {e}")
        raise InternalError()


@router.get("/users/me", response_model=UserResponse)
async def get_my_profile(user: AppUser = Depends(get_current_user)):
    return user


@router.get("/users/pending", response_model=List[UserResponse])
async def list_pending_users(
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        return UserService(db).list_pending_users(actor)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error fetching pending users:[/red] {e}")
        raise InternalError()


@router.post("/users/{user_id}/approve", response_model=UserUpdateResponse)
async def approve_user(
    user_id: str,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        user, message = UserService(db).approve_user(user_id, actor)
        return {"success": True, "message": message, "user": user}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error approving user {user_id}:[/red] {e}")
        raise InternalError()


@router.put("/users/{user_id}/role", response_model=UserUpdateResponse)
async def update_user_role(
    user_id: str,
    payload: RoleUpdate,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Change a user's role; the closer lineup follows the new role"""
    try:
        user, message = UserService(db).update_user_role(user_id, payload.role, actor)
        return {"success": True, "message": message, "user": user}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error updating role for user {user_id}:[/red] {e}")
        raise InternalError()


@router.put("/users/{user_id}/team", response_model=UserUpdateResponse)
async def assign_team(
    user_id: str,
    payload: TeamAssignment,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        user = UserService(db).assign_team(user_id, payload.team_id, actor)
        return {"success": True, "message": f"User assigned to team {payload.team_id}", "user": user}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[red]Error assigning team for user {user_id}:[/red] {e}")
        raise InternalError()
