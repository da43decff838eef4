"""
User, team and closer schemas
"""
from typing import Dict, List, Optional
from datetime import datetime

from pydantic import Field

from leadflow.schemas.base import BaseSchema, BaseResponseSchema


class ProfileCreate(BaseSchema):
    email: Optional[str] = None
    display_name: Optional[str] = Field(None, max_length=200)
    team_id: Optional[str] = None


class UserResponse(BaseResponseSchema):
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: str
    team_id: Optional[str] = None
    status: str
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None


class RoleUpdate(BaseSchema):
    role: str


class TeamAssignment(BaseSchema):
    team_id: str


class UserUpdateResponse(BaseSchema):
    success: bool = True
    message: str
    user: UserResponse


class TeamCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    region_id: Optional[str] = None


class TeamResponse(BaseResponseSchema):
    name: str
    region_id: Optional[str] = None
    is_active: bool


class CloserResponse(BaseResponseSchema):
    name: str
    team_id: Optional[str] = None
    role: str
    on_duty: bool
    lineup_order: int


class DutyUpdate(BaseSchema):
    on_duty: bool


class CloserStats(BaseSchema):
    id: str
    name: str
    on_duty: bool
    lineup_order: int
    assigned_leads: int


class TeamStatsResponse(BaseSchema):
    team_id: str
    team_name: str
    total_leads: int
    by_status: Dict[str, int]
    on_duty_closers: int
    closers: List[CloserStats]
