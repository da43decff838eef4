"""
Lead API request and response schemas
"""
from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import Field

from leadflow.database.models.enums import DispatchType
from leadflow.schemas.base import BaseSchema, BaseResponseSchema


class LeadBase(BaseSchema):
    """Base lead schema with common fields"""
    customer_name: str
    customer_phone: str
    address: str


class LeadCreate(LeadBase):
    """Request body for creating a lead"""
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_phone: str = Field(..., min_length=1, max_length=50)
    address: str = Field(..., min_length=1, max_length=500)
    dispatch_type: DispatchType = DispatchType.IMMEDIATE
    team_id: Optional[str] = None
    appointment_date: Optional[str] = Field(None, description="Calendar date, YYYY-MM-DD")
    appointment_time: Optional[str] = Field(None, description="Local time of day, HH:MM")


class LeadSummary(LeadBase, BaseResponseSchema):
    """Summary schema for lead list responses"""
    status: str
    dispatch_type: str
    team_id: str
    setter_name: Optional[str] = None
    assigned_closer_id: Optional[str] = None
    assigned_closer_name: Optional[str] = None
    scheduled_appointment_time: Optional[datetime] = None
    setter_verified: bool = False


class LeadDetail(LeadSummary):
    """Detailed lead schema for single lead responses"""
    setter_id: Optional[str] = None
    transition_reason: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    disposition_notes: str = ""
    photo_urls: List[str] = Field(default_factory=list)


class LeadListResponse(BaseSchema):
    """Response schema for lead list endpoint"""
    total: int
    skip: int
    limit: int
    leads: List[LeadSummary]


class ScheduledQueueResponse(BaseSchema):
    """Scheduled appointments in a half-open window"""
    team_id: str
    start: datetime
    end: datetime
    total: int
    leads: List[LeadSummary]


class AcceptRequest(BaseSchema):
    on_behalf_of: Optional[str] = Field(None, description="Closer to accept for (managers and admins)")


class ScheduleRequest(BaseSchema):
    appointment_date: str = Field(..., description="Calendar date, YYYY-MM-DD")
    appointment_time: str = Field(..., description="Local time of day, HH:MM")


class CompleteRequest(BaseSchema):
    notes: str = ""
    photo_urls: List[str] = Field(default_factory=list)


class VerifyRequest(BaseSchema):
    verified: bool = True


class AssignRequest(BaseSchema):
    closer_id: Optional[str] = Field(None, description="Closer to assign; next available when omitted")


class ActivityResponse(BaseSchema):
    id: str
    type: str
    lead_id: Optional[str] = None
    team_id: Optional[str] = None
    closer_id: Optional[str] = None
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    on_behalf_of: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class DataQualityIssue(BaseSchema):
    lead_id: str
    team_id: str
    status: str
    customer_name: str
    problem: str


class DataQualityReport(BaseSchema):
    checked_at: datetime
    total_issues: int
    issues: List[DataQualityIssue]


class JobRunResponse(BaseSchema):
    """Result of a maintenance job run"""
    job: str
    processed: int
    details: Dict[str, int] = Field(default_factory=dict)
