"""
Pydantic schemas for request/response validation
"""
from leadflow.schemas.base import (
    BaseSchema,
    TimestampSchema,
    IDSchema,
    BaseResponseSchema,
)
from leadflow.schemas.leads import (
    LeadBase,
    LeadCreate,
    LeadSummary,
    LeadDetail,
    LeadListResponse,
    ScheduledQueueResponse,
)
from leadflow.schemas.users import (
    UserResponse,
    TeamResponse,
    CloserResponse,
    TeamStatsResponse,
)

__all__ = [
    # Base schemas
    "BaseSchema",
    "TimestampSchema",
    "IDSchema",
    "BaseResponseSchema",
    # Lead schemas
    "LeadBase",
    "LeadCreate",
    "LeadSummary",
    "LeadDetail",
    "LeadListResponse",
    "ScheduledQueueResponse",
    # User, team and closer schemas
    "UserResponse",
    "TeamResponse",
    "CloserResponse",
    "TeamStatsResponse",
]
