"""
Canonical enum values stored in the lead, user and closer tables.
"""
import enum


class LeadStatus(str, enum.Enum):
    WAITING_ASSIGNMENT = "waiting_assignment"
    ACCEPTED = "accepted"
    IN_PROCESS = "in_process"  # legacy synonym of ACCEPTED
    SCHEDULED = "scheduled"
    RESCHEDULED = "rescheduled"
    NEEDS_VERIFICATION = "needs_verification"
    COMPLETED = "completed"


class DispatchType(str, enum.Enum):
    IMMEDIATE = "immediate"
    SCHEDULED = "scheduled"


class UserRole(str, enum.Enum):
    SETTER = "setter"
    CLOSER = "closer"
    MANAGER = "manager"
    ADMIN = "admin"
    PENDING = "pending"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING_APPROVAL = "pending_approval"


class ActivityType(str, enum.Enum):
    LEAD_CREATED = "lead_created"
    LEAD_ASSIGNED = "lead_assigned"
    LEAD_RELEASED = "lead_released"
    JOB_ACCEPTED = "job_accepted"
    LEAD_SCHEDULED = "lead_scheduled"
    LEAD_COMPLETED = "lead_completed"
    LEAD_VERIFIED = "lead_verified"
    ROUND_ROBIN_EXCEPTION = "round_robin_exception"
    ROUND_ROBIN_COMPLETION = "round_robin_completion"
    CLOSER_ADDED_TO_LINEUP = "closer_added_to_lineup"
    SCHEDULED_LEAD_TRANSITION = "scheduled_lead_transition"
    USER_APPROVED = "user_approved"


# The sets below hold plain string values: Enum hashes by member name, so
# membership tests against raw column values need the strings.

# Statuses that must carry an appointment time
SCHEDULED_STATUSES = frozenset({
    LeadStatus.SCHEDULED.value,
    LeadStatus.RESCHEDULED.value,
    LeadStatus.NEEDS_VERIFICATION.value,
})

# A closer is working the job
ACTIVE_JOB_STATUSES = frozenset({LeadStatus.ACCEPTED.value, LeadStatus.IN_PROCESS.value})

# Roles that appear in the closer lineup
CLOSING_ROLES = frozenset({UserRole.CLOSER.value, UserRole.MANAGER.value, UserRole.ADMIN.value})

ASSIGNABLE_ROLES = frozenset({
    UserRole.SETTER.value,
    UserRole.CLOSER.value,
    UserRole.MANAGER.value,
    UserRole.ADMIN.value,
})
