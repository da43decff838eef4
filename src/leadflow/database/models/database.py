"""
Database models for the dispatch tables.
"""
from sqlalchemy import Boolean, Column, ForeignKey, Integer, JSON, String, Text

from leadflow.database.models.base import BaseModel, UTCDateTime
from leadflow.database.models.enums import (
    DispatchType,
    LeadStatus,
    UserRole,
    UserStatus,
)


class Team(BaseModel):
    """
    Scoping unit limiting visibility and authorization for non-admin roles.
    Maps to the 'teams' table.
    """
    __tablename__ = "teams"

    name = Column(String(200), nullable=False)
    region_id = Column(String(64), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)


class AppUser(BaseModel):
    """
    Application profile of an identity-provider user.
    The primary key is the provider uid. Maps to the 'users' table.
    """
    __tablename__ = "users"

    email = Column(String(255), nullable=True, index=True)
    display_name = Column(String(200), nullable=True)
    role = Column(String(32), default=UserRole.PENDING.value, nullable=False, index=True)
    team_id = Column(String(64), ForeignKey("teams.id"), nullable=True, index=True)
    status = Column(String(32), default=UserStatus.PENDING_APPROVAL.value, nullable=False, index=True)
    approved_by = Column(String(64), nullable=True)
    approved_at = Column(UTCDateTime, nullable=True)


class Closer(BaseModel):
    """
    Lineup entry for a user in a closing role.
    The primary key is the user uid. Maps to the 'closers' table.
    """
    __tablename__ = "closers"

    name = Column(String(200), nullable=False)
    team_id = Column(String(64), ForeignKey("teams.id"), nullable=True, index=True)
    role = Column(String(32), default=UserRole.CLOSER.value, nullable=False)
    on_duty = Column(Boolean, default=False, nullable=False, index=True)
    lineup_order = Column(Integer, default=999, nullable=False)


class Lead(BaseModel):
    """
    Customer record moving through the dispatch pipeline.
    Maps to the 'leads' table.
    """
    __tablename__ = "leads"

    # Customer
    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(50), nullable=False)
    address = Column(String(500), nullable=False)

    # Pipeline
    status = Column(String(32), default=LeadStatus.WAITING_ASSIGNMENT.value, nullable=False, index=True)
    dispatch_type = Column(String(32), default=DispatchType.IMMEDIATE.value, nullable=False)
    team_id = Column(String(64), ForeignKey("teams.id"), nullable=False, index=True)
    transition_reason = Column(String(64), nullable=True)

    # People
    setter_id = Column(String(64), nullable=True, index=True)
    setter_name = Column(String(200), nullable=True)
    assigned_closer_id = Column(String(64), nullable=True, index=True)
    assigned_closer_name = Column(String(200), nullable=True)

    # Scheduling
    scheduled_appointment_time = Column(UTCDateTime, nullable=True, index=True)
    setter_verified = Column(Boolean, default=False, nullable=False)
    verified_by = Column(String(64), nullable=True)
    verified_at = Column(UTCDateTime, nullable=True)

    # Disposition
    accepted_at = Column(UTCDateTime, nullable=True)
    accepted_by = Column(String(64), nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
    disposition_notes = Column(Text, default="", nullable=False)
    photo_urls = Column(JSON, default=list, nullable=False)


class Activity(BaseModel):
    """
    Append-only audit entry for lead and lineup events.
    Maps to the 'activities' table.
    """
    __tablename__ = "activities"

    type = Column(String(64), nullable=False, index=True)
    lead_id = Column(String(64), nullable=True, index=True)
    team_id = Column(String(64), nullable=True, index=True)
    closer_id = Column(String(64), nullable=True)
    actor_id = Column(String(64), nullable=True)
    actor_role = Column(String(32), nullable=True)
    on_behalf_of = Column(String(64), nullable=True)
    details = Column(JSON, default=dict, nullable=False)


class AppointmentReminder(BaseModel):
    """
    Pending push reminder for an upcoming appointment.
    Maps to the 'appointment_reminders' table.
    """
    __tablename__ = "appointment_reminders"

    lead_id = Column(String(64), nullable=False, index=True)
    assigned_closer_id = Column(String(64), nullable=False)
    appointment_time = Column(UTCDateTime, nullable=False)
    reminder_time = Column(UTCDateTime, nullable=False, index=True)
    customer_name = Column(String(200), nullable=True)
    address = Column(String(500), nullable=True)
    processed = Column(Boolean, default=False, nullable=False, index=True)
