"""
Database models module
"""
from leadflow.database.models.base import Base
from leadflow.database.models.database import (  # Import all models here
    Activity,
    AppointmentReminder,
    AppUser,
    Closer,
    Lead,
    Team,
)

__all__ = ["Base", "Activity", "AppointmentReminder", "AppUser", "Closer", "Lead", "Team"]
