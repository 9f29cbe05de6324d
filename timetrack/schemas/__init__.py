"""
Pydantic schemas for the time tracker entities.

Provides the validated value types for users, projects and time entries,
together with the filters used to query them.
"""
from .base import Entity, build, utc_now, validate_name
from .user import User, UserRole, new_user
from .project import Project, new_project
from .time_tracking import (
    ClosedState, OpenState, TimeEntry, TimeEntryFilter, TimeEntryStatus, open_entry
)

__all__ = [
    "Entity", "build", "utc_now", "validate_name",
    "User", "UserRole", "new_user",
    "Project", "new_project",
    "ClosedState", "OpenState", "TimeEntry", "TimeEntryFilter", "TimeEntryStatus", "open_entry",
]
