"""
SQLAlchemy database models for the time tracker.

Defines the tables for users, projects and time entries. An open time entry
carries an ``open_key`` built from its user and project identifiers; the
unique constraint on that column is what allows at most one open entry per
user-project pair, and clearing it on stop frees the pair again.
"""
from sqlalchemy import (
    CheckConstraint, Column, DateTime, Enum, ForeignKey, Index, Interval, String, Text, UniqueConstraint
)
from sqlalchemy.orm import declarative_base

from ..schemas.user import UserRole

Base = declarative_base()


def open_key_for(user_id: str, project_id: str) -> str:
    """Storage key of the open entry for a user-project pair."""
    return f"{user_id}:{project_id}"


class UserRecord(Base):
    """User row, addressed by id and by API key."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    username = Column(String(25), nullable=False)
    api_key = Column(String(32), nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.USER)
    created_at = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(36), nullable=False)

    __table_args__ = (
        UniqueConstraint("username", name="uq_user_username"),
        UniqueConstraint("api_key", name="uq_user_api_key"),
        Index("idx_user_role", "role"),
    )

    def __repr__(self):
        return f"<UserRecord(id={self.id}, username='{self.username}')>"


class ProjectRecord(Base):
    """Project row, listed by owner."""
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    name = Column(String(25), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    modified_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_project_name_per_owner"),
        Index("idx_project_owner", "owner_id"),
    )

    def __repr__(self):
        return f"<ProjectRecord(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"


class TimeEntryRecord(Base):
    """Time entry row; ``open_key`` is set while the entry is open."""
    __tablename__ = "time_entries"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    stopped_at = Column(DateTime(timezone=True), nullable=True)
    duration = Column(Interval, nullable=True)
    comment = Column(Text, nullable=True)
    open_key = Column(String(73), nullable=True)

    __table_args__ = (
        UniqueConstraint("open_key", name="uq_time_entry_open_key"),
        CheckConstraint(
            "(stopped_at IS NULL AND duration IS NULL AND open_key IS NOT NULL) OR "
            "(stopped_at IS NOT NULL AND duration IS NOT NULL AND open_key IS NULL)",
            name="ck_time_entry_state",
        ),
        Index("idx_time_entry_user_project", "user_id", "project_id"),
        Index("idx_time_entry_started_at", "started_at"),
    )

    def __repr__(self):
        return f"<TimeEntryRecord(id={self.id}, user_id={self.user_id}, project_id={self.project_id})>"
