"""
Time tracking schemas.

A time entry is either Open (tracking in progress) or Closed (stopped, with a
duration derived from server-assigned timestamps). The state is a tagged union
discriminated by its status, so callers branch on the state type rather than
on a missing stop timestamp.
"""
import enum
import uuid
from datetime import datetime, timedelta
from typing import Annotated, Literal, Optional, Union

from pydantic import Field, field_validator, model_validator

from ..errors import Conflict
from .base import Entity, build, require_aware, utc_now


class TimeEntryStatus(str, enum.Enum):
    """Time entry status values."""
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"


class OpenState(Entity):
    """Tracking in progress."""
    status: Literal[TimeEntryStatus.IN_PROGRESS] = TimeEntryStatus.IN_PROGRESS


class ClosedState(Entity):
    """Tracking stopped."""
    status: Literal[TimeEntryStatus.FINISHED] = TimeEntryStatus.FINISHED
    stopped_at: datetime = Field(..., description="Stop timestamp")
    duration: timedelta = Field(..., description="stopped_at - started_at")

    @field_validator("stopped_at")
    @classmethod
    def stopped_at_aware(cls, value: datetime) -> datetime:
        return require_aware(value)

    @field_validator("duration")
    @classmethod
    def duration_not_negative(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("duration must not be negative")
        return value


EntryState = Annotated[Union[OpenState, ClosedState], Field(discriminator="status")]


class TimeEntry(Entity):
    """Time entry for one user on one project."""
    id: str = Field(..., min_length=1, description="Time entry ID")
    project_id: str = Field(..., min_length=1, description="Project ID")
    user_id: str = Field(..., min_length=1, description="User ID")
    started_at: datetime = Field(..., description="Start timestamp")
    comment: Optional[str] = Field(None, description="Free-form note")
    state: EntryState = Field(default_factory=OpenState, description="Open or closed state")

    @field_validator("started_at")
    @classmethod
    def started_at_aware(cls, value: datetime) -> datetime:
        return require_aware(value)

    @field_validator("comment")
    @classmethod
    def blank_comment_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @model_validator(mode="after")
    def closed_state_consistent(self) -> "TimeEntry":
        if isinstance(self.state, ClosedState):
            if self.state.stopped_at < self.started_at:
                raise ValueError("stopped_at must not be before started_at")
            if self.state.duration != self.state.stopped_at - self.started_at:
                raise ValueError("duration must equal stopped_at - started_at")
        return self

    @property
    def is_open(self) -> bool:
        return isinstance(self.state, OpenState)

    @property
    def status(self) -> TimeEntryStatus:
        return self.state.status

    def elapsed(self, now: Optional[datetime] = None) -> timedelta:
        """Duration so far for open entries, final duration for closed ones."""
        if isinstance(self.state, ClosedState):
            return self.state.duration
        return max((now or utc_now()) - self.started_at, timedelta(0))

    def close(self, stopped_at: datetime) -> "TimeEntry":
        """
        Transition Open -> Closed.

        Raises:
            Conflict: If the entry is already closed
            ValidationError: If stopped_at is before started_at
        """
        if not self.is_open:
            raise Conflict(f"Time entry {self.id} is already closed")
        data = self.model_dump(exclude={"state"})
        return build(
            TimeEntry,
            **data,
            state={
                "status": TimeEntryStatus.FINISHED,
                "stopped_at": stopped_at,
                "duration": stopped_at - self.started_at,
            },
        )

    def __repr__(self):
        return (
            f"<TimeEntry(id={self.id}, user_id={self.user_id}, "
            f"project_id={self.project_id}, status={self.status.value})>"
        )


class TimeEntryFilter(Entity):
    """Filter for listing time entries."""
    user_id: Optional[str] = Field(None, description="Filter by user")
    project_id: Optional[str] = Field(None, description="Filter by project")
    status: Optional[TimeEntryStatus] = Field(None, description="Filter by status")
    started_from: Optional[datetime] = Field(None, description="Inclusive lower bound on started_at")
    started_before: Optional[datetime] = Field(None, description="Exclusive upper bound on started_at")

    @field_validator("started_from", "started_before")
    @classmethod
    def bounds_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return require_aware(value) if value is not None else None


# PUBLIC_INTERFACE
def open_entry(
    user_id: str, project_id: str, started_at: datetime, comment: Optional[str] = None
) -> TimeEntry:
    """
    Create a new open time entry.

    Raises:
        ValidationError: If a reference is empty or the timestamp is naive
    """
    return build(
        TimeEntry,
        id=str(uuid.uuid4()),
        project_id=project_id,
        user_id=user_id,
        started_at=started_at,
        comment=comment,
        state=OpenState(),
    )
