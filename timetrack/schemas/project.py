"""
Project schemas.
"""
import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from .base import Entity, Name, build, require_aware, utc_now


class Project(Entity):
    """Project entity owned by exactly one user."""
    id: str = Field(..., min_length=1, description="Project ID")
    name: Name = Field(..., description="Project name")
    owner_id: str = Field(..., min_length=1, description="Owning user ID")
    created_at: datetime = Field(..., description="Creation timestamp")
    modified_at: Optional[datetime] = Field(None, description="Last modification timestamp")

    @field_validator("created_at", "modified_at")
    @classmethod
    def timestamps_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return require_aware(value) if value is not None else None

    def renamed(self, name: str, now: Optional[datetime] = None) -> "Project":
        """Return a copy with a new name, validated like a new project."""
        return build(
            Project,
            **{**self.model_dump(), "name": name, "modified_at": now or utc_now()},
        )

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"


# PUBLIC_INTERFACE
def new_project(name: str, owner_id: str, now: Optional[datetime] = None) -> Project:
    """
    Create a new project owned by the given user.

    Raises:
        ValidationError: If the name is empty or too long
    """
    return build(
        Project,
        id=str(uuid.uuid4()),
        name=name,
        owner_id=owner_id,
        created_at=now or utc_now(),
    )
