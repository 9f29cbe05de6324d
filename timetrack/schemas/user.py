"""
User schemas.

Defines the user entity, its closed set of roles and the factory used by
administrators and provisioning to create users.
"""
import enum
import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ..auth.api_keys import generate_api_key, is_well_formed
from .base import Entity, Name, build, require_aware, utc_now

SYSTEM = "SYSTEM"


class UserRole(str, enum.Enum):
    """User roles."""
    ADMIN = "ADMIN"
    USER = "USER"


class User(Entity):
    """User entity."""
    id: str = Field(..., min_length=1, description="User ID")
    username: Name = Field(..., description="Unique user name")
    api_key: str = Field(..., description="Opaque bearer credential")
    role: UserRole = Field(..., description="User role")
    created_at: datetime = Field(..., description="Creation timestamp")
    created_by: str = Field(..., min_length=1, description="ID of the creating user or SYSTEM")

    @field_validator("api_key")
    @classmethod
    def api_key_shape(cls, value: str) -> str:
        if not is_well_formed(value):
            raise ValueError("API key must be 32 alphanumeric characters")
        return value

    @field_validator("created_at")
    @classmethod
    def created_at_aware(cls, value: datetime) -> datetime:
        return require_aware(value)

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    def redacted(self) -> dict:
        """Public representation without the API key."""
        return self.model_dump(exclude={"api_key"}, mode="json")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role={self.role.value})>"


# PUBLIC_INTERFACE
def new_user(
    username: str,
    role: UserRole,
    created_by: str,
    api_key: Optional[str] = None,
    now: Optional[datetime] = None,
) -> User:
    """
    Create a new user with a fresh identifier.

    Args:
        username: Unique user name
        role: Role assigned by the creator
        created_by: ID of the creating user, or SYSTEM
        api_key: Fixed API key; generated when omitted
        now: Creation timestamp; server clock when omitted

    Returns:
        User: The validated user

    Raises:
        ValidationError: If the name, role or key is malformed
    """
    return build(
        User,
        id=str(uuid.uuid4()),
        username=username,
        api_key=api_key if api_key is not None else generate_api_key(),
        role=role,
        created_at=now or utc_now(),
        created_by=created_by,
    )
