"""
Shared pydantic configuration for entity schemas.
"""
from datetime import datetime, timezone
from typing import Annotated, Type, TypeVar

from pydantic import BaseModel, ConfigDict, StringConstraints, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError

E = TypeVar("E", bound="Entity")

# User and project names: 1 to 25 characters after trimming
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=25)]
_name_adapter = TypeAdapter(Name)


def utc_now() -> datetime:
    """Trusted server clock."""
    return datetime.now(timezone.utc)


def require_aware(value: datetime) -> datetime:
    """Reject naive timestamps and normalise aware ones to UTC."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("timestamp must be timezone-aware")
    return value.astimezone(timezone.utc)


def describe_errors(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


class Entity(BaseModel):
    """Immutable, validated domain value."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")


def build(model: Type[E], **fields) -> E:
    """
    Construct an entity, translating pydantic failures into ValidationError.

    Args:
        model: Entity class to construct
        **fields: Field values

    Returns:
        The constructed entity

    Raises:
        ValidationError: If any field is malformed
    """
    try:
        return model(**fields)
    except PydanticValidationError as exc:
        raise ValidationError(describe_errors(exc)) from exc


def validate_name(value: str) -> str:
    """
    Validate a user or project name on its own.

    Raises:
        ValidationError: If the name is empty or longer than 25 characters
    """
    try:
        return _name_adapter.validate_python(value)
    except PydanticValidationError as exc:
        raise ValidationError(f"name: {describe_errors(exc)}") from exc
