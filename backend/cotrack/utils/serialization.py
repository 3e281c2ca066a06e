"""Serialization utilities for converting models to API responses."""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from cotrack.utils.timestamps import isoformat


def serialize_uuid(value: Optional[UUID]) -> Optional[str]:
    """Serialize UUID to string."""
    return str(value) if value else None


def serialize_datetime(value: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO format string (UTC, "Z" suffix)."""
    return isoformat(value)


def serialize_value(value: Any) -> Any:
    """Serialize a single column value."""
    if isinstance(value, UUID):
        return serialize_uuid(value)
    if isinstance(value, datetime):
        return serialize_datetime(value)
    return value


def serialize_model(model: Any, exclude: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """
    Serialize a SQLAlchemy model to a dictionary.

    Args:
        model: SQLAlchemy model instance
        exclude: Column names to leave out (e.g. large JSON payloads)

    Returns:
        Dictionary representation of the model
    """
    excluded = set(exclude or ())
    return {
        column.name: serialize_value(getattr(model, column.name))
        for column in model.__table__.columns
        if column.name not in excluded
    }


def serialize_models(models: Iterable[Any], exclude: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
    """Serialize a list of SQLAlchemy models."""
    return [serialize_model(model, exclude=exclude) for model in models]
