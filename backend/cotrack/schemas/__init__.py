"""Pydantic schemas for request/response validation."""
from cotrack.schemas.tracking import (
    NavigationEvent,
    TrackingCodesRequest,
    TrackingUpdateRequest,
    TrackingUpdateResponse,
)
from cotrack.schemas.session import SessionCreateRequest, SessionUpdateRequest, MemberAddRequest
from cotrack.schemas.user import UserCreateRequest, UserUpdateRequest

__all__ = [
    "NavigationEvent",
    "TrackingCodesRequest",
    "TrackingUpdateRequest",
    "TrackingUpdateResponse",
    "SessionCreateRequest",
    "SessionUpdateRequest",
    "MemberAddRequest",
    "UserCreateRequest",
    "UserUpdateRequest",
]
