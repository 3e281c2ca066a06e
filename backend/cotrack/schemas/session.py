"""Schemas for session management."""
from pydantic import BaseModel, Field
from typing import Optional


class SessionCreateRequest(BaseModel):
    """Request schema for POST /api/sessions."""
    created_by_user_code: str = Field(..., min_length=1, description="User code of the creator")
    session_name: Optional[str] = Field(None, description="Display name (defaults to 'Session <code>')")
    session_description: Optional[str] = Field(None, description="What the team is researching")


class SessionUpdateRequest(BaseModel):
    """Request schema for PUT /api/sessions/{session_code}."""
    session_name: Optional[str] = None
    session_description: Optional[str] = None
    is_active: Optional[bool] = None


class MemberAddRequest(BaseModel):
    """Request schema for POST /api/sessions/{session_code}/members."""
    user_code: str = Field(..., min_length=1)
