"""Schemas for session invitations."""
from pydantic import BaseModel, Field
from typing import Optional


class InvitationCreateRequest(BaseModel):
    """Request schema for POST /api/sessions/{session_code}/invitations."""
    inviter_user_code: str = Field(..., min_length=1)
    invitee_user_code: str = Field(..., min_length=1)
    message: Optional[str] = ""


class InvitationResponseRequest(BaseModel):
    """Request schema for accept/decline."""
    user_code: str = Field(..., min_length=1)
