"""Schemas for users."""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class UserCreateRequest(BaseModel):
    """Request schema for POST /api/users."""
    user_name: str = Field(..., min_length=1)
    user_email: EmailStr


class UserUpdateRequest(BaseModel):
    """Request schema for PUT /api/users/{user_code}."""
    user_name: Optional[str] = Field(None, min_length=1)
    user_email: Optional[EmailStr] = None
    is_active: Optional[bool] = None
