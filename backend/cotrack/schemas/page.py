"""Schemas for team and private pages."""
from pydantic import BaseModel, Field
from typing import Optional

from cotrack.constants import PAGE_TITLE_MAX_LENGTH


class PageCreateRequest(BaseModel):
    """Request schema for creating a page. Blank titles become "Untitled"."""
    title: Optional[str] = Field(None, max_length=PAGE_TITLE_MAX_LENGTH)
    content_html: Optional[str] = None
    user_code: Optional[str] = Field(None, description="Creator (team pages only)")


class PageUpdateRequest(BaseModel):
    """Request schema for updating a page."""
    title: Optional[str] = Field(None, max_length=PAGE_TITLE_MAX_LENGTH)
    content_html: Optional[str] = None


class PageAppendRequest(BaseModel):
    """Request schema for appending HTML to a page."""
    content_html: str = Field(..., min_length=1)
