"""Schemas for callouts."""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional

from cotrack.constants import CALLOUT_MESSAGE_MAX_LENGTH


class ScrollPosition(BaseModel):
    x: float = 0
    y: float = 0
    y_percentage: float = 0


class CalloutCreateRequest(BaseModel):
    """Request schema for POST /api/callouts.

    Required fields are checked in the handler to report them together.
    """
    session_code: Optional[str] = None
    user_code: Optional[str] = None
    page_url: Optional[str] = None
    page_title: Optional[str] = ""
    page_favicon: Optional[str] = ""
    scroll_position: Optional[ScrollPosition] = None
    selected_text: Optional[str] = None
    message: Optional[str] = Field("", max_length=CALLOUT_MESSAGE_MAX_LENGTH)
    tab_context: Optional[Dict[str, Any]] = None


class CalloutAcknowledgeRequest(BaseModel):
    user_code: str = Field(..., min_length=1)
    user_name: Optional[str] = None


class CalloutActorRequest(BaseModel):
    user_code: str = Field(..., min_length=1)
