"""Schemas for the chatbot."""
from pydantic import BaseModel, Field
from typing import List, Optional


class ChatQueryRequest(BaseModel):
    """Request schema for POST /api/chatbot/query.

    Fields are validated in the handler so each missing one gets its own message.
    """
    prompt: Optional[str] = None
    source_ids: List[str] = Field(default_factory=list)
    session_code: Optional[str] = None
    user_code: Optional[str] = None


class ChatSource(BaseModel):
    """A source cited in a chatbot answer."""
    source_number: int = 0
    type: str = "website"
    title: str = "Untitled"
    url: Optional[str] = None
    relevance: str = ""
