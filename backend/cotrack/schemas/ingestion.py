"""Schemas for content ingestion."""
from pydantic import AliasChoices, BaseModel, Field
from typing import List, Literal, Optional, Union


class PageSource(BaseModel):
    """A team or private page to ingest. Accepts the dashboard's camelCase keys too."""
    type: Literal["page"]
    page_id: str = Field(..., validation_alias=AliasChoices("page_id", "pageId"))
    is_team: bool = Field(True, validation_alias=AliasChoices("is_team", "isTeam"))


class WebsiteSource(BaseModel):
    """A website URL to scrape and ingest."""
    type: Literal["website"]
    url: str = Field(..., min_length=1)


IngestionSource = Union[PageSource, WebsiteSource]


class IngestRequest(BaseModel):
    """Request schema for POST /api/ingestion/ingest."""
    sources: List[IngestionSource] = Field(default_factory=list)
    session_code: Optional[str] = None
    user_code: Optional[str] = None


class CheckIngestedRequest(BaseModel):
    """Request schema for POST /api/ingestion/check."""
    sources: Optional[List[IngestionSource]] = None
    session_code: Optional[str] = None
