"""Schemas for navigation tracking."""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from cotrack.constants import EventType
from cotrack.utils.timestamps import ensure_utc

EventTypeName = Literal[
    "EXTENSION_LOADED",
    "RECORDING_STARTED",
    "RECORDING_STOPPED",
    "EXISTING_TABS_SNAPSHOT",
    "WINDOW_CREATED",
    "WINDOW_CLOSED",
    "WINDOW_FOCUSED",
    "WINDOW_UNFOCUSED",
    "BROWSER_FOCUSED",
    "BROWSER_UNFOCUSED",
    "TAB_OPEN",
    "TAB_CLOSE",
    "TAB_ACTIVATED",
    "TAB_UPDATED",
    "PAGE_LOADED",
    "PAGE_OPEN",
    "PAGE_URL_CHANGE",
    "PAGE_RELOAD",
    "PAGE_VISIBLE",
    "PAGE_HIDDEN",
    "BACK_NAVIGATION",
    "FORWARD_NAVIGATION",
    "SEARCH",
]


class EventContext(BaseModel):
    """Base for event contexts. Unknown fields are kept as-is."""
    model_config = ConfigDict(extra="allow")


class RecordingContext(EventContext):
    """Recording lifecycle and browser focus events."""
    window_id: Optional[int] = None


class WindowContext(EventContext):
    window_id: Optional[int] = None


class TabContext(EventContext):
    tab_id: Optional[int] = None
    window_id: Optional[int] = None
    tab_index: Optional[int] = None
    active: Optional[bool] = None
    is_window_closing: Optional[bool] = None
    url: Optional[str] = None
    title: Optional[str] = None


class PageContext(EventContext):
    tab_id: Optional[int] = None
    url: Optional[str] = None
    full_url: Optional[str] = None
    domain: Optional[str] = None
    title: Optional[str] = None
    favicon: Optional[str] = None


class SearchContext(PageContext):
    engine: Optional[str] = None
    query: Optional[str] = None


class SnapshotTab(EventContext):
    tab_id: Optional[int] = None
    window_id: Optional[int] = None
    url: Optional[str] = None
    title: Optional[str] = None
    active: Optional[bool] = None


class SnapshotContext(EventContext):
    total_tabs: Optional[int] = None
    tabs: List[SnapshotTab] = Field(default_factory=list)


CONTEXT_BY_EVENT_TYPE: Dict[str, Type[EventContext]] = {
    EventType.EXTENSION_LOADED: RecordingContext,
    EventType.RECORDING_STARTED: RecordingContext,
    EventType.RECORDING_STOPPED: RecordingContext,
    EventType.BROWSER_FOCUSED: RecordingContext,
    EventType.BROWSER_UNFOCUSED: RecordingContext,
    EventType.EXISTING_TABS_SNAPSHOT: SnapshotContext,
    EventType.WINDOW_CREATED: WindowContext,
    EventType.WINDOW_CLOSED: WindowContext,
    EventType.WINDOW_FOCUSED: WindowContext,
    EventType.WINDOW_UNFOCUSED: WindowContext,
    EventType.TAB_OPEN: TabContext,
    EventType.TAB_CLOSE: TabContext,
    EventType.TAB_ACTIVATED: TabContext,
    EventType.TAB_UPDATED: TabContext,
    EventType.PAGE_LOADED: PageContext,
    EventType.PAGE_OPEN: PageContext,
    EventType.PAGE_URL_CHANGE: PageContext,
    EventType.PAGE_RELOAD: PageContext,
    EventType.PAGE_VISIBLE: PageContext,
    EventType.PAGE_HIDDEN: PageContext,
    EventType.BACK_NAVIGATION: PageContext,
    EventType.FORWARD_NAVIGATION: PageContext,
    EventType.SEARCH: SearchContext,
}

AnyEventContext = Union[
    SearchContext,
    PageContext,
    TabContext,
    WindowContext,
    SnapshotContext,
    RecordingContext,
    EventContext,
]


class NavigationEvent(BaseModel):
    """One timestamped browser activity sample."""
    event_type: EventTypeName
    timestamp: datetime
    context: AnyEventContext = Field(default_factory=EventContext)

    @field_validator("timestamp")
    @classmethod
    def timestamp_in_utc(cls, value: datetime) -> datetime:
        """Naive timestamps are UTC."""
        return ensure_utc(value)

    @field_validator("context", mode="before")
    @classmethod
    def context_for_event_type(cls, value: Any, info: ValidationInfo) -> Any:
        """Parse the context into the variant that matches ``event_type``."""
        if value is None:
            value = {}
        if isinstance(value, EventContext):
            return value
        context_class = CONTEXT_BY_EVENT_TYPE.get(info.data.get("event_type"), EventContext)
        try:
            return context_class.model_validate(value)
        except ValidationError:
            # Context is free-form; keep fields the typed variant rejects
            return EventContext.model_validate(value)

    def _context_text(self, field: str) -> Optional[str]:
        value = getattr(self.context, field, None)
        return value if isinstance(value, str) and value else None

    @property
    def url(self) -> Optional[str]:
        """Page URL when the context carries one."""
        return self._context_text("url")

    @property
    def title(self) -> Optional[str]:
        return self._context_text("title")


class TrackingCodesRequest(BaseModel):
    """Request schema for /api/tracking-files/start and /stop."""
    user_code: str = Field(..., min_length=1, description="User code")
    session_code: str = Field(..., min_length=1, description="Session code")


class TrackingUpdateData(BaseModel):
    """Batch of events sent by the extension."""
    navigation_events: List[NavigationEvent] = Field(default_factory=list)
    recording_started_at: Optional[datetime] = None
    recording_ended_at: Optional[datetime] = None


class TrackingUpdateRequest(TrackingCodesRequest):
    """Request schema for /api/tracking-files/update."""
    data: TrackingUpdateData


class TrackingUpdateResponse(BaseModel):
    """Response schema for /api/tracking-files/update."""
    success: bool
    message: str
    accepted: bool
    event_count: int
    tracking_id: Optional[str] = None
    is_active: Optional[bool] = None
