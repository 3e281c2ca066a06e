"""Application-wide constants."""


class EventType:
    """Navigation event kinds emitted by the browser extension."""
    EXTENSION_LOADED = "EXTENSION_LOADED"
    RECORDING_STARTED = "RECORDING_STARTED"
    RECORDING_STOPPED = "RECORDING_STOPPED"
    EXISTING_TABS_SNAPSHOT = "EXISTING_TABS_SNAPSHOT"
    WINDOW_CREATED = "WINDOW_CREATED"
    WINDOW_CLOSED = "WINDOW_CLOSED"
    WINDOW_FOCUSED = "WINDOW_FOCUSED"
    WINDOW_UNFOCUSED = "WINDOW_UNFOCUSED"
    BROWSER_FOCUSED = "BROWSER_FOCUSED"
    BROWSER_UNFOCUSED = "BROWSER_UNFOCUSED"
    TAB_OPEN = "TAB_OPEN"
    TAB_CLOSE = "TAB_CLOSE"
    TAB_ACTIVATED = "TAB_ACTIVATED"
    TAB_UPDATED = "TAB_UPDATED"
    PAGE_LOADED = "PAGE_LOADED"
    PAGE_OPEN = "PAGE_OPEN"
    PAGE_URL_CHANGE = "PAGE_URL_CHANGE"
    PAGE_RELOAD = "PAGE_RELOAD"
    PAGE_VISIBLE = "PAGE_VISIBLE"
    PAGE_HIDDEN = "PAGE_HIDDEN"
    BACK_NAVIGATION = "BACK_NAVIGATION"
    FORWARD_NAVIGATION = "FORWARD_NAVIGATION"
    SEARCH = "SEARCH"


# Event kinds counted as "a page was visited" by team analysis
PAGE_VISIT_EVENT_TYPES = (EventType.PAGE_LOADED, EventType.PAGE_OPEN)


class InvitationStatus:
    """Session invitation status constants."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class CalloutStatus:
    """Callout status constants."""
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    EXPIRED = "expired"
    DISMISSED = "dismissed"


class IngestionStatus:
    """Ingested content status constants."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class SourceType:
    """Ingestion source types."""
    PAGE = "page"
    WEBSITE = "website"


class PageModel:
    """Page collections an ingested page can come from."""
    TEAM = "TeamPage"
    PRIVATE = "PrivatePage"


# Identity code suffixes (6 random characters + suffix)
USER_CODE_SUFFIX = "U"
SESSION_CODE_SUFFIX = "S"
CODE_RANDOM_LENGTH = 6

CALLOUT_MESSAGE_MAX_LENGTH = 500
PAGE_TITLE_MAX_LENGTH = 200
CALLOUT_LIST_DEFAULT_LIMIT = 50
INGESTED_CONTENT_LIST_LIMIT = 100
