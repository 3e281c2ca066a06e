"""Event merging and page-visit deduplication for navigation tracking."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from cotrack.constants import EventType
from cotrack.schemas.tracking import NavigationEvent
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_model


@dataclass(frozen=True)
class MergeDecision:
    """Outcome of reconciling an incoming event batch with the stored one."""
    accepted: bool
    reason: str


def latest_timestamp(events: Sequence[NavigationEvent]) -> Optional[datetime]:
    """Most recent event time, or None for an empty list."""
    if not events:
        return None
    return max(event.timestamp for event in events)


def decide_merge(
    stored: Sequence[NavigationEvent],
    incoming: Sequence[NavigationEvent],
    context: str = "",
) -> MergeDecision:
    """
    Decide whether an incoming event list replaces the stored one.

    Rules, first match wins:

    1. stored list is empty: accept
    2. incoming has more events: accept
    3. same count and incoming's latest timestamp >= stored's: accept
    4. otherwise reject as stale

    Rejection is logged and returned, never raised. Equal count with equal
    latest timestamp accepts the incoming list, so two concurrent writers
    with identical batches can both win.

    Args:
        stored: Event list currently persisted
        incoming: Event list from the update request
        context: Label for the log line (e.g. "ABC123U/X7K2P9S")

    Returns:
        MergeDecision
    """
    if not stored:
        return MergeDecision(True, "stored list empty")

    if len(incoming) > len(stored):
        return MergeDecision(True, "incoming has more events")

    if len(incoming) == len(stored):
        incoming_latest = latest_timestamp(incoming)
        stored_latest = latest_timestamp(stored)
        if incoming_latest is not None and incoming_latest >= stored_latest:
            return MergeDecision(True, "same count, incoming is not older")

    logger.info(
        f"[MERGE] Keeping stored events for {context or 'record'}: incoming "
        f"{len(incoming)} events (latest {latest_timestamp(incoming)}) vs stored "
        f"{len(stored)} events (latest {latest_timestamp(stored)})"
    )
    return MergeDecision(False, "incoming is stale")


def parse_events(raw_events: Optional[Iterable[Dict[str, Any]]]) -> List[NavigationEvent]:
    """
    Parse stored event dicts.

    Raises:
        ValidationError: If any event is malformed
    """
    return [NavigationEvent.model_validate(raw) for raw in (raw_events or [])]


def parse_stored_events(raw_events: Any, context: str = "") -> List[NavigationEvent]:
    """Parse a record's stored events; a corrupt list is logged and treated as empty."""
    if raw_events is None:
        return []
    if not isinstance(raw_events, list):
        logger.warning(f"[MERGE] Stored events for {context or 'record'} are not a list, ignoring")
        return []
    try:
        return parse_events(raw_events)
    except ValidationError as e:
        logger.warning(f"[MERGE] Corrupt stored events for {context or 'record'}: {e.error_count()} errors")
        return []


def dump_events(events: Iterable[NavigationEvent]) -> List[Dict[str, Any]]:
    """JSON-ready event dicts for storage and responses."""
    return [event.model_dump(mode="json") for event in events]


def deduplicate_page_visits(events: Iterable[NavigationEvent]) -> List[NavigationEvent]:
    """
    Collapse page loads to the most recent visit per URL.

    Only PAGE_LOADED events with a URL are kept. A later event replaces the
    kept one for its URL only when its timestamp is strictly later, so on an
    exact tie the first one seen stays. The result is sorted oldest first.
    Earlier visits to the same URL are dropped.
    """
    by_url: Dict[str, NavigationEvent] = {}
    for event in events:
        if event.event_type != EventType.PAGE_LOADED:
            continue
        url = event.url
        if not url:
            continue
        current = by_url.get(url)
        if current is None or event.timestamp > current.timestamp:
            by_url[url] = event
    return sorted(by_url.values(), key=lambda event: event.timestamp)


def serialize_record(record, include_events: bool = True) -> Dict[str, Any]:
    """Tracking record response body; ``include_events=False`` for listings."""
    exclude = () if include_events else ("navigation_events",)
    return serialize_model(record, exclude=exclude)
