"""Live view of what every session member is browsing."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session as DbSession

from cotrack.config import settings
from cotrack.models.session import Session, SessionMember
from cotrack.models.tracking import NavigationTracking
from cotrack.services.tracking import deduplicate_page_visits, dump_events, parse_stored_events
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_datetime, serialize_uuid
from cotrack.utils.timestamps import isoformat, utc_now

NO_ACTIVE_MEMBERS_MESSAGE = "No active members in this session"
NO_TRACKING_MESSAGE = "No tracking data for this member"


def _member_records(db: DbSession, session_code: str, user_code: str) -> List[NavigationTracking]:
    """Every recording attempt of a member, oldest first."""
    return db.query(NavigationTracking).filter(
        NavigationTracking.session_code == session_code,
        NavigationTracking.user_code == user_code,
    ).order_by(NavigationTracking.recording_started_at.asc()).all()


def summarize_member(
    db: DbSession,
    session_code: str,
    member: SessionMember,
    since: Optional[datetime] = None,
    recent_limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Build the live summary for one member.

    All of the member's records are combined and reduced to the latest visit
    per page. A record whose events do not parse counts as having no events.
    """
    limit = recent_limit if recent_limit is not None else settings.live_recent_events_limit
    records = _member_records(db, session_code, member.user_code)

    raw_event_count = 0
    combined = []
    for record in records:
        events = parse_stored_events(
            record.navigation_events, context=f"{member.user_code}/{session_code} record {record.id}"
        )
        raw_event_count += len(events)
        combined.extend(events)

    visits = deduplicate_page_visits(combined)
    is_recording = any(record.is_active for record in records)
    latest_record = records[-1] if records else None

    if since is not None:
        recent = [event for event in visits if event.timestamp > since]
    else:
        recent = visits[-limit:] if limit > 0 else []

    last_visit = visits[-1] if visits else None
    summary = {
        "user_code": member.user_code,
        "user_name": member.user_name,
        "joined_at": serialize_datetime(member.joined_at),
        "is_recording": is_recording,
        "has_tracking": bool(records),
        "current_state": "recording" if is_recording else ("stopped" if records else "idle"),
        "current_page": last_visit.context.model_dump(mode="json") if last_visit else None,
        "last_activity_at": isoformat(last_visit.timestamp) if last_visit else None,
        "event_count": raw_event_count,
        "unique_pages": len(visits),
        "recent_events": dump_events(recent),
        "accumulated_events": dump_events(visits),
        "has_new_updates": bool(recent) if since is not None else bool(visits),
        "tracking_id": serialize_uuid(latest_record.id) if latest_record else None,
    }
    if not records:
        summary["tracking"] = {"success": False, "message": NO_TRACKING_MESSAGE}
    return summary


def build_live_update(
    db: DbSession,
    session: Session,
    since: Optional[datetime] = None,
    exclude_user_code: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Aggregate every active member's browsing for a polling client.

    Args:
        db: Database session
        session: Session to aggregate
        since: Only events strictly after this time go into ``recent_events``
        exclude_user_code: Member to leave out (usually the caller)

    Returns:
        Response body with ``timestamp``, ``session``, ``members`` and ``summary``.
        Clients send ``timestamp`` back as ``since`` on the next poll.
    """
    timestamp = utc_now()
    members = [
        member for member in session.members
        if member.is_active and member.user_code != exclude_user_code
    ]

    member_summaries = [
        summarize_member(db, session.session_code, member, since=since)
        for member in members
    ]

    summary = {
        "member_count": len(member_summaries),
        "active_recording_count": sum(1 for m in member_summaries if m["is_recording"]),
        "total_events": sum(m["event_count"] for m in member_summaries),
        "has_any_updates": any(m["has_new_updates"] for m in member_summaries),
        "since": isoformat(since),
    }
    logger.debug(
        f"[LIVE] {session.session_code}: {summary['member_count']} members, "
        f"{summary['active_recording_count']} recording, {summary['total_events']} events"
    )

    body = {
        "success": True,
        "timestamp": isoformat(timestamp),
        "session": {
            "session_code": session.session_code,
            "session_name": session.session_name,
            "session_description": session.session_description,
            "is_active": session.is_active,
            "created_by_user_code": session.created_by_user_code,
        },
        "members": member_summaries,
        "summary": summary,
    }
    if not member_summaries:
        body["notice"] = {"success": False, "message": NO_ACTIVE_MEMBERS_MESSAGE}
    return body
