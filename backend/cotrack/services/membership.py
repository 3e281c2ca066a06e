"""Session membership operations and session serialization."""
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session as DbSession

from cotrack.models.session import Session, SessionMember
from cotrack.models.tracking import NavigationTracking
from cotrack.models.user import User
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_datetime, serialize_uuid
from cotrack.utils.timestamps import utc_now


def display_name(user: Optional[User], user_code: str) -> str:
    """Member display name; unregistered codes become "User <code>"."""
    if user and user.user_name:
        return user.user_name
    return f"User {user_code}"


def add_member(
    db: DbSession,
    session: Session,
    user_code: str,
    user: Optional[User] = None,
    navigation_tracking_id=None,
) -> SessionMember:
    """
    Add a user to a session, re-activating a former member entry.

    Does not commit.
    """
    member = session.find_member(user_code)
    if member:
        member.is_active = True
        member.left_at = None
        if user and not member.user_id:
            member.user_id = user.id
        if navigation_tracking_id:
            member.navigation_tracking_id = navigation_tracking_id
        return member

    member = SessionMember(
        user_id=user.id if user else None,
        user_code=user_code,
        user_name=display_name(user, user_code),
        navigation_tracking_id=navigation_tracking_id,
        joined_at=utc_now(),
        is_active=True,
    )
    session.members.append(member)
    db.add(member)
    return member


def remove_member(session: Session, user_code: str) -> bool:
    """Mark a member inactive. Returns False when the user is not a member."""
    member = session.find_member(user_code)
    if not member:
        return False
    member.is_active = False
    member.left_at = utc_now()
    return True


def ensure_creator_is_member(db: DbSession, session: Session) -> bool:
    """
    Append the session creator to the member list if missing.

    Safe to call on every read. Returns True when the list was repaired.
    """
    creator_code = session.created_by_user_code
    if not creator_code or session.find_member(creator_code):
        return False

    creator = session.created_by or db.query(User).filter(User.user_code == creator_code).first()
    add_member(db, session, creator_code, user=creator)
    db.commit()
    db.refresh(session)
    logger.warning(f"Creator {creator_code} was missing from session {session.session_code}, re-added")
    return True


def end_session(db: DbSession, session: Session) -> int:
    """
    End a session: deactivate it, its members and its active tracking records.

    Commits. Returns the number of tracking records that were stopped.
    """
    now = utc_now()
    session.is_active = False
    session.ended_at = now
    for member in session.members:
        if member.is_active:
            member.is_active = False
            member.left_at = now

    active_records = db.query(NavigationTracking).filter(
        NavigationTracking.session_code == session.session_code,
        NavigationTracking.is_active.is_(True),
    ).all()
    for record in active_records:
        record.end_recording(now)

    db.commit()
    db.refresh(session)
    return len(active_records)


def serialize_member(member: SessionMember) -> Dict[str, Any]:
    return {
        "user_id": serialize_uuid(member.user_id),
        "user_code": member.user_code,
        "user_name": member.user_name,
        "navigation_tracking_id": serialize_uuid(member.navigation_tracking_id),
        "joined_at": serialize_datetime(member.joined_at),
        "left_at": serialize_datetime(member.left_at),
        "is_active": member.is_active,
    }


def serialize_session(session: Session, include_members: bool = True) -> Dict[str, Any]:
    """Session response body."""
    data = {
        "id": serialize_uuid(session.id),
        "session_code": session.session_code,
        "session_name": session.session_name,
        "session_description": session.session_description,
        "created_by": serialize_uuid(session.created_by_id),
        "created_by_user_code": session.created_by_user_code,
        "is_active": session.is_active,
        "started_at": serialize_datetime(session.started_at),
        "ended_at": serialize_datetime(session.ended_at),
        "member_count": session.member_count,
        "created_at": serialize_datetime(session.created_at),
        "updated_at": serialize_datetime(session.updated_at),
    }
    if include_members:
        data["members"] = [serialize_member(member) for member in session.members]
    return data
