"""Session management endpoints."""
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from cotrack.constants import SESSION_CODE_SUFFIX, USER_CODE_SUFFIX
from cotrack.database import get_db
from cotrack.models.session import Session as SessionModel
from cotrack.models.tracking import NavigationTracking
from cotrack.models.user import User
from cotrack.schemas.session import MemberAddRequest, SessionCreateRequest, SessionUpdateRequest
from cotrack.services.gemini import GeminiClient, get_llm_factory
from cotrack.services.live_updates import build_live_update
from cotrack.services.member_summary import (
    NoBrowsingDataError,
    get_member_summary,
    serialize_member_summary,
    summarize_member,
)
from cotrack.services.membership import (
    add_member,
    end_session,
    ensure_creator_is_member,
    remove_member,
    serialize_member,
    serialize_session,
)
from cotrack.services.tracking import serialize_record
from cotrack.utils.codes import get_unique_code, is_valid_code, normalize_code
from cotrack.utils.db import get_by_id, get_session_by_code, get_user_by_code
from cotrack.utils.exceptions import handle_database_error, not_found_error, validation_error
from cotrack.utils.logger import logger
from cotrack.utils.timestamps import parse_timestamp, utc_now

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(
    request: SessionCreateRequest,
    db: Session = Depends(get_db),
):
    """
    Create a session with its creator as the only member.

    The creator code does not have to belong to a registered user; an
    unregistered code joins as "User <code>".
    """
    creator_code = normalize_code(request.created_by_user_code)
    try:
        creator = db.query(User).filter(User.user_code == creator_code).first()
        session_code = get_unique_code(db, SessionModel, "session_code", SESSION_CODE_SUFFIX)

        session = SessionModel(
            session_code=session_code,
            session_name=(request.session_name or "").strip() or f"Session {session_code}",
            session_description=request.session_description,
            created_by_id=creator.id if creator else None,
            created_by_user_code=creator_code,
            is_active=True,
            started_at=utc_now(),
        )
        db.add(session)
        add_member(db, session, creator_code, user=creator)
        db.commit()
        db.refresh(session)

        logger.info(f"Created session {session_code} for {creator_code}")
        return {
            "success": True,
            "message": "Session created successfully",
            "data": serialize_session(session),
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create session for {creator_code}: {e}", exc_info=True)
        raise handle_database_error(e, "create_session")


@router.get("")
async def list_sessions(
    active_only: bool = Query(False, description="Only active sessions"),
    db: Session = Depends(get_db),
):
    """List sessions, newest first."""
    try:
        query = db.query(SessionModel)
        if active_only:
            query = query.filter(SessionModel.is_active.is_(True))
        sessions = query.order_by(SessionModel.created_at.desc()).all()
        return {
            "success": True,
            "count": len(sessions),
            "data": [serialize_session(session) for session in sessions],
        }
    except Exception as e:
        logger.error(f"Failed to list sessions: {e}", exc_info=True)
        raise handle_database_error(e, "list_sessions")


@router.get("/validate/{session_code}")
async def validate_session(session_code: str, db: Session = Depends(get_db)):
    """Check a code typed into the extension before recording starts."""
    code = normalize_code(session_code)
    if not code:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "valid": False, "message": "Invalid session code format"},
        )
    try:
        session = get_session_by_code(db, code, required=False)
        if not session:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={
                    "success": False,
                    "valid": False,
                    "message": "Session code not found. Please create a session on the dashboard first.",
                },
            )
        return {
            "success": True,
            "valid": True,
            "message": "Session code is valid",
            "data": {
                "session_code": session.session_code,
                "session_name": session.session_name,
                "is_active": session.is_active,
                "member_count": session.member_count,
            },
        }
    except Exception as e:
        logger.error(f"Failed to validate session {code}: {e}", exc_info=True)
        raise handle_database_error(e, "validate_session")


@router.get("/id/{session_id}")
async def get_session_by_id(session_id: str, db: Session = Depends(get_db)):
    try:
        session = get_by_id(db, SessionModel, session_id, error_message="Session not found")
        return {"success": True, "data": serialize_session(session)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get session {session_id}: {e}", exc_info=True)
        raise handle_database_error(e, "get_session_by_id")


@router.get("/{session_code}")
async def get_session(session_code: str, db: Session = Depends(get_db)):
    try:
        session = get_session_by_code(db, session_code)
        ensure_creator_is_member(db, session)
        return {"success": True, "data": serialize_session(session)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to get session {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_session")


@router.put("/{session_code}")
async def update_session(
    session_code: str,
    request: SessionUpdateRequest,
    db: Session = Depends(get_db),
):
    try:
        session = get_session_by_code(db, session_code)
        if request.session_name is not None:
            session.session_name = request.session_name.strip() or session.session_name
        if request.session_description is not None:
            session.session_description = request.session_description
        if request.is_active is False and session.is_active:
            # Deactivating through PUT ends the session like POST /end
            stopped = end_session(db, session)
            logger.info(f"Session {session.session_code} ended via update, stopped {stopped} recordings")
        else:
            if request.is_active and not session.is_active:
                session.is_active = True
                session.ended_at = None
            db.commit()
            db.refresh(session)
        return {
            "success": True,
            "message": "Session updated successfully",
            "data": serialize_session(session),
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update session {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "update_session")


@router.delete("/{session_code}")
async def delete_session(session_code: str, db: Session = Depends(get_db)):
    """Delete a session, its members and its tracking records."""
    try:
        session = get_session_by_code(db, session_code)
        for member in session.members:
            member.navigation_tracking_id = None
        db.flush()
        deleted_records = db.query(NavigationTracking).filter(
            NavigationTracking.session_code == session.session_code,
        ).delete(synchronize_session=False)
        db.delete(session)
        db.commit()

        logger.info(f"Deleted session {session.session_code} and {deleted_records} tracking records")
        return {
            "success": True,
            "message": "Session and related tracking data deleted successfully",
            "deleted_tracking_records": deleted_records,
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete session {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "delete_session")


@router.get("/{session_code}/members")
async def get_members(
    session_code: str,
    active_only: bool = Query(False, description="Only active members"),
    db: Session = Depends(get_db),
):
    try:
        session = get_session_by_code(db, session_code)
        ensure_creator_is_member(db, session)
        members = [m for m in session.members if m.is_active or not active_only]
        return {
            "success": True,
            "session_code": session.session_code,
            "count": len(members),
            "data": [serialize_member(member) for member in members],
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to get members of {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_members")


@router.post("/{session_code}/members")
async def add_session_member(
    session_code: str,
    request: MemberAddRequest,
    db: Session = Depends(get_db),
):
    """Add a registered user to a session, re-activating a former member."""
    user_code = normalize_code(request.user_code)
    if not is_valid_code(user_code, USER_CODE_SUFFIX):
        raise validation_error("Invalid user code format")
    try:
        session = get_session_by_code(db, session_code)
        user = get_user_by_code(db, user_code)
        member = add_member(db, session, user_code, user=user)
        db.commit()
        db.refresh(session)
        return {
            "success": True,
            "message": "User added to session successfully",
            "data": serialize_member(member),
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to add {user_code} to {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "add_member")


@router.delete("/{session_code}/members/{user_code}")
async def remove_session_member(
    session_code: str,
    user_code: str,
    db: Session = Depends(get_db),
):
    """Mark a member inactive; the entry is kept."""
    user_code = normalize_code(user_code)
    if not is_valid_code(user_code, USER_CODE_SUFFIX):
        raise validation_error("Invalid user code format")
    try:
        session = get_session_by_code(db, session_code)
        if not remove_member(session, user_code):
            raise not_found_error("Member", user_code)
        db.commit()
        return {"success": True, "message": "User removed from session successfully"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to remove {user_code} from {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "remove_member")


@router.post("/{session_code}/end")
async def end_session_endpoint(session_code: str, db: Session = Depends(get_db)):
    """End a session and stop every recording in it."""
    try:
        session = get_session_by_code(db, session_code)
        if not session.is_active:
            raise validation_error("Session is already ended")
        stopped = end_session(db, session)
        logger.info(f"Ended session {session.session_code}, stopped {stopped} recordings")
        return {
            "success": True,
            "message": "Session ended successfully",
            "stopped_recordings": stopped,
            "data": serialize_session(session),
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to end session {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "end_session")


@router.get("/{session_code}/full")
async def get_full_session(session_code: str, db: Session = Depends(get_db)):
    """Session with every member and all of their tracking records."""
    try:
        session = get_session_by_code(db, session_code)
        ensure_creator_is_member(db, session)

        records = db.query(NavigationTracking).filter(
            NavigationTracking.session_code == session.session_code,
        ).order_by(NavigationTracking.recording_started_at.asc()).all()
        by_user = {}
        for record in records:
            by_user.setdefault(record.user_code, []).append(record)

        members = []
        for member in session.members:
            member_records = by_user.get(member.user_code, [])
            members.append({
                **serialize_member(member),
                "is_recording": any(record.is_active for record in member_records),
                "navigation_tracking": [serialize_record(record) for record in member_records],
            })

        data = serialize_session(session, include_members=False)
        data.update({
            "active_member_count": session.member_count,
            "members": members,
            "total_events": sum(record.event_count or 0 for record in records),
        })
        return {"success": True, "data": data}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to get full session {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_full_session")


@router.get("/{session_code}/getLiveUpdate")
async def get_live_update(
    session_code: str,
    since: Optional[str] = Query(None, description="ISO-8601 time of the previous poll"),
    exclude_user_code: Optional[str] = Query(None, description="Member to leave out"),
    db: Session = Depends(get_db),
):
    """
    Poll what every active member is browsing.

    Clients pass the ``timestamp`` of the previous response as ``since`` to
    get only newer visits in ``recent_events``.
    """
    since_time = None
    if since:
        since_time = parse_timestamp(since)
        if since_time is None:
            raise validation_error("Invalid 'since' timestamp, expected ISO-8601")
    try:
        session = get_session_by_code(db, session_code)
        ensure_creator_is_member(db, session)
        exclude = normalize_code(exclude_user_code) if exclude_user_code else None
        return build_live_update(db, session, since=since_time, exclude_user_code=exclude)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to build live update for {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_live_update")


@router.post("/{session_code}/members/{user_code}/summarize")
async def summarize_session_member(
    session_code: str,
    user_code: str,
    db: Session = Depends(get_db),
    llm_factory: Callable[[], GeminiClient] = Depends(get_llm_factory),
):
    """Generate (or regenerate) the browsing summary of one member."""
    user_code = normalize_code(user_code)
    try:
        session = get_session_by_code(db, session_code)
        member = session.find_member(user_code)
        if not member:
            raise not_found_error("Member", user_code)

        summary = await summarize_member(db, session, member, llm_factory())
        return {"success": True, "data": serialize_member_summary(summary)}
    except NoBrowsingDataError:
        raise not_found_error("Browsing data for member", user_code)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to summarize {user_code} in {session_code}: {e}", exc_info=True)
        raise


@router.get("/{session_code}/members/{user_code}/summary")
async def get_session_member_summary(
    session_code: str,
    user_code: str,
    db: Session = Depends(get_db),
):
    try:
        summary = get_member_summary(db, normalize_code(session_code), normalize_code(user_code))
        if not summary:
            raise not_found_error("Summary")
        return {"success": True, "data": serialize_member_summary(summary)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get summary of {user_code} in {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_member_summary")
