"""Callout endpoints: members pointing the team at a spot on a page."""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from cotrack.constants import CALLOUT_LIST_DEFAULT_LIMIT, CalloutStatus
from cotrack.database import get_db
from cotrack.models.callout import Callout
from cotrack.models.user import User
from cotrack.schemas.callout import CalloutAcknowledgeRequest, CalloutActorRequest, CalloutCreateRequest
from cotrack.utils.codes import normalize_code
from cotrack.utils.db import get_by_id, get_session_by_code
from cotrack.utils.exceptions import forbidden_error, handle_database_error, validation_error
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_model
from cotrack.utils.timestamps import isoformat, parse_timestamp, utc_now
from cotrack.utils.url import extract_domain

router = APIRouter(prefix="/api/callouts", tags=["callouts"])


def serialize_callout(callout: Callout) -> Dict[str, Any]:
    data = serialize_model(callout)
    data["is_expired"] = callout.is_expired
    return data


def _get_callout(db: Session, callout_id: str) -> Callout:
    return get_by_id(db, Callout, callout_id, error_message="Callout not found")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_callout(request: CalloutCreateRequest, db: Session = Depends(get_db)):
    """Raise a callout. Only active members of an active session may do so."""
    if not request.session_code or not request.user_code or not request.page_url:
        raise validation_error("Missing required fields: session_code, user_code, and page_url are required")

    user_code = normalize_code(request.user_code)
    try:
        session = get_session_by_code(db, request.session_code)
        if not session.is_active:
            raise validation_error("Cannot create callout in an inactive session")

        member = session.find_member(user_code)
        if not member or not member.is_active:
            raise forbidden_error("User is not an active member of this session")

        callout = Callout(
            session_code=session.session_code,
            user_code=user_code,
            user_name=member.user_name,
            page_url=request.page_url,
            page_title=request.page_title or "",
            page_domain=extract_domain(request.page_url),
            page_favicon=request.page_favicon or "",
            scroll_position=(
                request.scroll_position.model_dump()
                if request.scroll_position else {"x": 0, "y": 0, "y_percentage": 0}
            ),
            selected_text=request.selected_text or None,
            message=request.message or "",
            tab_context=request.tab_context or {},
            status=CalloutStatus.ACTIVE,
        )
        db.add(callout)
        db.commit()
        db.refresh(callout)

        logger.info(f"Callout created by {member.user_name} in session {session.session_code}")
        return {"success": True, "message": "Callout created successfully", "data": serialize_callout(callout)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create callout in {request.session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "create_callout")


@router.get("/session/{session_code}")
async def get_session_callouts(
    session_code: str,
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    exclude_user_code: Optional[str] = Query(None, description="Leave out this user's callouts"),
    limit: int = Query(CALLOUT_LIST_DEFAULT_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    Callout history of a session, newest first.

    ``status=active`` also drops expired callouts.
    """
    code = normalize_code(session_code)
    try:
        query = db.query(Callout).filter(Callout.session_code == code)
        if status_filter == CalloutStatus.ACTIVE:
            query = query.filter(Callout.status == CalloutStatus.ACTIVE, Callout.expires_at > utc_now())
        elif status_filter:
            query = query.filter(Callout.status == status_filter)
        if exclude_user_code:
            query = query.filter(Callout.user_code != normalize_code(exclude_user_code))

        callouts = query.order_by(Callout.created_at.desc()).limit(limit).all()
        return {"success": True, "count": len(callouts), "data": [serialize_callout(c) for c in callouts]}
    except Exception as e:
        logger.error(f"Failed to list callouts of {code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_session_callouts")


@router.get("/session/{session_code}/active")
async def get_active_callouts(
    session_code: str,
    exclude_user_code: Optional[str] = Query(None, description="Leave out this user's callouts"),
    since: Optional[str] = Query(None, description="Only callouts created after this ISO-8601 time"),
    db: Session = Depends(get_db),
):
    """Active, unexpired callouts; polled by the extension."""
    code = normalize_code(session_code)
    since_time = None
    if since:
        since_time = parse_timestamp(since)
        if since_time is None:
            raise validation_error("Invalid 'since' timestamp, expected ISO-8601")
    try:
        now = utc_now()
        query = db.query(Callout).filter(
            Callout.session_code == code,
            Callout.status == CalloutStatus.ACTIVE,
            Callout.expires_at > now,
        )
        if exclude_user_code:
            query = query.filter(Callout.user_code != normalize_code(exclude_user_code))
        if since_time:
            query = query.filter(Callout.created_at > since_time)

        callouts = query.order_by(Callout.created_at.desc()).all()
        return {
            "success": True,
            "timestamp": isoformat(now),
            "count": len(callouts),
            "data": [serialize_callout(c) for c in callouts],
        }
    except Exception as e:
        logger.error(f"Failed to list active callouts of {code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_active_callouts")


@router.get("/session/{session_code}/stats")
async def get_callout_stats(session_code: str, db: Session = Depends(get_db)):
    code = normalize_code(session_code)
    try:
        by_status = dict(
            db.query(Callout.status, func.count(Callout.id))
            .filter(Callout.session_code == code)
            .group_by(Callout.status)
            .all()
        )
        by_user = (
            db.query(Callout.user_code, Callout.user_name, func.count(Callout.id))
            .filter(Callout.session_code == code)
            .group_by(Callout.user_code, Callout.user_name)
            .all()
        )
        active = db.query(Callout).filter(
            Callout.session_code == code,
            Callout.status == CalloutStatus.ACTIVE,
            Callout.expires_at > utc_now(),
        ).count()
        return {
            "success": True,
            "data": {
                "total": sum(by_status.values()),
                "active": active,
                "by_status": by_status,
                "by_user": [
                    {"user_code": user_code, "user_name": user_name, "count": count}
                    for user_code, user_name, count in by_user
                ],
            },
        }
    except Exception as e:
        logger.error(f"Failed to get callout stats of {code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_callout_stats")


@router.get("/{callout_id}")
async def get_callout(callout_id: str, db: Session = Depends(get_db)):
    try:
        return {"success": True, "data": serialize_callout(_get_callout(db, callout_id))}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get callout {callout_id}: {e}", exc_info=True)
        raise handle_database_error(e, "get_callout")


@router.post("/{callout_id}/acknowledge")
async def acknowledge_callout(
    callout_id: str,
    request: CalloutAcknowledgeRequest,
    db: Session = Depends(get_db),
):
    """Record that a member saw the callout. Repeats and the creator are ignored."""
    user_code = normalize_code(request.user_code)
    try:
        callout = _get_callout(db, callout_id)
        user_name = request.user_name
        if not user_name:
            user = db.query(User).filter(User.user_code == user_code).first()
            user_name = user.user_name if user else f"User {user_code}"

        if callout.acknowledge(user_code, user_name):
            db.commit()
            db.refresh(callout)
        return {"success": True, "message": "Callout acknowledged", "data": serialize_callout(callout)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to acknowledge callout {callout_id}: {e}", exc_info=True)
        raise handle_database_error(e, "acknowledge_callout")


@router.post("/{callout_id}/dismiss")
async def dismiss_callout(
    callout_id: str,
    request: CalloutActorRequest,
    db: Session = Depends(get_db),
):
    try:
        callout = _get_callout(db, callout_id)
        if callout.user_code != normalize_code(request.user_code):
            raise forbidden_error("Only the callout creator can dismiss it")
        callout.dismiss()
        db.commit()
        db.refresh(callout)
        return {"success": True, "message": "Callout dismissed", "data": serialize_callout(callout)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to dismiss callout {callout_id}: {e}", exc_info=True)
        raise handle_database_error(e, "dismiss_callout")


@router.delete("/{callout_id}")
async def delete_callout(
    callout_id: str,
    user_code: str = Query(..., min_length=1, description="Creator's user code"),
    db: Session = Depends(get_db),
):
    try:
        callout = _get_callout(db, callout_id)
        if callout.user_code != normalize_code(user_code):
            raise forbidden_error("Only the callout creator can delete it")
        db.delete(callout)
        db.commit()
        return {"success": True, "message": "Callout deleted"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete callout {callout_id}: {e}", exc_info=True)
        raise handle_database_error(e, "delete_callout")
