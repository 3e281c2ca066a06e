"""Navigation tracking endpoints used by the browser extension."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from cotrack.database import get_db
from cotrack.models.session import SessionMember
from cotrack.models.tracking import NavigationTracking
from cotrack.models.user import User
from cotrack.schemas.tracking import TrackingCodesRequest, TrackingUpdateRequest, TrackingUpdateResponse
from cotrack.services.tracking import decide_merge, dump_events, parse_stored_events, serialize_record
from cotrack.utils.codes import normalize_code
from cotrack.utils.db import get_session_by_code
from cotrack.utils.exceptions import handle_database_error, not_found_error, validation_error
from cotrack.utils.logger import logger
from cotrack.utils.timestamps import ensure_utc, utc_now

router = APIRouter(prefix="/api/tracking-files", tags=["tracking"])

NO_ACTIVE_TRACKING = "No active tracking session found"


def get_active_record(db: Session, user_code: str, session_code: str) -> Optional[NavigationTracking]:
    """Most recently started active record for a (user, session) pair."""
    return db.query(NavigationTracking).filter(
        NavigationTracking.user_code == user_code,
        NavigationTracking.session_code == session_code,
        NavigationTracking.is_active.is_(True),
    ).order_by(NavigationTracking.recording_started_at.desc()).first()


@router.post("/start")
async def start_tracking(
    request: TrackingCodesRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Start recording for a user in a session.

    Returns the existing active record (200) when one is already open,
    otherwise creates a new one (201).
    """
    user_code = normalize_code(request.user_code)
    session_code = normalize_code(request.session_code)
    try:
        session = get_session_by_code(db, session_code)
        if not session.is_active:
            raise validation_error("Session is not active")

        existing = get_active_record(db, user_code, session_code)
        if existing:
            logger.info(f"Tracking already active for {user_code} in {session_code}")
            return {
                "success": True,
                "message": "Tracking session already active",
                "data": serialize_record(existing, include_events=False),
            }

        user = db.query(User).filter(User.user_code == user_code).first()
        record = NavigationTracking(
            user_code=user_code,
            session_code=session_code,
            user_id=user.id if user else None,
            session_id=session.id,
            recording_started_at=utc_now(),
            navigation_events=[],
            event_count=0,
            is_active=True,
        )
        db.add(record)
        db.flush()

        member = db.query(SessionMember).filter(
            SessionMember.session_id == session.id,
            SessionMember.user_code == user_code,
        ).first()
        if member:
            member.navigation_tracking_id = record.id

        db.commit()
        db.refresh(record)
        logger.info(f"Started tracking {record.id} for {user_code} in {session_code}")

        response.status_code = status.HTTP_201_CREATED
        return {
            "success": True,
            "message": "Tracking session started",
            "data": serialize_record(record, include_events=False),
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to start tracking for {user_code} in {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "start_tracking")


@router.post("/update", response_model=TrackingUpdateResponse)
async def update_tracking(
    request: TrackingUpdateRequest,
    db: Session = Depends(get_db),
) -> TrackingUpdateResponse:
    """
    Merge an event batch into the active record.

    The incoming list replaces the stored one only when it is not stale. A
    payload carrying ``recording_ended_at`` also closes the record.
    """
    user_code = normalize_code(request.user_code)
    session_code = normalize_code(request.session_code)
    data = request.data
    try:
        record = get_active_record(db, user_code, session_code)
        if not record:
            if data.recording_ended_at is not None:
                # Stop already processed; a late final flush is not an error
                return TrackingUpdateResponse(
                    success=True,
                    message="No active tracking session, update skipped",
                    accepted=False,
                    event_count=0,
                )
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_ACTIVE_TRACKING)

        label = f"{user_code}/{session_code}"
        stored = parse_stored_events(record.navigation_events, context=label)
        decision = decide_merge(stored, data.navigation_events, context=label)
        if decision.accepted:
            record.replace_events(dump_events(data.navigation_events))

        if data.recording_ended_at is not None:
            record.end_recording(ensure_utc(data.recording_ended_at))

        db.commit()
        db.refresh(record)

        return TrackingUpdateResponse(
            success=True,
            message="Data updated" if decision.accepted else "Stale update ignored",
            accepted=decision.accepted,
            event_count=record.event_count,
            tracking_id=str(record.id),
            is_active=record.is_active,
        )
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update tracking for {user_code} in {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "update_tracking")


@router.post("/stop")
async def stop_tracking(
    request: TrackingCodesRequest,
    db: Session = Depends(get_db),
):
    """Deactivate the most recent active record of a user in a session."""
    user_code = normalize_code(request.user_code)
    session_code = normalize_code(request.session_code)
    try:
        record = get_active_record(db, user_code, session_code)
        if not record:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_ACTIVE_TRACKING)

        record.end_recording()
        db.commit()
        db.refresh(record)

        duration = ensure_utc(record.recording_ended_at) - ensure_utc(record.recording_started_at)
        logger.info(f"Stopped tracking {record.id} for {user_code} in {session_code}")
        return {
            "success": True,
            "message": "Tracking session stopped",
            "data": {
                **serialize_record(record, include_events=False),
                "duration_seconds": max(0, int(duration.total_seconds())),
            },
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to stop tracking for {user_code} in {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "stop_tracking")


@router.get("/session/{user_code}/{session_code}")
async def get_tracking(
    user_code: str,
    session_code: str,
    db: Session = Depends(get_db),
):
    """Most recent record for a user in a session, with events."""
    user_code = normalize_code(user_code)
    session_code = normalize_code(session_code)
    try:
        record = db.query(NavigationTracking).filter(
            NavigationTracking.user_code == user_code,
            NavigationTracking.session_code == session_code,
        ).order_by(NavigationTracking.recording_started_at.desc()).first()
        if not record:
            raise not_found_error("Tracking session")
        return {"success": True, "data": serialize_record(record)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get tracking for {user_code} in {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_tracking")


@router.get("/sessions")
async def list_tracking(
    active_only: bool = Query(False, description="Only active records"),
    db: Session = Depends(get_db),
):
    """List tracking records without their event lists."""
    try:
        query = db.query(NavigationTracking)
        if active_only:
            query = query.filter(NavigationTracking.is_active.is_(True))
        records = query.order_by(NavigationTracking.recording_started_at.desc()).all()
        return {
            "success": True,
            "count": len(records),
            "data": [serialize_record(record, include_events=False) for record in records],
        }
    except Exception as e:
        logger.error(f"Failed to list tracking records: {e}", exc_info=True)
        raise handle_database_error(e, "list_tracking")


@router.delete("/session/{user_code}/{session_code}")
async def delete_tracking(
    user_code: str,
    session_code: str,
    db: Session = Depends(get_db),
):
    """Delete every record for a user in a session."""
    user_code = normalize_code(user_code)
    session_code = normalize_code(session_code)
    try:
        records = db.query(NavigationTracking).filter(
            NavigationTracking.user_code == user_code,
            NavigationTracking.session_code == session_code,
        ).all()
        if not records:
            raise not_found_error("Tracking session")

        record_ids = [record.id for record in records]
        db.query(SessionMember).filter(
            SessionMember.navigation_tracking_id.in_(record_ids),
        ).update({SessionMember.navigation_tracking_id: None}, synchronize_session=False)
        for record in records:
            db.delete(record)
        db.commit()

        logger.info(f"Deleted {len(records)} tracking records for {user_code} in {session_code}")
        return {"success": True, "message": "Tracking data deleted", "deleted_count": len(records)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete tracking for {user_code} in {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "delete_tracking")


@router.get("/health")
async def tracking_health(db: Session = Depends(get_db)):
    """Record counts for monitoring."""
    try:
        total = db.query(NavigationTracking).count()
        active = db.query(NavigationTracking).filter(NavigationTracking.is_active.is_(True)).count()
        return {
            "success": True,
            "message": "Tracking service is running",
            "active_sessions": active,
            "total_sessions": total,
        }
    except Exception as e:
        logger.error(f"Tracking health check failed: {e}", exc_info=True)
        raise handle_database_error(e, "tracking_health")
