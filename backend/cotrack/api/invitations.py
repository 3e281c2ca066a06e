"""Session invitation endpoints."""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from cotrack.constants import InvitationStatus
from cotrack.database import get_db
from cotrack.models.invitation import SessionInvitation
from cotrack.schemas.invitation import InvitationCreateRequest, InvitationResponseRequest
from cotrack.services.membership import add_member, serialize_member
from cotrack.utils.codes import normalize_code
from cotrack.utils.db import get_by_id, get_session_by_code, get_user_by_code
from cotrack.utils.exceptions import (
    forbidden_error,
    handle_database_error,
    not_found_error,
    validation_error,
)
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_datetime, serialize_uuid
from cotrack.utils.timestamps import utc_now

router = APIRouter(prefix="/api", tags=["invitations"])


def serialize_invitation(invitation: SessionInvitation) -> Dict[str, Any]:
    session = invitation.session
    inviter = invitation.invited_by
    invitee = invitation.invited_user
    return {
        "id": serialize_uuid(invitation.id),
        "session_code": invitation.session_code,
        "session_name": session.session_name if session else None,
        "session_description": session.session_description if session else None,
        "invited_by": {
            "user_code": inviter.user_code,
            "user_name": inviter.user_name,
        } if inviter else None,
        "invited_user": {
            "user_code": invitee.user_code if invitee else invitation.invited_user_code,
            "user_name": invitee.user_name if invitee else None,
        },
        "status": invitation.status,
        "message": invitation.message,
        "responded_at": serialize_datetime(invitation.responded_at),
        "created_at": serialize_datetime(invitation.created_at),
    }


def _get_invitation(db: Session, invitation_id: str) -> SessionInvitation:
    return get_by_id(db, SessionInvitation, invitation_id, error_message="Invitation not found")


@router.post("/sessions/{session_code}/invitations", status_code=status.HTTP_201_CREATED)
async def send_invitation(
    session_code: str,
    request: InvitationCreateRequest,
    db: Session = Depends(get_db),
):
    """Invite a registered user to a session. Only the creator may invite."""
    inviter_code = normalize_code(request.inviter_user_code)
    invitee_code = normalize_code(request.invitee_user_code)
    try:
        session = get_session_by_code(db, session_code)
        if not session.is_active:
            raise validation_error("Cannot send invitations to an inactive session")

        inviter = get_user_by_code(db, inviter_code, required=False)
        if not inviter:
            raise not_found_error("Inviter user")
        if session.created_by_user_code != inviter_code:
            raise forbidden_error("Only the session creator can send invitations")

        invitee = get_user_by_code(db, invitee_code, required=False)
        if not invitee:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Invitee user not found. The user must be registered first.",
            )
        if invitee_code == inviter_code:
            raise validation_error("You cannot invite yourself to the session")

        member = session.find_member(invitee_code)
        if member and member.is_active:
            raise validation_error("User is already a member of this session")

        pending = db.query(SessionInvitation).filter(
            SessionInvitation.session_id == session.id,
            SessionInvitation.invited_user_code == invitee_code,
            SessionInvitation.status == InvitationStatus.PENDING,
        ).first()
        if pending:
            raise validation_error("User already has a pending invitation for this session")

        invitation = SessionInvitation(
            session_id=session.id,
            session_code=session.session_code,
            invited_by_id=inviter.id,
            invited_user_id=invitee.id,
            invited_user_code=invitee_code,
            status=InvitationStatus.PENDING,
            message=request.message or "",
        )
        db.add(invitation)
        db.commit()
        db.refresh(invitation)

        logger.info(f"{inviter_code} invited {invitee_code} to {session.session_code}")
        return {
            "success": True,
            "message": "Invitation sent successfully",
            "data": serialize_invitation(invitation),
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to invite {invitee_code} to {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "send_invitation")


@router.get("/sessions/{session_code}/invitations")
async def get_session_invitations(
    session_code: str,
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    db: Session = Depends(get_db),
):
    try:
        session = get_session_by_code(db, session_code)
        query = db.query(SessionInvitation).filter(SessionInvitation.session_id == session.id)
        if status_filter:
            query = query.filter(SessionInvitation.status == status_filter)
        invitations = query.order_by(SessionInvitation.created_at.desc()).all()
        return {
            "success": True,
            "count": len(invitations),
            "data": [serialize_invitation(invitation) for invitation in invitations],
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list invitations of {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_session_invitations")


@router.get("/invitations/pending/{user_code}")
async def get_pending_invitations(user_code: str, db: Session = Depends(get_db)):
    """Pending invitations addressed to a user."""
    code = normalize_code(user_code)
    try:
        get_user_by_code(db, code)
        invitations = db.query(SessionInvitation).filter(
            SessionInvitation.invited_user_code == code,
            SessionInvitation.status == InvitationStatus.PENDING,
        ).order_by(SessionInvitation.created_at.desc()).all()
        return {
            "success": True,
            "count": len(invitations),
            "data": [serialize_invitation(invitation) for invitation in invitations],
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list pending invitations of {code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_pending_invitations")


@router.post("/invitations/{invitation_id}/accept")
async def accept_invitation(
    invitation_id: str,
    request: InvitationResponseRequest,
    db: Session = Depends(get_db),
):
    """
    Accept an invitation and join the session.

    An invitation to a session that has since ended is cancelled instead.
    """
    user_code = normalize_code(request.user_code)
    try:
        invitation = _get_invitation(db, invitation_id)
        if invitation.invited_user_code != user_code:
            raise forbidden_error("You are not authorized to accept this invitation")
        if invitation.status != InvitationStatus.PENDING:
            raise validation_error(f"Invitation has already been {invitation.status}")

        session = invitation.session
        if not session:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session no longer exists")
        if not session.is_active:
            invitation.status = InvitationStatus.CANCELLED
            invitation.responded_at = utc_now()
            db.commit()
            raise validation_error("Session is no longer active. Invitation has been cancelled.")

        user = get_user_by_code(db, user_code)
        member = add_member(db, session, user_code, user=user)
        invitation.status = InvitationStatus.ACCEPTED
        invitation.responded_at = utc_now()
        db.commit()
        db.refresh(invitation)

        logger.info(f"{user_code} accepted invitation to {session.session_code}")
        return {
            "success": True,
            "message": "Invitation accepted successfully. You have been added to the session.",
            "data": {
                "invitation": serialize_invitation(invitation),
                "member": serialize_member(member),
            },
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to accept invitation {invitation_id}: {e}", exc_info=True)
        raise handle_database_error(e, "accept_invitation")


@router.post("/invitations/{invitation_id}/decline")
async def decline_invitation(
    invitation_id: str,
    request: InvitationResponseRequest,
    db: Session = Depends(get_db),
):
    user_code = normalize_code(request.user_code)
    try:
        invitation = _get_invitation(db, invitation_id)
        if invitation.invited_user_code != user_code:
            raise forbidden_error("You are not authorized to decline this invitation")
        if invitation.status != InvitationStatus.PENDING:
            raise validation_error(f"Invitation has already been {invitation.status}")

        invitation.status = InvitationStatus.DECLINED
        invitation.responded_at = utc_now()
        db.commit()
        db.refresh(invitation)
        return {
            "success": True,
            "message": "Invitation declined successfully",
            "data": serialize_invitation(invitation),
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to decline invitation {invitation_id}: {e}", exc_info=True)
        raise handle_database_error(e, "decline_invitation")


@router.delete("/invitations/{invitation_id}")
async def cancel_invitation(
    invitation_id: str,
    user_code: str = Query(..., min_length=1, description="Session creator's user code"),
    db: Session = Depends(get_db),
):
    """Cancel a pending invitation. Only the session creator may cancel."""
    code = normalize_code(user_code)
    try:
        invitation = _get_invitation(db, invitation_id)
        session = invitation.session
        if not session:
            raise not_found_error("Session")
        if session.created_by_user_code != code:
            raise forbidden_error("Only the session creator can cancel invitations")
        if invitation.status != InvitationStatus.PENDING:
            raise validation_error(f"Cannot cancel invitation that has already been {invitation.status}")

        invitation.status = InvitationStatus.CANCELLED
        invitation.responded_at = utc_now()
        db.commit()
        db.refresh(invitation)
        return {
            "success": True,
            "message": "Invitation cancelled successfully",
            "data": serialize_invitation(invitation),
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to cancel invitation {invitation_id}: {e}", exc_info=True)
        raise handle_database_error(e, "cancel_invitation")
