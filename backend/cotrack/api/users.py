"""User endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from cotrack.constants import USER_CODE_SUFFIX
from cotrack.database import get_db
from cotrack.models.session import Session as SessionModel, SessionMember
from cotrack.models.user import User
from cotrack.schemas.user import UserCreateRequest, UserUpdateRequest
from cotrack.services.membership import serialize_session
from cotrack.utils.codes import get_unique_code, is_valid_code, normalize_code
from cotrack.utils.db import get_by_id, get_user_by_code
from cotrack.utils.exceptions import handle_database_error, validation_error
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_model

router = APIRouter(prefix="/api/users", tags=["users"])


def _checked_code(user_code: str) -> str:
    code = normalize_code(user_code)
    if not is_valid_code(code, USER_CODE_SUFFIX):
        raise validation_error("Invalid user code format")
    return code


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(request: UserCreateRequest, db: Session = Depends(get_db)):
    """Register a user and hand out a new user code."""
    email = request.user_email.lower()
    try:
        if db.query(User).filter(User.user_email == email).first():
            raise validation_error("Email already registered")

        user = User(
            user_name=request.user_name.strip(),
            user_email=email,
            user_code=get_unique_code(db, User, "user_code", USER_CODE_SUFFIX),
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"Registered user {user.user_code}")
        return {"success": True, "message": "User created successfully", "data": serialize_model(user)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create user {email}: {e}", exc_info=True)
        raise handle_database_error(e, "create_user")


@router.get("")
async def list_users(
    active_only: bool = Query(False, description="Only active users"),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(User)
        if active_only:
            query = query.filter(User.is_active.is_(True))
        users = query.order_by(User.created_at.desc()).all()
        return {"success": True, "count": len(users), "data": [serialize_model(u) for u in users]}
    except Exception as e:
        logger.error(f"Failed to list users: {e}", exc_info=True)
        raise handle_database_error(e, "list_users")


@router.get("/validate/{user_code}")
async def validate_user(user_code: str, db: Session = Depends(get_db)):
    """Check a code typed into the extension."""
    code = normalize_code(user_code)
    if not is_valid_code(code, USER_CODE_SUFFIX):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "valid": False, "message": "Invalid user code format."},
        )
    try:
        user = get_user_by_code(db, code, required=False)
        if not user:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={
                    "success": False,
                    "valid": False,
                    "message": "User code not found. Please register on the dashboard first.",
                },
            )
        return {
            "success": True,
            "valid": True,
            "message": "User code is valid",
            "data": {"user_code": user.user_code, "user_name": user.user_name},
        }
    except Exception as e:
        logger.error(f"Failed to validate user {code}: {e}", exc_info=True)
        raise handle_database_error(e, "validate_user")


@router.get("/id/{user_id}")
async def get_user_by_id(user_id: str, db: Session = Depends(get_db)):
    try:
        user = get_by_id(db, User, user_id, error_message="User not found")
        return {"success": True, "data": serialize_model(user)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get user {user_id}: {e}", exc_info=True)
        raise handle_database_error(e, "get_user_by_id")


@router.get("/{user_code}")
async def get_user(user_code: str, db: Session = Depends(get_db)):
    code = _checked_code(user_code)
    try:
        return {"success": True, "data": serialize_model(get_user_by_code(db, code))}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get user {code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_user")


@router.put("/{user_code}")
async def update_user(user_code: str, request: UserUpdateRequest, db: Session = Depends(get_db)):
    code = _checked_code(user_code)
    try:
        user = get_user_by_code(db, code)
        if request.user_email is not None:
            email = request.user_email.lower()
            taken = db.query(User).filter(User.user_email == email, User.id != user.id).first()
            if taken:
                raise validation_error("Email already in use by another user")
            user.user_email = email
        if request.user_name is not None:
            user.user_name = request.user_name.strip()
        if request.is_active is not None:
            user.is_active = request.is_active
        db.commit()
        db.refresh(user)
        return {"success": True, "message": "User updated successfully", "data": serialize_model(user)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update user {code}: {e}", exc_info=True)
        raise handle_database_error(e, "update_user")


@router.delete("/{user_code}")
async def delete_user(user_code: str, db: Session = Depends(get_db)):
    code = _checked_code(user_code)
    try:
        user = get_user_by_code(db, code)
        db.query(SessionMember).filter(SessionMember.user_id == user.id).update(
            {SessionMember.user_id: None}, synchronize_session=False
        )
        db.delete(user)
        db.commit()
        logger.info(f"Deleted user {code}")
        return {"success": True, "message": "User deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete user {code}: {e}", exc_info=True)
        raise handle_database_error(e, "delete_user")


@router.get("/{user_code}/sessions")
async def get_user_sessions(user_code: str, db: Session = Depends(get_db)):
    """Sessions the user created or is a member of, newest first."""
    code = _checked_code(user_code)
    try:
        member_session_ids = select(SessionMember.session_id).where(SessionMember.user_code == code)
        sessions = db.query(SessionModel).filter(
            (SessionModel.id.in_(member_session_ids)) | (SessionModel.created_by_user_code == code)
        ).order_by(SessionModel.created_at.desc()).all()
        return {
            "success": True,
            "count": len(sessions),
            "data": [serialize_session(session) for session in sessions],
        }
    except Exception as e:
        logger.error(f"Failed to get sessions of {code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_user_sessions")
