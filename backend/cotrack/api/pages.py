"""Team and private page endpoints."""
from typing import Any, Dict, Union
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cotrack.constants import USER_CODE_SUFFIX
from cotrack.database import get_db
from cotrack.models.page import DEFAULT_PAGE_CONTENT, DEFAULT_PAGE_TITLE, PrivatePage, TeamPage
from cotrack.models.user import User
from cotrack.schemas.page import PageAppendRequest, PageCreateRequest, PageUpdateRequest
from cotrack.utils.codes import is_valid_code, normalize_code
from cotrack.utils.db import get_user_by_code
from cotrack.utils.exceptions import handle_database_error, validation_error
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_model

router = APIRouter(prefix="/api/pages", tags=["pages"])

TEAM_PAGE_NOT_FOUND = "Team page not found"
PRIVATE_PAGE_NOT_FOUND = "Private page not found"


def _title_or_default(title) -> str:
    return title.strip() if isinstance(title, str) and title.strip() else DEFAULT_PAGE_TITLE


def _apply_update(page: Union[TeamPage, PrivatePage], request: PageUpdateRequest) -> None:
    if request.title is not None:
        page.title = _title_or_default(request.title)
    if request.content_html is not None:
        page.content_html = request.content_html


def _append_html(page: Union[TeamPage, PrivatePage], html: str) -> None:
    current = page.content_html or ""
    if current == DEFAULT_PAGE_CONTENT:
        current = ""
    page.content_html = current + html


def serialize_page(page: Union[TeamPage, PrivatePage]) -> Dict[str, Any]:
    return serialize_model(page)


def _get_team_page(db: Session, page_id: str) -> TeamPage:
    try:
        page_uuid = UUID(page_id)
    except ValueError:
        raise validation_error("Invalid page ID format")
    page = db.query(TeamPage).filter(TeamPage.id == page_uuid, TeamPage.is_active.is_(True)).first()
    if not page:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TEAM_PAGE_NOT_FOUND)
    return page


def _get_owner(db: Session, user_code: str) -> User:
    code = normalize_code(user_code)
    if not is_valid_code(code, USER_CODE_SUFFIX):
        raise validation_error("Invalid user_code")
    return get_user_by_code(db, code)


def _get_private_page(db: Session, owner: User, page_id: str) -> PrivatePage:
    try:
        page_uuid = UUID(page_id)
    except ValueError:
        raise validation_error("Invalid page ID format")
    page = db.query(PrivatePage).filter(
        PrivatePage.id == page_uuid,
        PrivatePage.user_id == owner.id,
        PrivatePage.is_active.is_(True),
    ).first()
    if not page:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PRIVATE_PAGE_NOT_FOUND)
    return page


@router.get("/team")
async def list_team_pages(db: Session = Depends(get_db)):
    """Active team pages, most recently edited first."""
    try:
        pages = db.query(TeamPage).filter(TeamPage.is_active.is_(True)).order_by(TeamPage.updated_at.desc()).all()
        return {"success": True, "count": len(pages), "data": [serialize_page(p) for p in pages]}
    except Exception as e:
        logger.error(f"Failed to list team pages: {e}", exc_info=True)
        raise handle_database_error(e, "list_team_pages")


@router.post("/team", status_code=status.HTTP_201_CREATED)
async def create_team_page(request: PageCreateRequest, db: Session = Depends(get_db)):
    try:
        creator_code = normalize_code(request.user_code) if request.user_code else None
        creator = get_user_by_code(db, creator_code, required=False) if creator_code else None
        page = TeamPage(
            title=_title_or_default(request.title),
            content_html=request.content_html if request.content_html is not None else DEFAULT_PAGE_CONTENT,
            created_by_id=creator.id if creator else None,
            created_by_user_code=creator_code,
        )
        db.add(page)
        db.commit()
        db.refresh(page)
        return {"success": True, "data": serialize_page(page)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create team page: {e}", exc_info=True)
        raise handle_database_error(e, "create_team_page")


@router.put("/team/{page_id}")
async def update_team_page(page_id: str, request: PageUpdateRequest, db: Session = Depends(get_db)):
    try:
        page = _get_team_page(db, page_id)
        _apply_update(page, request)
        db.commit()
        db.refresh(page)
        return {"success": True, "data": serialize_page(page)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update team page {page_id}: {e}", exc_info=True)
        raise handle_database_error(e, "update_team_page")


@router.delete("/team/{page_id}")
async def delete_team_page(page_id: str, db: Session = Depends(get_db)):
    """Soft delete."""
    try:
        page = _get_team_page(db, page_id)
        page.is_active = False
        db.commit()
        return {"success": True, "message": "Team page deleted"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete team page {page_id}: {e}", exc_info=True)
        raise handle_database_error(e, "delete_team_page")


@router.post("/team/{page_id}/append")
async def append_team_page(page_id: str, request: PageAppendRequest, db: Session = Depends(get_db)):
    """Append HTML (e.g. a chatbot answer) to the end of a team page."""
    try:
        page = _get_team_page(db, page_id)
        _append_html(page, request.content_html)
        db.commit()
        db.refresh(page)
        return {"success": True, "data": serialize_page(page)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to append to team page {page_id}: {e}", exc_info=True)
        raise handle_database_error(e, "append_team_page")


@router.get("/private/{user_code}")
async def list_private_pages(user_code: str, db: Session = Depends(get_db)):
    try:
        owner = _get_owner(db, user_code)
        pages = db.query(PrivatePage).filter(
            PrivatePage.user_id == owner.id,
            PrivatePage.is_active.is_(True),
        ).order_by(PrivatePage.updated_at.desc()).all()
        return {"success": True, "count": len(pages), "data": [serialize_page(p) for p in pages]}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list private pages of {user_code}: {e}", exc_info=True)
        raise handle_database_error(e, "list_private_pages")


@router.post("/private/{user_code}", status_code=status.HTTP_201_CREATED)
async def create_private_page(user_code: str, request: PageCreateRequest, db: Session = Depends(get_db)):
    try:
        owner = _get_owner(db, user_code)
        page = PrivatePage(
            user_id=owner.id,
            user_code=owner.user_code,
            title=_title_or_default(request.title),
            content_html=request.content_html if request.content_html is not None else DEFAULT_PAGE_CONTENT,
        )
        db.add(page)
        db.commit()
        db.refresh(page)
        return {"success": True, "data": serialize_page(page)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create private page for {user_code}: {e}", exc_info=True)
        raise handle_database_error(e, "create_private_page")


@router.put("/private/{user_code}/{page_id}")
async def update_private_page(
    user_code: str,
    page_id: str,
    request: PageUpdateRequest,
    db: Session = Depends(get_db),
):
    try:
        page = _get_private_page(db, _get_owner(db, user_code), page_id)
        _apply_update(page, request)
        db.commit()
        db.refresh(page)
        return {"success": True, "data": serialize_page(page)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update private page {page_id}: {e}", exc_info=True)
        raise handle_database_error(e, "update_private_page")


@router.delete("/private/{user_code}/{page_id}")
async def delete_private_page(user_code: str, page_id: str, db: Session = Depends(get_db)):
    """Soft delete."""
    try:
        page = _get_private_page(db, _get_owner(db, user_code), page_id)
        page.is_active = False
        db.commit()
        return {"success": True, "message": "Private page deleted"}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete private page {page_id}: {e}", exc_info=True)
        raise handle_database_error(e, "delete_private_page")


@router.post("/private/{user_code}/{page_id}/append")
async def append_private_page(
    user_code: str,
    page_id: str,
    request: PageAppendRequest,
    db: Session = Depends(get_db),
):
    try:
        page = _get_private_page(db, _get_owner(db, user_code), page_id)
        _append_html(page, request.content_html)
        db.commit()
        db.refresh(page)
        return {"success": True, "data": serialize_page(page)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to append to private page {page_id}: {e}", exc_info=True)
        raise handle_database_error(e, "append_private_page")
