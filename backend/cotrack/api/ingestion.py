"""Content ingestion endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from cotrack.constants import INGESTED_CONTENT_LIST_LIMIT
from cotrack.database import get_db
from cotrack.models.ingested_content import IngestedContent
from cotrack.schemas.ingestion import CheckIngestedRequest, IngestRequest
from cotrack.services.ingestion import batch_ingest, check_ingested
from cotrack.utils.codes import normalize_code
from cotrack.utils.exceptions import handle_database_error, validation_error
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_models

router = APIRouter(prefix="/api/ingestion", tags=["ingestion"])


@router.post("/ingest")
async def ingest_sources(request: IngestRequest, db: Session = Depends(get_db)):
    """
    Ingest pages and websites for a session.

    Each source is handled independently; the response lists per-source
    successes and failures.
    """
    if not request.sources:
        raise validation_error("No sources provided for ingestion")
    if not request.user_code:
        raise validation_error("User code is required")
    if not request.session_code:
        raise validation_error("Session code is required for ingestion")

    user_code = normalize_code(request.user_code)
    session_code = normalize_code(request.session_code)
    try:
        results = await batch_ingest(db, request.sources, user_code, session_code)
        total_success = len(results["pages"]["success"]) + len(results["websites"]["success"])
        total_failed = len(results["pages"]["failed"]) + len(results["websites"]["failed"])

        message = f"Ingested {total_success} source(s) successfully"
        if total_failed:
            message += f", {total_failed} failed"
        logger.info(f"[INGEST] {session_code}: {message}")

        return {
            "success": True,
            "message": message,
            "results": {
                kind: {
                    "success": len(bucket["success"]),
                    "failed": len(bucket["failed"]),
                    "details": bucket,
                }
                for kind, bucket in results.items()
            },
        }
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"[INGEST] Failed to ingest sources for {session_code}: {e}", exc_info=True)
        raise handle_database_error(e, "ingest_sources")


@router.get("/content")
async def get_ingested_content(
    source_type: Optional[str] = Query(None, description="page or website"),
    page_id: Optional[str] = Query(None),
    url: Optional[str] = Query(None),
    session_code: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Ingested content matching the filters, newest first."""
    try:
        query = db.query(IngestedContent)
        if source_type:
            query = query.filter(IngestedContent.source_type == source_type)
        if page_id:
            try:
                query = query.filter(IngestedContent.page_id == UUID(page_id))
            except ValueError:
                raise validation_error("Invalid page ID format")
        if url:
            query = query.filter(IngestedContent.url == url)
        if session_code:
            query = query.filter(IngestedContent.session_code == normalize_code(session_code))

        ingested = query.order_by(IngestedContent.scraped_at.desc()).limit(INGESTED_CONTENT_LIST_LIMIT).all()
        return {"success": True, "count": len(ingested), "data": serialize_models(ingested)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[INGEST] Failed to get ingested content: {e}", exc_info=True)
        raise handle_database_error(e, "get_ingested_content")


@router.post("/check")
async def check_ingested_sources(request: CheckIngestedRequest, db: Session = Depends(get_db)):
    """Report which sources already have an ingestion record in the session."""
    if request.sources is None:
        raise validation_error("Sources array is required")
    if not request.session_code:
        raise validation_error("Session code is required")
    try:
        ingested, status_map = check_ingested(db, request.sources, normalize_code(request.session_code))
        return {"success": True, "ingested": ingested, "status": status_map}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[INGEST] Failed to check ingested sources: {e}", exc_info=True)
        raise handle_database_error(e, "check_ingested")
