"""Team analysis endpoints."""
from typing import Any, Callable, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cotrack.database import get_db
from cotrack.models.team_analysis import TeamSessionAnalysis
from cotrack.services.gemini import GeminiClient, get_llm_factory
from cotrack.services.team_analysis import analyze_team_session
from cotrack.utils import analysis_lock
from cotrack.utils.codes import normalize_code
from cotrack.utils.exceptions import conflict_error, handle_database_error
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_datetime

router = APIRouter(prefix="/api/team-analysis", tags=["team-analysis"])


def serialize_analysis(analysis: TeamSessionAnalysis, include_sites: bool = True) -> Dict[str, Any]:
    data = {
        "session_code": analysis.session_code,
        "team_summary": analysis.team_summary,
        "team_understanding": analysis.team_understanding,
        "total_sites": analysis.total_sites,
        "analyzed_sites": analysis.analyzed_sites,
        "last_analyzed_at": serialize_datetime(analysis.last_analyzed_at),
        "analysis_count": analysis.analysis_count,
    }
    if include_sites:
        data["sites"] = analysis.sites or []
    return data


@router.post("/{session_code}/analyze")
async def analyze_session(
    session_code: str,
    db: Session = Depends(get_db),
    llm_factory: Callable[[], GeminiClient] = Depends(get_llm_factory),
):
    """
    Run team analysis now.

    Returns 409 while the scheduled worker (or another request) is analyzing
    the same session.
    """
    code = normalize_code(session_code)
    llm = llm_factory()
    token = await analysis_lock.acquire_analysis_lock(code)
    if not token:
        raise conflict_error("Analysis already in progress for this session")
    try:
        analysis = await analyze_team_session(db, code, llm)
        if analysis is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No pages found for analysis")
        return {"success": True, "data": serialize_analysis(analysis, include_sites=False)}
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"[ANALYSIS] Manual analysis of {code} failed: {e}", exc_info=True)
        raise
    finally:
        await analysis_lock.release_analysis_lock(code, token)


@router.get("/{session_code}")
async def get_analysis(session_code: str, db: Session = Depends(get_db)):
    code = normalize_code(session_code)
    try:
        analysis = db.query(TeamSessionAnalysis).filter(TeamSessionAnalysis.session_code == code).first()
        if not analysis:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Analysis not found for this session",
            )
        return {"success": True, "data": serialize_analysis(analysis)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[ANALYSIS] Failed to fetch analysis of {code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_team_analysis")
