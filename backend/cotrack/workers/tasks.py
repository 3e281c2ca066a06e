"""ARQ background tasks for team analysis and callout expiry."""
from typing import Any, Dict

from cotrack.config import settings
from cotrack.constants import CalloutStatus
from cotrack.database import SessionLocal
from cotrack.models.callout import Callout
from cotrack.services.gemini import GeminiClient
from cotrack.services.team_analysis import process_all_active_sessions
from cotrack.utils import analysis_lock
from cotrack.utils.exceptions import LLMConfigurationError
from cotrack.utils.logger import logger
from cotrack.utils.timestamps import utc_now


async def run_team_analysis(ctx: Dict[str, Any]) -> Dict[str, Any]:
    """
    Analyze every active session.

    Each session is analyzed under its redis lock, so a manual run of the
    same session in the API is skipped rather than duplicated.

    Returns:
        Dict with success status and per-outcome session counts
    """
    if not settings.team_analysis_enabled:
        return {"success": True, "skipped": "team analysis disabled"}

    try:
        llm = GeminiClient()
    except LLMConfigurationError as e:
        logger.warning(f"[ANALYSIS] Skipping scheduled run: {e}")
        return {"success": False, "error": str(e)}

    db = SessionLocal()
    try:
        counts = await process_all_active_sessions(
            db,
            llm,
            acquire_lock=analysis_lock.acquire_analysis_lock,
            release_lock=analysis_lock.release_analysis_lock,
        )
        logger.info(
            f"[ANALYSIS] Scheduled run finished: {counts['processed']} processed, "
            f"{counts['skipped']} skipped, {counts['failed']} failed"
        )
        return {"success": True, **counts}
    except Exception as e:
        logger.error(f"[ANALYSIS] Scheduled run failed: {e}", exc_info=True)
        return {"success": False, "error": str(e)}
    finally:
        db.close()


async def expire_callouts(ctx: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mark active callouts past their expiry as expired.

    Returns:
        Dict with count of callouts expired
    """
    db = SessionLocal()
    try:
        expired = db.query(Callout).filter(
            Callout.status == CalloutStatus.ACTIVE,
            Callout.expires_at <= utc_now(),
        ).update({Callout.status: CalloutStatus.EXPIRED}, synchronize_session=False)
        db.commit()
        if expired:
            logger.info(f"Expired {expired} callouts")
        return {"success": True, "expired": expired}
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to expire callouts: {e}", exc_info=True)
        return {"success": False, "error": str(e)}
    finally:
        db.close()
