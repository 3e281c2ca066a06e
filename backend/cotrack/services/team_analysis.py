"""Team analysis: LLM summary and per-site relevance for a session's browsing."""
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from cotrack.constants import PAGE_VISIT_EVENT_TYPES
from cotrack.models.session import Session as SessionModel
from cotrack.models.team_analysis import TeamSessionAnalysis
from cotrack.models.tracking import NavigationTracking
from cotrack.schemas.team_analysis import TeamAnalysisResult
from cotrack.services.gemini import GeminiClient
from cotrack.utils.exceptions import JSONExtractionError, LLMError, LLMRateLimitError, NotFoundError
from cotrack.utils.json_extract import extract_json_object
from cotrack.utils.logger import logger
from cotrack.utils.timestamps import utc_now
from cotrack.utils.url import extract_domain

ANALYSIS_PROMPT_TEMPLATE = """You are analyzing a collaborative research session for a team.

Session Topic/Description: "{description}"
Session Name: "{name}"

{previous}The team has visited the following websites:
{sites}

Generate:

1. team_summary: 2-3 paragraphs describing the kinds of sites and domains the team browsed, grouping related sites. {summary_instruction}

2. team_understanding: 2-4 paragraphs evaluating how the browsing aligns with the session topic, whether the team is on track, and what gaps remain. {understanding_instruction}

Separate paragraphs with \\n\\n.

3. site_relevance: a relevance score (0-100) for each site above, relative to the session topic.

Format your response as JSON with the following structure:
{{
  "team_summary": "Summary of sites browsed and browsing patterns",
  "team_understanding": "How the browsing compares to the session description",
  "site_relevance": [
    {{
      "url": "exact_url_from_list",
      "relevance_score": <number 0-100>,
      "relevance_explanation": "Why this score was given"
    }}
  ]
}}

Return ONLY valid, complete JSON with no markdown and no text before or after it."""


def get_all_session_pages(db: Session, session_code: str) -> List[Dict[str, Any]]:
    """
    Unique pages visited by any member of a session.

    Considers PAGE_LOADED and PAGE_OPEN events across every tracking record.
    Records with a malformed event list are skipped.

    Returns:
        ``[{url, title, domain, visited_by}]`` in first-visit order
    """
    records = db.query(NavigationTracking).filter(
        NavigationTracking.session_code == session_code,
    ).order_by(NavigationTracking.recording_started_at.asc()).all()

    pages: Dict[str, Dict[str, Any]] = {}
    for record in records:
        events = record.navigation_events
        if not isinstance(events, list):
            continue
        for event in events:
            if not isinstance(event, dict) or event.get("event_type") not in PAGE_VISIT_EVENT_TYPES:
                continue
            context = event.get("context") if isinstance(event.get("context"), dict) else {}
            url = context.get("url") or context.get("full_url")
            if not url or not isinstance(url, str):
                continue
            page = pages.get(url)
            if page is None:
                page = pages[url] = {
                    "url": url,
                    "title": str(context.get("title") or ""),
                    "domain": str(context.get("domain") or extract_domain(url) or url),
                    "visited_by": [],
                }
            if record.user_code and record.user_code not in page["visited_by"]:
                page["visited_by"].append(record.user_code)
    return list(pages.values())


def build_analysis_prompt(session: SessionModel, analysis: TeamSessionAnalysis, sites: List[Dict[str, Any]]) -> str:
    """Prompt asking for summary, understanding and scores of unscored sites."""
    previous = ""
    if analysis.team_summary:
        previous += f"Previous Team Summary:\n{analysis.team_summary}\n\n"
    if analysis.team_understanding:
        previous += f"Previous Team Understanding:\n{analysis.team_understanding}\n\n"

    site_lines = "\n".join(
        f"{index}. {site.get('title') or 'N/A'} ({site.get('domain') or 'N/A'}) - {site['url']}"
        for index, site in enumerate(sites, start=1)
    )
    return ANALYSIS_PROMPT_TEMPLATE.format(
        description=session.session_description or "No description provided",
        name=session.session_name or session.session_code,
        previous=previous,
        sites=site_lines,
        summary_instruction=(
            "Update and expand the existing summary with the new sites."
            if analysis.team_summary else "Write a new summary."
        ),
        understanding_instruction=(
            "Update the existing understanding based on the new sites."
            if analysis.team_understanding else "Write a new assessment."
        ),
    )


def _save_counts(db: Session, analysis: TeamSessionAnalysis) -> None:
    analysis.refresh_counts()
    db.commit()
    db.refresh(analysis)


async def analyze_team_session(
    db: Session,
    session_code: str,
    llm: GeminiClient,
) -> Optional[TeamSessionAnalysis]:
    """
    Create or extend the team analysis of a session.

    New pages are added to the analysis; the model is only asked about sites
    that have no score yet. Rate limiting returns the analysis with refreshed
    counters. Other model or parse failures also save refreshed counters, then
    re-raise.

    Returns:
        The analysis, or None when the session has no visited pages

    Raises:
        NotFoundError: If the session does not exist
        LLMError: On provider failures other than rate limiting
    """
    session = db.query(SessionModel).filter(SessionModel.session_code == session_code).first()
    if not session:
        raise NotFoundError(f"Session not found: {session_code}")

    pages = get_all_session_pages(db, session_code)
    if not pages:
        logger.info(f"[ANALYSIS] No pages found for session {session_code}")
        return None

    analysis = db.query(TeamSessionAnalysis).filter(TeamSessionAnalysis.session_code == session_code).first()
    if analysis is None:
        analysis = TeamSessionAnalysis(session_code=session_code, session_id=session.id, sites=[])
        db.add(analysis)
    added = analysis.add_sites(pages)
    analysis.refresh_counts()
    db.commit()
    db.refresh(analysis)

    unanalyzed = analysis.unanalyzed_sites()
    logger.info(
        f"[ANALYSIS] Session {session_code}: {added} new sites, "
        f"{len(unanalyzed)} unanalyzed of {analysis.total_sites}"
    )
    if not unanalyzed:
        return analysis

    try:
        text = await llm.generate(build_analysis_prompt(session, analysis, unanalyzed))
        result = TeamAnalysisResult.model_validate(extract_json_object(text))
    except LLMRateLimitError:
        logger.warning(f"[ANALYSIS] Rate limited for session {session_code}, will retry on the next run")
        _save_counts(db, analysis)
        return analysis
    except (LLMError, JSONExtractionError, ValidationError, ValueError) as e:
        logger.error(f"[ANALYSIS] Analysis failed for session {session_code}: {e}", exc_info=True)
        _save_counts(db, analysis)
        raise

    if result.team_summary:
        analysis.team_summary = result.team_summary
    if result.team_understanding:
        analysis.team_understanding = result.team_understanding
    for site in result.site_relevance:
        analysis.update_site_relevance(site.url, site.relevance_score, site.relevance_explanation)

    analysis.last_analyzed_at = utc_now()
    analysis.analysis_count = (analysis.analysis_count or 0) + 1
    _save_counts(db, analysis)

    logger.info(
        f"[ANALYSIS] Session {session_code}: {analysis.analyzed_sites}/{analysis.total_sites} sites analyzed"
    )
    return analysis


async def process_all_active_sessions(
    db: Session,
    llm: GeminiClient,
    acquire_lock=None,
    release_lock=None,
) -> Dict[str, int]:
    """
    Analyze every active session in turn.

    A failing session is logged and skipped. When lock callables are given,
    sessions whose lock is held elsewhere are skipped too.

    Returns:
        Counts of ``processed``, ``skipped`` and ``failed`` sessions
    """
    codes = [
        code for (code,) in db.query(SessionModel.session_code).filter(
            SessionModel.is_active.is_(True)
        ).all()
    ]
    logger.info(f"[ANALYSIS] Processing {len(codes)} active sessions for team analysis")

    counts = {"processed": 0, "skipped": 0, "failed": 0}
    for code in codes:
        token = await acquire_lock(code) if acquire_lock else None
        if acquire_lock and not token:
            counts["skipped"] += 1
            continue
        try:
            await analyze_team_session(db, code, llm)
            counts["processed"] += 1
        except Exception as e:
            db.rollback()
            logger.error(f"[ANALYSIS] Error processing session {code}: {e}", exc_info=True)
            counts["failed"] += 1
        finally:
            if release_lock:
                await release_lock(code, token)
    return counts
