"""LLM summaries of a single member's browsing within a session."""
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session as DbSession

from cotrack.models.member_summary import MemberSummary
from cotrack.models.session import Session, SessionMember
from cotrack.models.tracking import NavigationTracking
from cotrack.schemas.team_analysis import MemberSummaryResult
from cotrack.services.gemini import GeminiClient
from cotrack.services.tracking import deduplicate_page_visits, parse_stored_events
from cotrack.utils.exceptions import JSONExtractionError
from cotrack.utils.json_extract import extract_json_object
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_datetime, serialize_uuid
from cotrack.utils.timestamps import isoformat, utc_now

SUMMARY_PROMPT_TEMPLATE = """You are summarizing what one member of a collaborative research session has been browsing.

Session Topic/Description: "{description}"
Member: {member}

Pages visited, oldest first:
{pages}

Write a short summary (1-2 paragraphs) of what this member has been researching, and rate how relevant their browsing is to the session topic on a scale of 0-100.

Format your response as JSON with the following structure:
{{
  "summary": "What the member has been researching",
  "relevance_score": <number 0-100>
}}

Return ONLY valid JSON, no additional text or markdown."""


class NoBrowsingDataError(Exception):
    """The member has no page visits to summarize."""


def build_summary_prompt(session: Session, member: SessionMember, visits) -> str:
    pages = "\n".join(
        f"- [{isoformat(event.timestamp)}] {event.title or 'N/A'} - {event.url}"
        for event in visits
    )
    return SUMMARY_PROMPT_TEMPLATE.format(
        description=session.session_description or session.session_name or "No description provided",
        member=f"{member.user_name} ({member.user_code})",
        pages=pages,
    )


def parse_summary(text: str) -> MemberSummaryResult:
    """Parsed model output; raw text becomes an unscored summary."""
    try:
        return MemberSummaryResult.model_validate(extract_json_object(text))
    except (JSONExtractionError, ValidationError) as e:
        logger.warning(f"Member summary response was not usable JSON ({e}), storing raw text")
        return MemberSummaryResult(summary=text.strip())


async def summarize_member(
    db: DbSession,
    session: Session,
    member: SessionMember,
    llm: GeminiClient,
) -> MemberSummary:
    """
    Summarize a member's deduplicated page visits and upsert the result.

    Raises:
        NoBrowsingDataError: If the member has no page visits
        LLMError: If the model call fails
    """
    records = db.query(NavigationTracking).filter(
        NavigationTracking.session_code == session.session_code,
        NavigationTracking.user_code == member.user_code,
    ).all()

    events = []
    for record in records:
        events.extend(parse_stored_events(
            record.navigation_events, context=f"{member.user_code}/{session.session_code} record {record.id}"
        ))
    visits = deduplicate_page_visits(events)
    if not visits:
        raise NoBrowsingDataError(f"No browsing data for {member.user_code} in {session.session_code}")

    text = await llm.generate(build_summary_prompt(session, member, visits))
    result = parse_summary(text)

    summary = db.query(MemberSummary).filter(
        MemberSummary.session_code == session.session_code,
        MemberSummary.user_code == member.user_code,
    ).first()
    if summary is None:
        summary = MemberSummary(session_code=session.session_code, user_code=member.user_code)
        db.add(summary)

    summary.session_id = session.id
    summary.user_id = member.user_id
    summary.summary = result.summary
    summary.relevance_score = result.relevance_score
    summary.event_count = len(events)
    summary.generated_at = utc_now()
    db.commit()
    db.refresh(summary)

    logger.info(
        f"Generated summary for {member.user_code} in {session.session_code} "
        f"({len(visits)} pages, relevance {summary.relevance_score})"
    )
    return summary


def get_member_summary(db: DbSession, session_code: str, user_code: str) -> Optional[MemberSummary]:
    return db.query(MemberSummary).filter(
        MemberSummary.session_code == session_code,
        MemberSummary.user_code == user_code,
    ).first()


def serialize_member_summary(summary: MemberSummary) -> Dict[str, Any]:
    return {
        "id": serialize_uuid(summary.id),
        "session_code": summary.session_code,
        "user_code": summary.user_code,
        "summary": summary.summary,
        "relevance_score": summary.relevance_score,
        "event_count": summary.event_count,
        "generated_at": serialize_datetime(summary.generated_at),
    }
