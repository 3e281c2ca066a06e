"""Question answering over a session's ingested content."""
import json
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from cotrack.constants import IngestionStatus, SourceType
from cotrack.models.chat_history import ChatHistory
from cotrack.models.ingested_content import IngestedContent
from cotrack.schemas.chatbot import ChatSource
from cotrack.services.gemini import GeminiClient
from cotrack.utils.exceptions import JSONExtractionError
from cotrack.utils.json_extract import extract_json_object
from cotrack.utils.logger import logger

FALLBACK_RELEVANCE = "Used in response"

CHAT_PROMPT_TEMPLATE = """You are a helpful AI assistant that answers questions based ONLY on the following ingested content from a collaborative research session.

RULES:
1. Answer only what is asked.
2. If the question cannot be answered from the ingested content, say that the information is not available in the ingested sources.
3. Do not add information that is not in the ingested content.
4. Cite sources as [Source X] where X is the source number.

INGESTED CONTENT:
{context}

USER QUESTION:
{question}

Format your response as JSON with the following structure:
{{
  "answer": "Your answer with [Source X] citations",
  "sources": [
    {{
      "source_number": 1,
      "type": "page" or "website",
      "title": "Source title",
      "url": "URL if website",
      "relevance": "How this source was relevant to the answer"
    }}
  ]
}}

Return ONLY valid JSON, no additional text or markdown."""


def parse_source_ids(source_ids: Sequence[str]) -> List[UUID]:
    """Valid UUIDs from the request; anything else is ignored."""
    parsed = []
    for source_id in source_ids:
        try:
            parsed.append(UUID(str(source_id)))
        except ValueError:
            logger.debug(f"Ignoring malformed source id {source_id!r}")
    return parsed


def load_sources(db: Session, source_ids: Sequence[UUID], session_code: str) -> List[IngestedContent]:
    """Completed ingested content of the session among the given ids."""
    if not source_ids:
        return []
    return db.query(IngestedContent).filter(
        IngestedContent.id.in_(list(source_ids)),
        IngestedContent.session_code == session_code,
        IngestedContent.status == IngestionStatus.COMPLETED,
    ).order_by(IngestedContent.scraped_at.asc()).all()


def source_title(source: IngestedContent) -> str:
    return source.title or source.page_title or "Untitled"


def build_prompt(question: str, sources: Sequence[IngestedContent]) -> str:
    """Embed numbered sources and the question into the chat prompt."""
    parts = []
    for number, source in enumerate(sources, start=1):
        title = source_title(source)
        if source.source_type == SourceType.PAGE:
            label = f"Page: {title}"
        else:
            label = f"Website: {title}" + (f" ({source.url})" if source.url else "")
        parts.append(f"[Source {number}: {label}]\n{source.content or ''}")
    context = "\n\n---\n\n".join(parts)
    return CHAT_PROMPT_TEMPLATE.format(context=context, question=question)


def _normalize_sources(raw_sources: Any, sources: Sequence[IngestedContent]) -> List[Dict[str, Any]]:
    """Coerce model-provided sources into ChatSource dicts, filling gaps from the real source."""
    if isinstance(raw_sources, str):
        try:
            raw_sources = json.loads(raw_sources)
        except json.JSONDecodeError:
            raw_sources = []
    if not isinstance(raw_sources, list):
        return []

    by_number = {number: source for number, source in enumerate(sources, start=1)}
    normalized = []
    for item in raw_sources:
        if not isinstance(item, dict):
            continue
        number = item.get("source_number")
        number = number if isinstance(number, int) and not isinstance(number, bool) else 0
        known = by_number.get(number)
        normalized.append(ChatSource(
            source_number=number,
            type=item["type"] if isinstance(item.get("type"), str) else (known.source_type if known else "website"),
            title=item["title"] if isinstance(item.get("title"), str) else (source_title(known) if known else "Untitled"),
            url=item["url"] if isinstance(item.get("url"), str) else (known.url if known else None),
            relevance=item["relevance"] if isinstance(item.get("relevance"), str) else "",
        ).model_dump())
    return normalized


def fallback_answer(text: str, sources: Sequence[IngestedContent]) -> Dict[str, Any]:
    """Raw model text plus one entry per source used."""
    return {
        "answer": text,
        "sources": [
            ChatSource(
                source_number=number,
                type=source.source_type,
                title=source_title(source),
                url=source.url,
                relevance=FALLBACK_RELEVANCE,
            ).model_dump()
            for number, source in enumerate(sources, start=1)
        ],
    }


def parse_answer(text: str, sources: Sequence[IngestedContent]) -> Dict[str, Any]:
    """
    Turn model output into ``{answer, sources}``.

    Unparseable output, or JSON without a usable answer, falls back to the raw text.
    """
    try:
        data = extract_json_object(text)
    except JSONExtractionError as e:
        logger.warning(f"Chatbot response was not JSON ({e}), using raw text")
        return fallback_answer(text, sources)

    answer = data.get("answer")
    if not isinstance(answer, str) or not answer.strip():
        logger.warning("Chatbot JSON response had no answer, using raw text")
        return fallback_answer(text, sources)

    return {"answer": answer, "sources": _normalize_sources(data.get("sources"), sources)}


async def answer_question(
    db: Session,
    llm: GeminiClient,
    question: str,
    sources: Sequence[IngestedContent],
    session_code: str,
    user_code: Optional[str],
) -> Dict[str, Any]:
    """
    Ask the model and record the exchange.

    Saving history is best-effort: a failure is logged and the answer is
    still returned.
    """
    text = await llm.generate(build_prompt(question, sources))
    if not text:
        text = "Unable to generate response."
    result = parse_answer(text, sources)

    try:
        db.add(ChatHistory(
            session_code=session_code,
            user_code=user_code or "unknown",
            prompt=question,
            response=result,
            source_ids=[str(source.id) for source in sources],
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to save chat history for session {session_code}: {e}", exc_info=True)

    return result
