"""Chatbot endpoints answering questions over ingested content."""
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cotrack.database import get_db
from cotrack.models.chat_history import ChatHistory
from cotrack.schemas.chatbot import ChatQueryRequest
from cotrack.services.chatbot import answer_question, load_sources, parse_source_ids
from cotrack.services.gemini import GeminiClient, get_llm_factory
from cotrack.utils.codes import normalize_code
from cotrack.utils.exceptions import handle_database_error, validation_error
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_models

router = APIRouter(prefix="/api/chatbot", tags=["chatbot"])


@router.post("/query")
async def query_chatbot(
    request: ChatQueryRequest,
    db: Session = Depends(get_db),
    llm_factory: Callable[[], GeminiClient] = Depends(get_llm_factory),
):
    """
    Answer a question using only the selected ingested sources.

    Input is validated before the model client is built, so bad requests
    never reach the provider and are never recorded in history.
    """
    prompt = (request.prompt or "").strip()
    if not prompt:
        raise validation_error("Prompt is required")
    if not request.session_code:
        raise validation_error("Session code is required")
    if not request.source_ids:
        raise validation_error("At least one source must be selected")

    session_code = normalize_code(request.session_code)
    sources = load_sources(db, parse_source_ids(request.source_ids), session_code)
    if not sources:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No valid ingested sources found for the selected IDs",
        )

    logger.info(f"Chatbot query for {session_code} over {len(sources)} sources")
    user_code = normalize_code(request.user_code) if request.user_code else None
    result = await answer_question(db, llm_factory(), prompt, sources, session_code, user_code)
    return {"success": True, "data": result}


@router.get("/history/{session_code}")
async def get_chat_history(session_code: str, db: Session = Depends(get_db)):
    """Chat history of a session, oldest first."""
    code = normalize_code(session_code)
    if not code:
        raise validation_error("Session code is required")
    try:
        history = db.query(ChatHistory).filter(
            ChatHistory.session_code == code,
        ).order_by(ChatHistory.created_at.asc()).all()
        return {"success": True, "count": len(history), "data": serialize_models(history)}
    except Exception as e:
        logger.error(f"Failed to fetch chat history for {code}: {e}", exc_info=True)
        raise handle_database_error(e, "get_chat_history")
