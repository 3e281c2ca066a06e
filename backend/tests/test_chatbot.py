"""Tests for the chatbot."""
from __future__ import annotations

import json

import pytest

from cotrack.constants import IngestionStatus, SourceType
from cotrack.main import app
from cotrack.models.chat_history import ChatHistory
from cotrack.models.ingested_content import IngestedContent
from cotrack.services.chatbot import FALLBACK_RELEVANCE, parse_answer
from cotrack.services.gemini import get_llm_factory
from cotrack.utils.exceptions import LLMError, LLMRateLimitError
from helpers import ts


@pytest.fixture
def sources(db):
    website = IngestedContent(
        source_type=SourceType.WEBSITE, url="https://coffee.com", domain="coffee.com",
        title="Coffee", content="Burr grinders are consistent.", session_code="X7K2P9S", scraped_at=ts(0),
    )
    page = IngestedContent(
        source_type=SourceType.PAGE, page_title="Notes", title="Notes",
        content="We prefer burr grinders.", session_code="X7K2P9S", scraped_at=ts(1),
    )
    failed = IngestedContent(
        source_type=SourceType.WEBSITE, url="https://down.net", session_code="X7K2P9S",
        status=IngestionStatus.FAILED,
    )
    other = IngestedContent(
        source_type=SourceType.WEBSITE, url="https://tea.com", content="Tea", session_code="OTHER1S",
    )
    db.add_all([website, page, failed, other])
    db.commit()
    return {"website": str(website.id), "page": str(page.id), "failed": str(failed.id), "other": str(other.id)}


def query(client, source_ids, prompt="Which grinder?"):
    return client.post("/api/chatbot/query", json={
        "prompt": prompt,
        "source_ids": source_ids,
        "session_code": "x7k2p9s",
        "user_code": "ABC123U",
    })


class TestQuery:

    def test_answer_with_citations_is_saved(self, client, db, fake_llm, sources):
        fake_llm.responses.append("```json\n" + json.dumps({
            "answer": "Burr grinders [Source 1].",
            "sources": [{"source_number": 1, "type": "website", "title": "Coffee", "url": "https://coffee.com",
                         "relevance": "Compares grinders"}],
        }) + "\n```")

        response = query(client, [sources["website"], sources["page"]])

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["answer"] == "Burr grinders [Source 1]."
        assert data["sources"][0]["relevance"] == "Compares grinders"

        prompt = fake_llm.prompts[0]
        assert "[Source 1: Website: Coffee (https://coffee.com)]" in prompt
        assert "[Source 2: Page: Notes]" in prompt
        assert "Which grinder?" in prompt

        history = db.query(ChatHistory).one()
        assert history.session_code == "X7K2P9S"
        assert history.response["answer"] == "Burr grinders [Source 1]."
        assert sorted(history.source_ids) == sorted([sources["website"], sources["page"]])

    def test_empty_source_ids_never_reach_the_model(self, client, db, fake_llm, sources):
        response = query(client, [])

        assert response.status_code == 400
        assert response.json()["message"] == "At least one source must be selected"
        assert fake_llm.prompts == []
        assert db.query(ChatHistory).count() == 0

    def test_missing_prompt_and_session(self, client, db, sources):
        assert query(client, [sources["website"]], prompt="  ").json()["message"] == "Prompt is required"
        response = client.post("/api/chatbot/query", json={"prompt": "q", "source_ids": [sources["website"]]})
        assert response.json()["message"] == "Session code is required"

    def test_only_completed_sources_of_the_session(self, client, fake_llm, sources):
        response = query(client, [sources["failed"], sources["other"], "garbage"])

        assert response.status_code == 404
        assert response.json()["message"] == "No valid ingested sources found for the selected IDs"
        assert fake_llm.prompts == []

    def test_plain_text_answer_falls_back(self, client, fake_llm, sources):
        fake_llm.responses.append("Burr grinders, probably.")

        data = query(client, [sources["website"]]).json()["data"]

        assert data["answer"] == "Burr grinders, probably."
        assert data["sources"] == [{
            "source_number": 1, "type": "website", "title": "Coffee",
            "url": "https://coffee.com", "relevance": FALLBACK_RELEVANCE,
        }]

    def test_llm_failures(self, client, fake_llm, sources):
        fake_llm.error = LLMRateLimitError("429 RESOURCE_EXHAUSTED")
        limited = query(client, [sources["website"]])
        fake_llm.error = LLMError("boom")
        failed = query(client, [sources["website"]])

        assert limited.status_code == 503
        assert failed.status_code == 500
        assert failed.json()["message"] == "AI request failed"

    def test_missing_api_key(self, client, sources):
        app.dependency_overrides.pop(get_llm_factory)

        response = query(client, [sources["website"]])

        assert response.status_code == 500
        assert response.json()["message"] == "Gemini API key not configured"

    def test_history_oldest_first(self, client, fake_llm, sources):
        fake_llm.responses.extend(["first", "second"])
        query(client, [sources["website"]], prompt="one")
        query(client, [sources["website"]], prompt="two")

        history = client.get("/api/chatbot/history/X7K2P9S").json()

        assert [h["prompt"] for h in history["data"]] == ["one", "two"]


class TestParseAnswer:

    def test_json_without_answer_falls_back(self):
        text = '{"sources": []}'
        assert parse_answer(text, [])["answer"] == text

    def test_sources_as_json_string(self):
        text = json.dumps({"answer": "A", "sources": json.dumps([{"source_number": 1, "title": "T"}])})
        result = parse_answer(text, [])
        assert result["sources"] == [
            {"source_number": 1, "type": "website", "title": "T", "url": None, "relevance": ""},
        ]
