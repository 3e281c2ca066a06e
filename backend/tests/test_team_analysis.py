"""Tests for team analysis, member summaries and the scheduled analysis job."""
from __future__ import annotations

import asyncio
import json

import pytest

from cotrack.models.member_summary import MemberSummary
from cotrack.models.team_analysis import TeamSessionAnalysis
from cotrack.services.team_analysis import (
    analyze_team_session,
    get_all_session_pages,
    process_all_active_sessions,
)
from cotrack.utils import analysis_lock
from cotrack.utils.exceptions import JSONExtractionError, LLMError, LLMRateLimitError, NotFoundError
from cotrack.workers import tasks
from helpers import FakeLLM, page_event


def analysis_response(*scores, summary="The team compared grinders."):
    return json.dumps({
        "team_summary": summary,
        "team_understanding": "On track.",
        "site_relevance": [
            {"url": url, "relevance_score": score, "relevance_explanation": f"scored {score}"}
            for url, score in scores
        ],
    })


@pytest.fixture
def browsing(make_session, make_record):
    """Two members; one URL visited by both."""
    session = make_session(members=("DEF456U",))
    make_record("ABC123U", events=[
        page_event("https://coffee.com/burr", 0, title="Burr"),
        page_event("https://tea.com", 1, event_type="PAGE_OPEN"),
        {"event_type": "TAB_OPEN", "timestamp": "2026-01-01T10:02:00Z", "context": {"url": "https://ignored.com"}},
    ])
    make_record("DEF456U", events=[page_event("https://coffee.com/burr", 3)], started_minute=3)
    return session


class TestSessionPages:

    def test_unique_pages_with_visitors(self, db, browsing):
        pages = get_all_session_pages(db, "X7K2P9S")

        assert [p["url"] for p in pages] == ["https://coffee.com/burr", "https://tea.com"]
        assert pages[0]["visited_by"] == ["ABC123U", "DEF456U"]
        assert pages[0]["title"] == "Burr"
        assert pages[1]["domain"] == "tea.com"

    def test_malformed_records_are_skipped(self, db, make_session, make_record):
        make_session()
        make_record("ABC123U", events=[])
        record = make_record("DEF456U")
        record.navigation_events = {"not": "a list"}
        db.commit()

        assert get_all_session_pages(db, "X7K2P9S") == []


class TestAnalyzeTeamSession:

    def test_first_analysis_scores_every_site(self, db, browsing):
        llm = FakeLLM([analysis_response(("https://coffee.com/burr", 90), ("https://tea.com", "15.4"))])

        analysis = asyncio.run(analyze_team_session(db, "X7K2P9S", llm))

        assert analysis.total_sites == 2
        assert analysis.analyzed_sites == 2
        assert analysis.analysis_count == 1
        assert analysis.team_summary == "The team compared grinders."
        scores = {site["url"]: site["relevance_score"] for site in analysis.sites}
        assert scores == {"https://coffee.com/burr": 90, "https://tea.com": 15}
        assert "Researching coffee" in llm.prompts[0]

    def test_only_new_sites_are_sent(self, db, browsing, make_record):
        llm = FakeLLM([analysis_response(("https://coffee.com/burr", 90), ("https://tea.com", 10))])
        asyncio.run(analyze_team_session(db, "X7K2P9S", llm))

        # Nothing new: no model call
        asyncio.run(analyze_team_session(db, "X7K2P9S", llm))
        assert len(llm.prompts) == 1

        make_record("DEF456U", events=[page_event("https://grinders.org", 9)], started_minute=9)
        llm.responses.append(analysis_response(("https://grinders.org", 70), summary="Updated."))
        analysis = asyncio.run(analyze_team_session(db, "X7K2P9S", llm))

        assert "https://grinders.org" in llm.prompts[1]
        assert "https://tea.com" not in llm.prompts[1].split("visited the following websites:")[1]
        assert "Previous Team Summary" in llm.prompts[1]
        assert analysis.total_sites == 3
        assert analysis.analyzed_sites == 3
        assert analysis.analysis_count == 2
        assert analysis.team_summary == "Updated."

    def test_rate_limit_returns_partial_counts(self, db, browsing):
        llm = FakeLLM(error=LLMRateLimitError("429"))

        analysis = asyncio.run(analyze_team_session(db, "X7K2P9S", llm))

        assert analysis.total_sites == 2
        assert analysis.analyzed_sites == 0
        assert analysis.analysis_count == 0

    def test_other_failures_propagate_after_saving_counts(self, db, browsing):
        llm = FakeLLM(error=LLMError("boom"))

        with pytest.raises(LLMError):
            asyncio.run(analyze_team_session(db, "X7K2P9S", llm))

        stored = db.query(TeamSessionAnalysis).one()
        assert stored.total_sites == 2
        assert stored.analyzed_sites == 0

    def test_unparseable_reply_saves_counts_and_raises(self, db, browsing):
        llm = FakeLLM(["I could not decide."])

        with pytest.raises(JSONExtractionError):
            asyncio.run(analyze_team_session(db, "X7K2P9S", llm))

        stored = db.query(TeamSessionAnalysis).one()
        assert stored.total_sites == 2
        assert stored.analyzed_sites == 0
        assert stored.analysis_count == 0

    def test_unknown_urls_and_bad_scores_ignored(self, db, browsing):
        llm = FakeLLM([analysis_response(("https://elsewhere.com", 50), ("https://tea.com", "n/a"))])

        analysis = asyncio.run(analyze_team_session(db, "X7K2P9S", llm))

        assert analysis.analyzed_sites == 0
        assert all(site["url"] != "https://elsewhere.com" for site in analysis.sites)

    def test_no_pages(self, db, make_session):
        make_session()
        assert asyncio.run(analyze_team_session(db, "X7K2P9S", FakeLLM())) is None

    def test_unknown_session(self, db):
        with pytest.raises(NotFoundError):
            asyncio.run(analyze_team_session(db, "ZZZZZZS", FakeLLM()))


class TestProcessAllActiveSessions:

    def test_counts_and_skips_locked(self, db, browsing, make_session, make_record):
        make_session(session_code="BUSY11S")
        make_record("ABC123U", session_code="BUSY11S", events=[page_event("https://a.com", 0)])
        make_session(session_code="FAIL11S")
        make_record("ABC123U", session_code="FAIL11S", events=[page_event("https://b.com", 0)])

        class PickyLLM(FakeLLM):
            async def generate(self, prompt):
                if "https://b.com" in prompt:
                    raise LLMError("bad gateway")
                return analysis_response(("https://coffee.com/burr", 80), ("https://tea.com", 20))

        released = []

        async def acquire(code):
            return code != "BUSY11S"

        async def release(code, token):
            released.append(code)

        counts = asyncio.run(process_all_active_sessions(db, PickyLLM(), acquire_lock=acquire, release_lock=release))

        assert counts == {"processed": 1, "skipped": 1, "failed": 1}
        assert sorted(released) == ["FAIL11S", "X7K2P9S"]

    def test_scheduled_job_without_api_key(self, db):
        result = asyncio.run(tasks.run_team_analysis({}))
        assert result["success"] is False
        assert result["error"] == "Gemini API key not configured"

    def test_scheduled_job_runs_with_locks(self, db, browsing, monkeypatch, lock_calls):
        llm = FakeLLM([analysis_response(("https://coffee.com/burr", 80), ("https://tea.com", 20))])
        monkeypatch.setattr(tasks, "GeminiClient", lambda: llm)

        result = asyncio.run(tasks.run_team_analysis({}))

        assert result == {"success": True, "processed": 1, "skipped": 0, "failed": 0}
        assert lock_calls == [("acquire", "X7K2P9S"), ("release", "X7K2P9S")]
        db.expire_all()
        assert db.query(TeamSessionAnalysis).one().analyzed_sites == 2


class TestTeamAnalysisApi:

    def test_analyze_and_fetch(self, client, fake_llm, browsing, lock_calls):
        fake_llm.responses.append(analysis_response(("https://coffee.com/burr", 80), ("https://tea.com", 20)))

        response = client.post("/api/team-analysis/x7k2p9s/analyze")
        fetched = client.get("/api/team-analysis/X7K2P9S").json()["data"]

        assert response.status_code == 200
        assert response.json()["data"]["analyzed_sites"] == 2
        assert "sites" not in response.json()["data"]
        assert lock_calls == [("acquire", "X7K2P9S"), ("release", "X7K2P9S")]
        assert len(fetched["sites"]) == 2

    def test_analysis_in_progress(self, client, fake_llm, browsing, monkeypatch):
        async def held(session_code, ttl_seconds=None):
            return None

        monkeypatch.setattr(analysis_lock, "acquire_analysis_lock", held)

        response = client.post("/api/team-analysis/X7K2P9S/analyze")

        assert response.status_code == 409
        assert response.json()["message"] == "Analysis already in progress for this session"
        assert fake_llm.prompts == []

    def test_no_pages_and_missing_analysis(self, client, make_session, lock_calls):
        make_session()

        analyzed = client.post("/api/team-analysis/X7K2P9S/analyze")
        fetched = client.get("/api/team-analysis/X7K2P9S")

        assert analyzed.status_code == 404
        assert analyzed.json()["message"] == "No pages found for analysis"
        assert lock_calls[-1] == ("release", "X7K2P9S")
        assert fetched.status_code == 404
        assert fetched.json()["message"] == "Analysis not found for this session"

    def test_unknown_session(self, client, db):
        response = client.post("/api/team-analysis/ZZZZZZS/analyze")
        assert response.status_code == 404
        assert response.json()["message"] == "Session not found: ZZZZZZS"


class TestMemberSummaryApi:

    def test_summarize_and_fetch(self, client, db, fake_llm, browsing):
        fake_llm.responses.append('Sure! {"summary": "Compared burr grinders.", "relevance_score": 140}')

        response = client.post("/api/sessions/X7K2P9S/members/abc123u/summarize")
        fetched = client.get("/api/sessions/X7K2P9S/members/ABC123U/summary")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["summary"] == "Compared burr grinders."
        assert data["relevance_score"] == 100
        assert data["event_count"] == 3
        assert fetched.json()["data"]["summary"] == "Compared burr grinders."
        assert "https://coffee.com/burr" in fake_llm.prompts[0]

    def test_regenerate_replaces_summary(self, client, db, fake_llm, browsing):
        fake_llm.responses.extend(["First take.", '{"summary": "Second take.", "relevance_score": 55}'])

        client.post("/api/sessions/X7K2P9S/members/ABC123U/summarize")
        first = db.query(MemberSummary).one()
        assert first.summary == "First take."
        assert first.relevance_score is None

        client.post("/api/sessions/X7K2P9S/members/ABC123U/summarize")
        db.expire_all()
        stored = db.query(MemberSummary).one()
        assert stored.summary == "Second take."
        assert stored.relevance_score == 55

    def test_member_without_browsing(self, client, fake_llm, make_session):
        make_session()

        response = client.post("/api/sessions/X7K2P9S/members/ABC123U/summarize")

        assert response.status_code == 404
        assert fake_llm.prompts == []

    def test_missing_summary(self, client, make_session):
        make_session()
        response = client.get("/api/sessions/X7K2P9S/members/ABC123U/summary")
        assert response.status_code == 404
        assert response.json()["message"] == "Summary not found"
