"""Tests for the /api/tracking-files endpoints."""
from __future__ import annotations

from sqlalchemy.exc import OperationalError

from cotrack.api import tracking_files
from cotrack.models.session import SessionMember
from cotrack.models.tracking import NavigationTracking
from helpers import iso, page_event

CODES = {"user_code": "ABC123U", "session_code": "X7K2P9S"}


def update_body(events, ended_at=None, **codes):
    data = {"navigation_events": events}
    if ended_at:
        data["recording_ended_at"] = ended_at
    return {**CODES, **codes, "data": data}


class TestStartTracking:

    def setup_method(self):
        self.url = "/api/tracking-files/start"

    def test_start_creates_record_and_links_member(self, client, db, make_user, make_session):
        make_user()
        make_session()

        response = client.post(self.url, json={"user_code": "abc123u", "session_code": "x7k2p9s"})

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["is_active"] is True
        assert body["data"]["user_code"] == "ABC123U"
        assert "navigation_events" not in body["data"]

        member = db.query(SessionMember).filter(SessionMember.user_code == "ABC123U").one()
        assert str(member.navigation_tracking_id) == body["data"]["id"]

    def test_second_start_returns_existing_record(self, client, make_session):
        make_session()
        first = client.post(self.url, json=CODES).json()

        response = client.post(self.url, json=CODES)

        assert response.status_code == 200
        assert response.json()["message"] == "Tracking session already active"
        assert response.json()["data"]["id"] == first["data"]["id"]

    def test_unknown_session(self, client, db):
        response = client.post(self.url, json=CODES)
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Session not found"}

    def test_inactive_session(self, client, db, make_session):
        session = make_session()
        session.is_active = False
        db.commit()

        response = client.post(self.url, json=CODES)

        assert response.status_code == 400
        assert response.json()["message"] == "Session is not active"

    def test_missing_codes_is_bad_request(self, client, db):
        response = client.post(self.url, json={"user_code": "ABC123U"})
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "session_code" in response.json()["message"]


class TestUpdateTracking:

    def setup_method(self):
        self.url = "/api/tracking-files/update"

    def test_update_replaces_events(self, client, db, make_session):
        make_session()
        client.post("/api/tracking-files/start", json=CODES)

        events = [page_event("https://a.com", 0), page_event("https://b.com", 1)]
        response = client.post(self.url, json=update_body(events))

        assert response.status_code == 200
        body = response.json()
        assert body["accepted"] is True
        assert body["event_count"] == 2
        assert body["message"] == "Data updated"

        record = db.query(NavigationTracking).one()
        assert [e["context"]["url"] for e in record.navigation_events] == ["https://a.com", "https://b.com"]

    def test_stale_update_is_ignored_not_rejected(self, client, db, make_session):
        make_session()
        client.post("/api/tracking-files/start", json=CODES)
        three = [page_event("https://a.com", 0), page_event("https://b.com", 1), page_event("https://c.com", 2)]
        client.post(self.url, json=update_body(three))

        response = client.post(self.url, json=update_body(three[:2]))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["accepted"] is False
        assert body["message"] == "Stale update ignored"
        assert body["event_count"] == 3
        assert db.query(NavigationTracking).one().event_count == 3

    def test_final_flush_ends_recording(self, client, db, make_session):
        make_session()
        client.post("/api/tracking-files/start", json=CODES)

        response = client.post(self.url, json=update_body([page_event("https://a.com", 0)], ended_at=iso(5)))

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        record = db.query(NavigationTracking).one()
        assert record.is_active is False
        assert record.event_count == 1

    def test_late_flush_after_stop_is_skipped(self, client, make_session):
        make_session()

        response = client.post(self.url, json=update_body([page_event("https://a.com", 0)], ended_at=iso(5)))

        assert response.status_code == 200
        assert response.json()["accepted"] is False
        assert response.json()["event_count"] == 0

    def test_mistyped_context_field_is_accepted(self, client, db, make_session):
        make_session()
        client.post("/api/tracking-files/start", json=CODES)
        event = page_event("https://a.com", 0)
        event["context"]["title"] = 404

        response = client.post(self.url, json=update_body([event]))

        assert response.status_code == 200
        assert response.json()["accepted"] is True
        stored = db.query(NavigationTracking).one().navigation_events
        assert stored[0]["context"] == {"url": "https://a.com", "title": 404}

    def test_update_without_record(self, client, make_session):
        make_session()

        response = client.post(self.url, json=update_body([page_event("https://a.com", 0)]))

        assert response.status_code == 404
        assert response.json()["message"] == "No active tracking session found"

    def test_store_unreachable(self, client, make_session, monkeypatch):
        make_session()

        def unreachable(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        monkeypatch.setattr(tracking_files, "get_active_record", unreachable)

        response = client.post(self.url, json=update_body([page_event("https://a.com", 0)]))

        assert response.status_code == 503
        assert response.json() == {"success": False, "message": "Database unavailable during update_tracking"}

    def test_unknown_event_type_is_bad_request(self, client, make_session):
        make_session()
        client.post("/api/tracking-files/start", json=CODES)
        bad = {"event_type": "MOUSE_WIGGLE", "timestamp": iso(0), "context": {}}

        response = client.post(self.url, json=update_body([bad]))

        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid request")


class TestStopTracking:

    def test_stop_then_start_creates_new_record(self, client, db, make_session):
        make_session()
        first = client.post("/api/tracking-files/start", json=CODES).json()["data"]["id"]

        stopped = client.post("/api/tracking-files/stop", json=CODES)
        assert stopped.status_code == 200
        assert stopped.json()["data"]["is_active"] is False
        assert stopped.json()["data"]["duration_seconds"] >= 0

        restarted = client.post("/api/tracking-files/start", json=CODES)
        assert restarted.status_code == 201
        assert restarted.json()["data"]["id"] != first
        assert db.query(NavigationTracking).count() == 2

    def test_stop_without_record(self, client, make_session):
        make_session()
        response = client.post("/api/tracking-files/stop", json=CODES)
        assert response.status_code == 404
        assert response.json()["message"] == "No active tracking session found"


class TestTrackingQueries:

    def test_get_latest_record_with_events(self, client, make_session, make_record):
        make_session()
        make_record("ABC123U", events=[page_event("https://old.com", 0)], is_active=False, started_minute=0)
        make_record("ABC123U", events=[page_event("https://new.com", 9)], started_minute=8)

        response = client.get("/api/tracking-files/session/abc123u/X7K2P9S")

        assert response.status_code == 200
        events = response.json()["data"]["navigation_events"]
        assert events[0]["context"]["url"] == "https://new.com"

    def test_get_missing_record(self, client, db):
        response = client.get("/api/tracking-files/session/ABC123U/X7K2P9S")
        assert response.status_code == 404
        assert response.json()["message"] == "Tracking session not found"

    def test_list_and_health(self, client, make_session, make_record):
        make_session()
        make_record("ABC123U", is_active=False)
        make_record("DEF456U")

        listing = client.get("/api/tracking-files/sessions", params={"active_only": True}).json()
        health = client.get("/api/tracking-files/health").json()

        assert listing["count"] == 1
        assert listing["data"][0]["user_code"] == "DEF456U"
        assert health["active_sessions"] == 1
        assert health["total_sessions"] == 2

    def test_delete_unlinks_members(self, client, db, make_session):
        make_session()
        client.post("/api/tracking-files/start", json=CODES)

        response = client.delete("/api/tracking-files/session/ABC123U/X7K2P9S")

        assert response.status_code == 200
        assert response.json()["deleted_count"] == 1
        assert db.query(NavigationTracking).count() == 0
        db.expire_all()
        member = db.query(SessionMember).filter(SessionMember.user_code == "ABC123U").one()
        assert member.navigation_tracking_id is None

        assert client.delete("/api/tracking-files/session/ABC123U/X7K2P9S").status_code == 404
