"""Tests for callouts and their expiry job."""
from __future__ import annotations

import asyncio
from datetime import timedelta
from uuid import UUID

import pytest

from cotrack.constants import CalloutStatus
from cotrack.models.callout import Callout
from cotrack.utils.timestamps import utc_now
from cotrack.workers.tasks import expire_callouts


@pytest.fixture
def session_with_members(make_user, make_session):
    make_user()
    make_user(user_code="DEF456U", user_name="Grace", user_email="grace@acme.io")
    return make_session(members=("DEF456U", "GHI789U"))


def create_callout(client, user_code="ABC123U", **extra):
    body = {
        "session_code": "X7K2P9S",
        "user_code": user_code,
        "page_url": "https://www.coffee.com/grinders?x=1",
        "page_title": "Grinders",
        "selected_text": "burr",
        "message": "Look at this",
        **extra,
    }
    return client.post("/api/callouts", json=body)


class TestCreateCallout:

    def test_member_creates_callout(self, client, session_with_members):
        response = create_callout(client)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user_name"] == "Ada"
        assert data["page_domain"] == "www.coffee.com"
        assert data["status"] == "active"
        assert data["is_expired"] is False
        assert data["acknowledged_by"] == []
        assert data["scroll_position"] == {"x": 0, "y": 0, "y_percentage": 0}

    def test_missing_fields(self, client, session_with_members):
        response = client.post("/api/callouts", json={"session_code": "X7K2P9S", "user_code": "ABC123U"})
        assert response.status_code == 400
        assert response.json()["message"] == (
            "Missing required fields: session_code, user_code, and page_url are required"
        )

    def test_non_member_forbidden(self, client, session_with_members):
        response = create_callout(client, user_code="ZZZ999U")
        assert response.status_code == 403
        assert response.json()["message"] == "User is not an active member of this session"

    def test_inactive_session(self, client, db, session_with_members):
        session_with_members.is_active = False
        db.commit()
        response = create_callout(client)
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot create callout in an inactive session"

    def test_message_too_long(self, client, session_with_members):
        response = create_callout(client, message="x" * 501)
        assert response.status_code == 400


class TestAcknowledgeAndDismiss:

    def test_acknowledge_is_idempotent_and_skips_creator(self, client, session_with_members):
        callout_id = create_callout(client).json()["data"]["id"]
        url = f"/api/callouts/{callout_id}/acknowledge"

        by_creator = client.post(url, json={"user_code": "ABC123U"})
        first = client.post(url, json={"user_code": "DEF456U"})
        repeat = client.post(url, json={"user_code": "def456u"})
        unregistered = client.post(url, json={"user_code": "GHI789U"})

        assert by_creator.json()["data"]["acknowledged_by"] == []
        assert [a["user_name"] for a in first.json()["data"]["acknowledged_by"]] == ["Grace"]
        assert len(repeat.json()["data"]["acknowledged_by"]) == 1
        assert [a["user_name"] for a in unregistered.json()["data"]["acknowledged_by"]] == ["Grace", "User GHI789U"]

    def test_only_creator_dismisses(self, client, session_with_members):
        callout_id = create_callout(client).json()["data"]["id"]

        forbidden = client.post(f"/api/callouts/{callout_id}/dismiss", json={"user_code": "DEF456U"})
        dismissed = client.post(f"/api/callouts/{callout_id}/dismiss", json={"user_code": "ABC123U"})
        active = client.get("/api/callouts/session/X7K2P9S/active").json()

        assert forbidden.status_code == 403
        assert forbidden.json()["message"] == "Only the callout creator can dismiss it"
        assert dismissed.json()["data"]["status"] == "dismissed"
        assert active["count"] == 0

    def test_only_creator_deletes(self, client, session_with_members):
        callout_id = create_callout(client).json()["data"]["id"]

        forbidden = client.delete(f"/api/callouts/{callout_id}", params={"user_code": "DEF456U"})
        deleted = client.delete(f"/api/callouts/{callout_id}", params={"user_code": "ABC123U"})

        assert forbidden.status_code == 403
        assert deleted.status_code == 200
        assert client.get(f"/api/callouts/{callout_id}").status_code == 404


class TestListing:

    def test_active_excludes_caller_and_expired(self, client, db, session_with_members):
        create_callout(client)
        create_callout(client, user_code="DEF456U")
        stale = create_callout(client, user_code="DEF456U").json()["data"]["id"]
        callout = db.query(Callout).filter(Callout.id == UUID(stale)).one()
        callout.expires_at = utc_now() - timedelta(minutes=1)
        db.commit()

        active = client.get("/api/callouts/session/X7K2P9S/active", params={"exclude_user_code": "abc123u"}).json()
        history = client.get("/api/callouts/session/X7K2P9S", params={"limit": 2}).json()
        stats = client.get("/api/callouts/session/X7K2P9S/stats").json()["data"]

        assert active["count"] == 1
        assert active["data"][0]["user_code"] == "DEF456U"
        assert history["count"] == 2
        assert stats["total"] == 3
        assert stats["active"] == 2
        assert {u["user_code"]: u["count"] for u in stats["by_user"]} == {"ABC123U": 1, "DEF456U": 2}

    def test_invalid_since(self, client, session_with_members):
        response = client.get("/api/callouts/session/X7K2P9S/active", params={"since": "soon"})
        assert response.status_code == 400

    def test_limit_bounds(self, client, session_with_members):
        response = client.get("/api/callouts/session/X7K2P9S", params={"limit": 500})
        assert response.status_code == 400


class TestExpireCallouts:

    def test_marks_past_callouts_expired(self, db, session_with_members):
        old = Callout(
            session_code="X7K2P9S", user_code="ABC123U", user_name="Ada", page_url="https://a.com",
            expires_at=utc_now() - timedelta(minutes=5),
        )
        fresh = Callout(session_code="X7K2P9S", user_code="ABC123U", user_name="Ada", page_url="https://b.com")
        db.add_all([old, fresh])
        db.commit()

        result = asyncio.run(expire_callouts({}))

        assert result == {"success": True, "expired": 1}
        db.expire_all()
        assert db.get(Callout, old.id).status == CalloutStatus.EXPIRED
        assert db.get(Callout, fresh.id).status == CalloutStatus.ACTIVE
