"""Tests for the /api/users endpoints."""
from __future__ import annotations

from cotrack.utils.codes import is_valid_code


class TestCreateUser:

    def test_create_issues_user_code(self, client, db):
        response = client.post("/api/users", json={"user_name": "Ada", "user_email": "Ada@Acme.io"})

        assert response.status_code == 201
        data = response.json()["data"]
        assert is_valid_code(data["user_code"], "U")
        assert data["user_email"] == "ada@acme.io"
        assert data["is_active"] is True

    def test_duplicate_email_is_case_insensitive(self, client, make_user):
        make_user(user_email="ada@acme.io")

        response = client.post("/api/users", json={"user_name": "Other", "user_email": "ADA@acme.io"})

        assert response.status_code == 400
        assert response.json()["message"] == "Email already registered"

    def test_invalid_email(self, client, db):
        response = client.post("/api/users", json={"user_name": "Ada", "user_email": "not-an-email"})
        assert response.status_code == 400
        assert "user_email" in response.json()["message"]


class TestValidateUser:

    def test_valid_code(self, client, make_user):
        make_user()
        response = client.get("/api/users/validate/abc123u")
        assert response.status_code == 200
        assert response.json()["valid"] is True
        assert response.json()["data"]["user_name"] == "Ada"

    def test_unknown_code(self, client, db):
        response = client.get("/api/users/validate/ZZZ999U")
        assert response.status_code == 404
        assert response.json()["message"] == "User code not found. Please register on the dashboard first."

    def test_malformed_code(self, client, db):
        response = client.get("/api/users/validate/ABC123S")
        assert response.status_code == 400
        assert response.json()["valid"] is False


class TestUpdateUser:

    def test_email_taken_by_another_user(self, client, make_user):
        make_user()
        make_user(user_code="DEF456U", user_email="grace@acme.io")

        response = client.put("/api/users/ABC123U", json={"user_email": "grace@acme.io"})

        assert response.status_code == 400
        assert response.json()["message"] == "Email already in use by another user"

    def test_update_name_and_own_email(self, client, make_user):
        make_user(user_email="ada@acme.io")

        response = client.put("/api/users/ABC123U", json={"user_name": " Ada L ", "user_email": "ADA@acme.io"})

        assert response.status_code == 200
        assert response.json()["data"]["user_name"] == "Ada L"
        assert response.json()["data"]["user_email"] == "ada@acme.io"


class TestUserSessions:

    def test_created_and_joined_sessions(self, client, make_user, make_session):
        make_user()
        make_user(user_code="DEF456U", user_email="grace@acme.io")
        make_session(creator_code="ABC123U", session_code="AAAAAAS")
        make_session(creator_code="DEF456U", session_code="BBBBBBS", members=("ABC123U",))
        make_session(creator_code="DEF456U", session_code="CCCCCCS")

        response = client.get("/api/users/ABC123U/sessions")

        codes = sorted(s["session_code"] for s in response.json()["data"])
        assert codes == ["AAAAAAS", "BBBBBBS"]

    def test_delete_user(self, client, make_user):
        make_user()
        assert client.delete("/api/users/ABC123U").status_code == 200
        assert client.get("/api/users/ABC123U").status_code == 404
