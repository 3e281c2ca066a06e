"""Tests for application-level routes, error envelopes and worker settings."""
from __future__ import annotations

from cotrack.utils.codes import generate_code, is_valid_code, normalize_code
from cotrack.utils.timestamps import isoformat, parse_timestamp
from cotrack.utils.url import extract_domain
from cotrack.workers.config import WorkerSettings, parse_redis_url
from helpers import ts


class TestRoutes:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["message"] == "Cotrack API"
        assert body["docs"] == "/docs"

    def test_health(self, client, db):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected", "environment": "test"}

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/api/nowhere")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Not Found"}


class TestCodes:

    def test_generated_codes_are_valid(self):
        for suffix in ("U", "S"):
            code = generate_code(suffix)
            assert is_valid_code(code, suffix)

    def test_validation(self):
        assert is_valid_code("ABC123U", "U")
        assert not is_valid_code("ABC123S", "U")
        assert not is_valid_code("abc123U", "U")
        assert not is_valid_code("AB-123U", "U")
        assert not is_valid_code("ABC1234U", "U")
        assert normalize_code(" abc123u ") == "ABC123U"


class TestHelpers:

    def test_parse_timestamp(self):
        assert parse_timestamp("2026-01-01T10:00:00Z") == ts(0)
        assert parse_timestamp(int(ts(1).timestamp() * 1000)) == ts(1)
        assert parse_timestamp("not a time") is None
        assert parse_timestamp(True) is None
        assert isoformat(ts(2)) == "2026-01-01T10:02:00Z"

    def test_extract_domain(self):
        assert extract_domain("https://www.coffee.com:8443/x?y=1") == "www.coffee.com"
        assert extract_domain("not a url") == ""
        assert extract_domain(None) == ""


class TestWorkerSettings:

    def test_parse_redis_url(self):
        settings = parse_redis_url("redis://:secret@cache.internal:6380/2")
        assert settings.host == "cache.internal"
        assert settings.port == 6380
        assert settings.password == "secret"
        assert settings.database == 2

    def test_jobs_registered(self):
        names = {getattr(f, "__name__", None) for f in WorkerSettings.functions}
        assert names == {"run_team_analysis", "expire_callouts"}
        assert len(WorkerSettings.cron_jobs) == 2
