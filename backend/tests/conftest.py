"""Shared pytest fixtures.

Tests run against an in-memory SQLite database and a fake LLM; Redis locks
are replaced by in-process fakes.
"""
from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["GEMINI_API_KEY"] = ""
os.environ["TEAM_ANALYSIS_ENABLED"] = "true"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import cotrack.models  # noqa: E402,F401
from cotrack.database import Base, SessionLocal, engine, get_db  # noqa: E402
from cotrack.main import app  # noqa: E402
from cotrack.models.session import Session as SessionModel  # noqa: E402
from cotrack.models.tracking import NavigationTracking  # noqa: E402
from cotrack.models.user import User  # noqa: E402
from cotrack.services.gemini import get_llm_factory  # noqa: E402
from cotrack.services.membership import add_member  # noqa: E402
from cotrack.utils import analysis_lock  # noqa: E402
from helpers import FakeLLM, ts  # noqa: E402


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def client(db, fake_llm):
    """API client bound to the test database and the fake LLM."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm_factory] = lambda: (lambda: fake_llm)
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def lock_calls(monkeypatch):
    """Replace the Redis analysis lock; records (action, session_code) calls."""
    calls = []

    async def acquire(session_code, ttl_seconds=None):
        calls.append(("acquire", session_code))
        return f"token-{session_code}"

    async def release(session_code, token):
        assert token == f"token-{session_code}"
        calls.append(("release", session_code))
        return True

    monkeypatch.setattr(analysis_lock, "acquire_analysis_lock", acquire)
    monkeypatch.setattr(analysis_lock, "release_analysis_lock", release)
    return calls


@pytest.fixture
def make_user(db):
    def _make(user_code="ABC123U", user_name="Ada", user_email=None):
        user = User(
            user_code=user_code,
            user_name=user_name,
            user_email=user_email or f"{user_code.lower()}@acme.io",
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_session(db):
    """Session whose creator (and any extra codes) are members."""

    def _make(creator_code="ABC123U", session_code="X7K2P9S", members=(), description="Researching coffee"):
        creator = db.query(User).filter(User.user_code == creator_code).first()
        session = SessionModel(
            session_code=session_code,
            session_name="Coffee research",
            session_description=description,
            created_by_id=creator.id if creator else None,
            created_by_user_code=creator_code,
            is_active=True,
        )
        db.add(session)
        add_member(db, session, creator_code, user=creator)
        for code in members:
            user = db.query(User).filter(User.user_code == code).first()
            add_member(db, session, code, user=user)
        db.commit()
        db.refresh(session)
        return session

    return _make


@pytest.fixture
def make_record(db):
    """Tracking record with stored events."""

    def _make(user_code, session_code="X7K2P9S", events=(), is_active=True, started_minute=0):
        record = NavigationTracking(
            user_code=user_code,
            session_code=session_code,
            recording_started_at=ts(started_minute),
            navigation_events=list(events),
            event_count=len(events),
            is_active=is_active,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _make
