"""Test doubles and event builders shared by the test modules."""
from __future__ import annotations

from datetime import datetime, timezone


class FakeLLM:
    """Stands in for GeminiClient: returns queued responses and records prompts."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.prompts = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.responses.pop(0) if self.responses else ""


def ts(minute: int, second: int = 0) -> datetime:
    """Event time on a fixed day, 10:<minute>:<second> UTC."""
    return datetime(2026, 1, 1, 10, minute, second, tzinfo=timezone.utc)


def iso(minute: int, second: int = 0) -> str:
    return ts(minute, second).isoformat().replace("+00:00", "Z")


def page_event(url: str, minute: int, title: str = "", event_type: str = "PAGE_LOADED") -> dict:
    """Stored-form navigation event for a page."""
    return {
        "event_type": event_type,
        "timestamp": iso(minute),
        "context": {"url": url, "title": title},
    }
