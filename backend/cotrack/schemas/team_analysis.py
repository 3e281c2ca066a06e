"""Schemas for LLM output used by team analysis and member summaries."""
from pydantic import BaseModel, Field, field_validator
from typing import Any, List, Optional


def score_0_100(value: Any) -> Optional[int]:
    """Scores are 0-100; anything non-numeric counts as unscored."""
    if value is None or isinstance(value, bool):
        return None
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return None
    return max(0, min(100, score))


class SiteRelevance(BaseModel):
    url: str
    relevance_score: Optional[int] = None
    relevance_explanation: str = ""

    @field_validator("relevance_score", mode="before")
    @classmethod
    def clamp_score(cls, value):
        return score_0_100(value)

    @field_validator("relevance_explanation", mode="before")
    @classmethod
    def explanation_text(cls, value):
        return value if isinstance(value, str) else ""


class TeamAnalysisResult(BaseModel):
    """JSON object the model is asked to return."""
    team_summary: Optional[str] = None
    team_understanding: Optional[str] = None
    site_relevance: List[SiteRelevance] = Field(default_factory=list)

    @field_validator("team_summary", "team_understanding", mode="before")
    @classmethod
    def text_or_none(cls, value):
        return value if isinstance(value, str) else None

    @field_validator("site_relevance", mode="before")
    @classmethod
    def drop_malformed_sites(cls, value):
        """Keep only entries that at least name a URL."""
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict) and isinstance(item.get("url"), str)]


class MemberSummaryResult(BaseModel):
    """JSON object returned for a single member summary."""
    summary: str = ""
    relevance_score: Optional[int] = None

    @field_validator("relevance_score", mode="before")
    @classmethod
    def clamp_score(cls, value):
        return score_0_100(value)
