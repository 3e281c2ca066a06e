"""Team session analysis model."""
from typing import Any, Dict, List
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid
import uuid
from cotrack.database import Base
from cotrack.models.types import JSONType
from cotrack.utils.timestamps import isoformat, utc_now


class TeamSessionAnalysis(Base):
    """
    LLM summary of everything a session's members browsed.

    ``sites`` holds one entry per URL:
    ``{url, title, domain, relevance_score, relevance_explanation, analyzed_at}``.
    A site with ``relevance_score`` of None has not been scored yet.
    """
    __tablename__ = "team_session_analysis"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_code = Column(String(7), unique=True, nullable=False, index=True)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=True, index=True)
    team_summary = Column(Text, default="", nullable=False)
    team_understanding = Column(Text, default="", nullable=False)
    sites = Column(JSONType, default=list, nullable=False)
    total_sites = Column(Integer, default=0, nullable=False)
    analyzed_sites = Column(Integer, default=0, nullable=False)
    last_analyzed_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    analysis_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def unanalyzed_sites(self) -> List[Dict[str, Any]]:
        """Sites that still need a relevance score."""
        return [site for site in (self.sites or []) if site.get("relevance_score") is None]

    def add_sites(self, pages: List[Dict[str, Any]]) -> int:
        """Append pages whose URL is not tracked yet. Returns how many were added."""
        sites = list(self.sites or [])
        known = {site["url"] for site in sites}
        added = 0
        for page in pages:
            if page["url"] in known:
                continue
            sites.append({
                "url": page["url"],
                "title": page.get("title") or "",
                "domain": page.get("domain") or "",
                "relevance_score": None,
                "relevance_explanation": "",
                "analyzed_at": None,
            })
            known.add(page["url"])
            added += 1
        self.sites = sites
        return added

    def update_site_relevance(self, url: str, relevance_score: Any, relevance_explanation: str) -> bool:
        """Set the score of a known site. Unknown URLs are ignored."""
        sites = list(self.sites or [])
        for index, site in enumerate(sites):
            if site.get("url") == url:
                sites[index] = {
                    **site,
                    "relevance_score": relevance_score,
                    "relevance_explanation": relevance_explanation or "",
                    "analyzed_at": isoformat(utc_now()),
                }
                self.sites = sites
                return True
        return False

    def refresh_counts(self) -> None:
        """Recompute total/analyzed site counters from ``sites``."""
        sites = self.sites or []
        self.total_sites = len(sites)
        self.analyzed_sites = sum(1 for site in sites if site.get("relevance_score") is not None)
