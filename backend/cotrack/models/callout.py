"""Callout model: a member pointing the team at a spot on a page."""
from datetime import timedelta
from sqlalchemy import Column, DateTime, Index, String, Text, Uuid
import uuid
from cotrack.config import settings
from cotrack.constants import CALLOUT_MESSAGE_MAX_LENGTH, CalloutStatus
from cotrack.database import Base
from cotrack.models.types import JSONType
from cotrack.utils.timestamps import ensure_utc, isoformat, utc_now


def default_expiry():
    """Callouts expire CALLOUT_TTL_MINUTES after creation."""
    return utc_now() + timedelta(minutes=settings.callout_ttl_minutes)


class Callout(Base):
    """Callout raised by a session member."""
    __tablename__ = "callouts"
    __table_args__ = (
        Index("ix_callouts_session_status", "session_code", "status"),
        Index("ix_callouts_session_created", "session_code", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_code = Column(String(7), nullable=False, index=True)
    user_code = Column(String(7), nullable=False, index=True)
    user_name = Column(String, nullable=False)
    page_url = Column(String, nullable=False)
    page_title = Column(String, default="", nullable=False)
    page_domain = Column(String, default="", nullable=False)
    page_favicon = Column(String, default="", nullable=False)
    scroll_position = Column(JSONType, default=lambda: {"x": 0, "y": 0, "y_percentage": 0}, nullable=False)
    selected_text = Column(Text, nullable=True)
    message = Column(String(CALLOUT_MESSAGE_MAX_LENGTH), default="", nullable=False)
    tab_context = Column(JSONType, nullable=True)
    status = Column(String(20), default=CalloutStatus.ACTIVE, nullable=False)
    acknowledged_by = Column(JSONType, default=list, nullable=False)  # [{user_code, user_name, acknowledged_at}]
    expires_at = Column(DateTime(timezone=True), default=default_expiry, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    @property
    def is_expired(self) -> bool:
        return bool(self.expires_at) and utc_now() > ensure_utc(self.expires_at)

    def acknowledge(self, user_code: str, user_name: str) -> bool:
        """
        Record an acknowledgement.

        The creator cannot acknowledge their own callout and repeats are
        ignored. Returns True when a new acknowledgement was added.
        """
        if user_code == self.user_code:
            return False
        entries = list(self.acknowledged_by or [])
        if any(entry.get("user_code") == user_code for entry in entries):
            return False
        entries.append({
            "user_code": user_code,
            "user_name": user_name,
            "acknowledged_at": isoformat(utc_now()),
        })
        self.acknowledged_by = entries
        return True

    def dismiss(self) -> None:
        self.status = CalloutStatus.DISMISSED
