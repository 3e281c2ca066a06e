"""Navigation tracking record model."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Uuid
import uuid
from cotrack.database import Base
from cotrack.models.types import JSONType
from cotrack.utils.timestamps import utc_now


class NavigationTracking(Base):
    """
    One recording attempt of one user in one session.

    At most one record per (user_code, session_code) is active at a time.
    A stopped record is never reactivated; the next start creates a new one.
    """
    __tablename__ = "navigation_tracking"
    __table_args__ = (Index("ix_navigation_tracking_user_session", "user_code", "session_code"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_code = Column(String(7), nullable=False, index=True)
    session_code = Column(String(7), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True)
    recording_started_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    recording_ended_at = Column(DateTime(timezone=True), nullable=True)
    navigation_events = Column(JSONType, default=list, nullable=False)  # Replaced wholesale on merge
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    event_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def replace_events(self, events: list) -> None:
        """Swap in a new event list and refresh the cached count."""
        self.navigation_events = list(events)
        self.event_count = len(self.navigation_events)

    def end_recording(self, ended_at=None) -> None:
        """Deactivate the record."""
        self.is_active = False
        self.recording_ended_at = ended_at or utc_now()
