"""Per-member browsing summary model."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
import uuid
from cotrack.database import Base
from cotrack.utils.timestamps import utc_now


class MemberSummary(Base):
    """LLM summary of one member's browsing within a session."""
    __tablename__ = "member_summaries"
    __table_args__ = (UniqueConstraint("session_code", "user_code", name="uq_member_summary"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_code = Column(String(7), nullable=False, index=True)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=True)
    user_code = Column(String(7), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    summary = Column(Text, default="", nullable=False)
    relevance_score = Column(Integer, nullable=True)  # 0-100
    event_count = Column(Integer, default=0, nullable=False)
    generated_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
