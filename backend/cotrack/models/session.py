"""Session and session member models."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
import uuid
from cotrack.database import Base
from cotrack.utils.timestamps import utc_now


class Session(Base):
    """Collaboration session that scopes tracking, ingestion and chat."""
    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_code = Column(String(7), unique=True, nullable=False, index=True)  # e.g. X7K2P9S
    session_name = Column(String, nullable=False)
    session_description = Column(Text, nullable=True)
    created_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_user_code = Column(String(7), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    created_by = relationship("User")
    members = relationship(
        "SessionMember",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionMember.joined_at",
    )

    @property
    def member_count(self) -> int:
        """Number of active members."""
        return sum(1 for member in self.members if member.is_active)

    def find_member(self, user_code: str):
        """Member entry for a user code, active or not."""
        for member in self.members:
            if member.user_code == user_code:
                return member
        return None


class SessionMember(Base):
    """Membership of a user in a session."""
    __tablename__ = "session_members"
    __table_args__ = (UniqueConstraint("session_id", "user_code", name="uq_session_member"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    user_code = Column(String(7), nullable=False, index=True)
    user_name = Column(String, nullable=False)
    navigation_tracking_id = Column(Uuid, ForeignKey("navigation_tracking.id", ondelete="SET NULL"), nullable=True)
    joined_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    left_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    session = relationship("Session", back_populates="members")
    user = relationship("User")
