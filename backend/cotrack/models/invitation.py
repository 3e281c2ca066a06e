"""Session invitation model."""
from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship
import uuid
from cotrack.constants import InvitationStatus
from cotrack.database import Base
from cotrack.utils.timestamps import utc_now


class SessionInvitation(Base):
    """Invitation from a session creator to another user."""
    __tablename__ = "session_invitations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    session_code = Column(String(7), nullable=False, index=True)
    invited_by_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    invited_user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    invited_user_code = Column(String(7), nullable=False, index=True)
    status = Column(String(20), default=InvitationStatus.PENDING, nullable=False, index=True)
    message = Column(Text, default="", nullable=False)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    session = relationship("Session")
    invited_by = relationship("User", foreign_keys=[invited_by_id])
    invited_user = relationship("User", foreign_keys=[invited_user_id])
