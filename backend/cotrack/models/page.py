"""Team and private page models (rich-text notes)."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, Uuid
import uuid
from cotrack.constants import PAGE_TITLE_MAX_LENGTH
from cotrack.database import Base
from cotrack.utils.timestamps import utc_now

DEFAULT_PAGE_TITLE = "Untitled"
DEFAULT_PAGE_CONTENT = "<p></p>"


class TeamPage(Base):
    """Page shared by everyone."""
    __tablename__ = "team_pages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(PAGE_TITLE_MAX_LENGTH), default=DEFAULT_PAGE_TITLE, nullable=False)
    content_html = Column(Text, default=DEFAULT_PAGE_CONTENT, nullable=False)
    created_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_user_code = Column(String(7), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)  # Soft delete
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, index=True)


class PrivatePage(Base):
    """Page visible to its owner only."""
    __tablename__ = "private_pages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_code = Column(String(7), nullable=False, index=True)
    title = Column(String(PAGE_TITLE_MAX_LENGTH), default=DEFAULT_PAGE_TITLE, nullable=False)
    content_html = Column(Text, default=DEFAULT_PAGE_CONTENT, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)  # Soft delete
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, index=True)
