"""Ingested content model (pages and websites available to the chatbot)."""
from sqlalchemy import Column, DateTime, Index, String, Text, Uuid
import uuid
from cotrack.constants import IngestionStatus
from cotrack.database import Base
from cotrack.utils.timestamps import utc_now


class IngestedContent(Base):
    """Text content of a team/private page or a scraped website."""
    __tablename__ = "ingested_content"
    __table_args__ = (
        Index("ix_ingested_content_type_url", "source_type", "url"),
        Index("ix_ingested_content_type_page", "source_type", "page_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    source_type = Column(String(20), nullable=False)  # page|website
    page_id = Column(Uuid, nullable=True)
    page_model = Column(String(20), nullable=True)  # TeamPage|PrivatePage
    page_title = Column(String, default="", nullable=False)
    url = Column(String, nullable=True)
    domain = Column(String, default="", nullable=False)
    title = Column(String, default="", nullable=False)
    content = Column(Text, default="", nullable=False)
    scraped_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    scraped_by = Column(String(7), nullable=True)
    session_code = Column(String(7), nullable=True, index=True)
    status = Column(String(20), default=IngestionStatus.COMPLETED, nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
