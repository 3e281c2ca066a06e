"""Chat history model."""
from sqlalchemy import Column, DateTime, String, Text, Uuid
import uuid
from cotrack.database import Base
from cotrack.models.types import JSONType
from cotrack.utils.timestamps import utc_now


class ChatHistory(Base):
    """One chatbot question and the parsed answer."""
    __tablename__ = "chat_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_code = Column(String(7), nullable=False, index=True)
    user_code = Column(String(16), nullable=False, index=True)
    prompt = Column(Text, nullable=False)
    response = Column(JSONType, nullable=False)  # {answer, sources[]}
    source_ids = Column(JSONType, default=list, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
