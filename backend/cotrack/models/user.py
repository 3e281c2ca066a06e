"""User model for collaborators identified by a user code."""
from sqlalchemy import Boolean, Column, DateTime, String, Uuid
import uuid
from cotrack.database import Base
from cotrack.utils.timestamps import utc_now


class User(Base):
    """Collaborator model. The user code is the only credential."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_name = Column(String, nullable=False)
    user_email = Column(String, unique=True, nullable=False, index=True)  # Lower-cased
    user_code = Column(String(7), unique=True, nullable=False, index=True)  # e.g. ABC123U
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
