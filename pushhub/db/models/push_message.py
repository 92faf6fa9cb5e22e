"""Push message history model."""
import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from pushhub.db.base import Base
from pushhub.db.types import JSONDocument


class PushMessage(Base):
    """A persisted broadcast that operators can edit, delete or resend."""

    __tablename__ = "push_messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False, default="")  # plain text only
    payload = Column(JSONDocument, nullable=False, default=dict)

    status = Column(String(20), nullable=False, default="sent")
    persisted = Column(Boolean, nullable=False, default=True)
    created_by = Column(UUID(as_uuid=True), nullable=True, index=True)

    sent_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
