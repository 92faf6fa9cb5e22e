"""Push subscriber database model."""
import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from pushhub.db.base import Base

STATUS_ACTIVE = "active"
STATUS_STALE = "stale"


class Subscriber(Base):
    """A browser's Web Push subscription."""

    __tablename__ = "push_subscribers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    endpoint = Column(Text, nullable=False, unique=True)

    # Client public key material used to encrypt each message
    p256dh = Column(String(255), nullable=False)
    auth = Column(String(255), nullable=False)

    user_agent = Column(String(255))
    status = Column(String(20), nullable=False, default=STATUS_ACTIVE, index=True)
    failure_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_failure_at = Column(DateTime(timezone=True))
    last_success_at = Column(DateTime(timezone=True))

