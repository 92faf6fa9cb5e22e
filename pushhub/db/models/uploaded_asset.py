"""Uploaded notification image metadata."""
import uuid

from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from pushhub.db.base import Base


class UploadedAsset(Base):
    """Storage object placed by an operator through a signed upload grant."""

    __tablename__ = "uploaded_assets"
    __table_args__ = (UniqueConstraint("bucket", "path", name="uq_uploaded_assets_bucket_path"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    bucket = Column(String(100), nullable=False)
    path = Column(String(1024), nullable=False)
    public_url = Column(Text, nullable=False)
    uploaded_by = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
