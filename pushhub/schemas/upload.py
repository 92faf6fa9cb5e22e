"""Pydantic models for the notification image endpoints."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SignUploadRequest(BaseModel):
    filename: str = Field(min_length=1, max_length=255)


class SignedUploadRead(BaseModel):
    """Grant the browser uses to PUT the file straight into storage."""

    url: str
    signed_url: str = Field(serialization_alias="signedUrl")
    token: Optional[str] = None
    path: str


class SignUploadResponse(BaseModel):
    ok: bool = True
    signed_upload: SignedUploadRead = Field(serialization_alias="signedUpload")
    path: str
    bucket: str
    public_url: str = Field(serialization_alias="publicUrl")


class DeleteUploadRequest(BaseModel):
    """Identify an object by storage path, or by its public URL."""

    path: Optional[str] = Field(default=None, max_length=1024)
    bucket: Optional[str] = Field(default=None, max_length=100)
    public_url: Optional[str] = Field(default=None, alias="publicUrl", max_length=2048)

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def require_target(self) -> "DeleteUploadRequest":
        if not self.path and not self.public_url:
            raise ValueError("path or publicUrl is required")
        return self


class UploadedAssetRead(BaseModel):
    name: str
    bucket: str
    path: str
    url: str
    public_url: str = Field(serialization_alias="publicUrl")
    uploaded_by: Optional[uuid.UUID] = Field(default=None, serialization_alias="uploadedBy")
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")


class GalleryResponse(BaseModel):
    ok: bool = True
    data: list[UploadedAssetRead]
