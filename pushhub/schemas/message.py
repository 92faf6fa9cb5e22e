"""Pydantic models for push message history."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pushhub.utils.text import html_to_plain_text


class NotificationPayload(BaseModel):
    """Structured extras delivered alongside a message.

    Stored under a version tag so the shape can grow without reinterpreting
    older history rows.
    """

    v: Literal[1] = 1
    image_url: Optional[str] = Field(default=None, alias="imageUrl", max_length=2048)
    url: Optional[str] = Field(default=None, max_length=2048)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class PushMessageRead(BaseModel):
    """History entry returned to the admin console."""

    id: uuid.UUID
    title: str
    message: str
    payload: NotificationPayload
    status: str
    persisted: bool
    created_by: Optional[uuid.UUID] = Field(default=None, serialization_alias="createdBy")
    sent_at: Optional[datetime] = Field(default=None, serialization_alias="sentAt")
    updated_at: Optional[datetime] = Field(default=None, serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True)


class PushMessageUpdate(BaseModel):
    """Editable display fields of a history entry."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    message: Optional[str] = Field(default=None, max_length=4000)
    payload: Optional[NotificationPayload] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("message")
    @classmethod
    def plain_text_message(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else html_to_plain_text(value)

    @model_validator(mode="after")
    def ensure_payload_not_empty(self) -> "PushMessageUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class PushMessageEnvelope(BaseModel):
    ok: bool = True
    data: PushMessageRead


class PushMessageListResponse(BaseModel):
    ok: bool = True
    data: list[PushMessageRead]


class RepushRequest(BaseModel):
    """Resend options; persisting again is opt-in."""

    persist: bool = False
