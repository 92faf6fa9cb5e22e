"""Pydantic models for subscription and broadcast endpoints."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, ValidationError, field_validator

from pushhub.utils.text import html_to_plain_text

_HTTP_URL = TypeAdapter(HttpUrl)


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(min_length=1, max_length=255)
    auth: str = Field(min_length=1, max_length=255)


class SubscriptionInfo(BaseModel):
    """Subscription object produced by the browser's ``PushManager.subscribe``."""

    endpoint: str = Field(min_length=1, max_length=2048)
    keys: SubscriptionKeys
    expiration_time: Optional[float] = Field(default=None, alias="expirationTime")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("endpoint")
    @classmethod
    def https_endpoint(cls, value: str) -> str:
        try:
            url = _HTTP_URL.validate_python(value)
        except ValidationError as exc:
            raise ValueError("endpoint must be an https URL") from exc
        if url.scheme != "https":
            raise ValueError("endpoint must be an https URL")
        return value


class SubscribeRequest(BaseModel):
    subscription: SubscriptionInfo


class SubscribeResponse(BaseModel):
    ok: bool = True
    id: uuid.UUID


class UnsubscribeRequest(BaseModel):
    endpoint: str = Field(min_length=1, max_length=2048)


class OkResponse(BaseModel):
    ok: bool = True


class VapidKeyResponse(BaseModel):
    ok: bool = True
    public_key: Optional[str] = Field(default=None, serialization_alias="publicKey")


class _ComposedMessage(BaseModel):
    """Title and body authored in the admin console.

    Rich text is reduced to plain text here, before any delivery code sees it.
    """

    title: str = Field(min_length=1, max_length=255)
    message: str = Field(default="", max_length=4000)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("message")
    @classmethod
    def plain_text_message(cls, value: str) -> str:
        return html_to_plain_text(value)


class BroadcastRequest(_ComposedMessage):
    """Body of the broadcast send endpoint."""

    image_url: Optional[str] = Field(default=None, alias="imageUrl", max_length=2048)
    url: Optional[str] = Field(default=None, max_length=2048)
    persist: bool = True
    skip_persist: bool = Field(default=False, alias="skipPersist")

    model_config = ConfigDict(populate_by_name=True)


class BroadcastResponse(BaseModel):
    """Aggregate outcome counts for one broadcast."""

    ok: bool = True
    success_count: int = Field(serialization_alias="successCount")
    permanent_failure_count: int = Field(serialization_alias="permanentFailureCount")
    transient_failure_count: int = Field(serialization_alias="transientFailureCount")
    unknown_count: int = Field(serialization_alias="unknownCount")
    total: int
    history_id: Optional[uuid.UUID] = Field(default=None, serialization_alias="historyId")


class WelcomeRequest(BaseModel):
    subscription: SubscriptionInfo
    title: Optional[str] = Field(default=None, max_length=255)
    message: Optional[str] = Field(default=None, max_length=4000)

    @field_validator("message")
    @classmethod
    def plain_text_message(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else html_to_plain_text(value)


class SubscriberRead(BaseModel):
    """Subscriber row as listed in the admin console."""

    id: uuid.UUID
    endpoint: str
    status: str
    failure_count: int = Field(serialization_alias="failureCount")
    user_agent: Optional[str] = Field(default=None, serialization_alias="userAgent")
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")
    last_failure_at: Optional[datetime] = Field(default=None, serialization_alias="lastFailureAt")
    last_success_at: Optional[datetime] = Field(default=None, serialization_alias="lastSuccessAt")

    model_config = ConfigDict(from_attributes=True)


class SubscriberListResponse(BaseModel):
    ok: bool = True
    total: int
    data: list[SubscriberRead]
