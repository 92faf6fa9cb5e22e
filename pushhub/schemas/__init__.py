"""Pydantic schemas package."""

from pushhub.schemas.auth import TokenPayload
from pushhub.schemas.message import (
    NotificationPayload,
    PushMessageEnvelope,
    PushMessageListResponse,
    PushMessageRead,
    PushMessageUpdate,
    RepushRequest,
)
from pushhub.schemas.push import (
    BroadcastRequest,
    BroadcastResponse,
    OkResponse,
    SubscribeRequest,
    SubscribeResponse,
    SubscriberListResponse,
    SubscriberRead,
    SubscriptionInfo,
    SubscriptionKeys,
    UnsubscribeRequest,
    VapidKeyResponse,
    WelcomeRequest,
)
from pushhub.schemas.upload import (
    DeleteUploadRequest,
    GalleryResponse,
    SignedUploadRead,
    SignUploadRequest,
    SignUploadResponse,
    UploadedAssetRead,
)

__all__ = [
    "TokenPayload",
    "NotificationPayload",
    "PushMessageEnvelope",
    "PushMessageListResponse",
    "PushMessageRead",
    "PushMessageUpdate",
    "RepushRequest",
    "BroadcastRequest",
    "BroadcastResponse",
    "OkResponse",
    "SubscribeRequest",
    "SubscribeResponse",
    "SubscriberListResponse",
    "SubscriberRead",
    "SubscriptionInfo",
    "SubscriptionKeys",
    "UnsubscribeRequest",
    "VapidKeyResponse",
    "WelcomeRequest",
    "DeleteUploadRequest",
    "GalleryResponse",
    "SignedUploadRead",
    "SignUploadRequest",
    "SignUploadResponse",
    "UploadedAssetRead",
]
