"""Database models package."""
from pushhub.db.models.push_message import PushMessage
from pushhub.db.models.subscriber import STATUS_ACTIVE, STATUS_STALE, Subscriber
from pushhub.db.models.uploaded_asset import UploadedAsset

__all__ = [
    "PushMessage",
    "STATUS_ACTIVE",
    "STATUS_STALE",
    "Subscriber",
    "UploadedAsset",
]
