"""Service layer package."""

from pushhub.services.dispatcher import BroadcastDispatcher, BroadcastResult, WelcomeSender
from pushhub.services.history import MessageHistoryStore, PushMessageNotFoundError
from pushhub.services.registry import SubscriberNotFoundError, SubscriberRegistry
from pushhub.services.storage import StorageProvider, SupabaseStorageProvider
from pushhub.services.uploads import AssetUploadBroker

__all__ = [
    "AssetUploadBroker",
    "BroadcastDispatcher",
    "BroadcastResult",
    "MessageHistoryStore",
    "PushMessageNotFoundError",
    "StorageProvider",
    "SubscriberNotFoundError",
    "SubscriberRegistry",
    "SupabaseStorageProvider",
    "WelcomeSender",
]
