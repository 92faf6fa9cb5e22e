"""Shared API dependencies."""
from __future__ import annotations

from typing import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pushhub.config import settings
from pushhub.core.security import InvalidTokenError, Operator, resolve_operator
from pushhub.core.webpush import WebPushSender
from pushhub.db.session import SessionLocal
from pushhub.services.dispatcher import BroadcastDispatcher, WelcomeSender
from pushhub.services.storage import StorageProvider, SupabaseStorageProvider
from pushhub.services.uploads import AssetUploadBroker
from pushhub.utils.exceptions import DeliveryError, StorageError

bearer_scheme = HTTPBearer(auto_error=False)

_push_sender_singleton: WebPushSender | None = None
_storage_provider_singleton: StorageProvider | None = None


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for request lifetime."""

    db = SessionLocal()
    try:
        yield db
    except SQLAlchemyError as exc:
        logger.error("Database session error", error=str(exc))
        db.rollback()
        raise
    finally:
        db.close()


def get_current_operator(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Operator:
    """Resolve the operator from the bearer token, rejecting anonymous callers."""

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return resolve_operator(credentials.credentials)
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def require_admin(operator: Operator = Depends(get_current_operator)) -> Operator:
    """Allow only operators holding the admin role."""

    if not operator.is_admin:
        logger.warning("Admin route denied", operator_id=str(operator.id), role=operator.role)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin required")
    return operator


def get_push_sender() -> WebPushSender:
    """Return the shared Web Push sender; its VAPID key is loaded once."""

    global _push_sender_singleton
    if _push_sender_singleton is None:
        if not settings.VAPID_PRIVATE_KEY:
            raise DeliveryError("VAPID keys are not configured")
        try:
            _push_sender_singleton = WebPushSender.from_settings(settings)
        except ValueError as exc:
            raise DeliveryError("VAPID configuration is invalid", {"error": str(exc)}) from exc
    return _push_sender_singleton


def get_storage_provider() -> StorageProvider:
    """Return the object storage client."""

    global _storage_provider_singleton
    if _storage_provider_singleton is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise StorageError("Object storage is not configured")
        _storage_provider_singleton = SupabaseStorageProvider.from_settings(settings)
    return _storage_provider_singleton


def get_dispatcher(
    db: Session = Depends(get_db),
    sender: WebPushSender = Depends(get_push_sender),
) -> BroadcastDispatcher:
    return BroadcastDispatcher(db, sender)


def get_welcome_sender(sender: WebPushSender = Depends(get_push_sender)) -> WelcomeSender:
    return WelcomeSender(sender)


def get_upload_broker(
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage_provider),
) -> AssetUploadBroker:
    return AssetUploadBroker(db, storage)
