"""Custom exception classes and error handling utilities."""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from loguru import logger


class PushServiceException(Exception):
    """Base exception for the push broadcast service."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(PushServiceException):
    """A required field is missing or malformed."""
    pass


class AuthorizationError(PushServiceException):
    """The caller is not an authenticated admin operator."""
    pass


class StorageError(PushServiceException):
    """The object store rejected or failed an operation."""
    pass


class DeliveryError(PushServiceException):
    """Push delivery could not be set up (for example missing VAPID keys)."""
    pass


def handle_validation_error(error: ValidationError) -> HTTPException:
    """Handle validation errors."""
    logger.warning(f"Validation error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=error.message,
    )


def handle_authorization_error(error: AuthorizationError) -> HTTPException:
    """Reject callers that are not admin operators."""
    logger.warning(f"Authorization error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=error.message,
    )


def handle_storage_error(error: StorageError) -> HTTPException:
    """Surface object store failures to the operator."""
    logger.error(f"Storage error: {error.message}", **error.details)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=error.message,
    )


def handle_delivery_error(error: DeliveryError) -> HTTPException:
    """Handle push delivery configuration errors."""
    logger.error(f"Delivery error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=error.message,
    )


def handle_not_found(error: ValueError) -> HTTPException:
    """Translate a lookup miss into a 404."""
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
