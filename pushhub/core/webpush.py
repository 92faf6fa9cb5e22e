"""Web Push delivery to a single subscription.

Each call encrypts the notification for one subscriber (aes128gcm, keyed by
that subscriber's ``p256dh``/``auth``), signs the request with the
service-wide VAPID key and classifies the push service's answer. The VAPID
key is loaded once and only read afterwards, so one sender is shared by all
workers of a broadcast.
"""
from __future__ import annotations

import base64
import binascii
import json
import re
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import requests
from loguru import logger
from py_vapid import Vapid
from pywebpush import WebPushException, webpush
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt

PERMANENT_STATUS_CODES = frozenset({404, 410})

# Contact URIs py_vapid accepts as the "sub" claim
VAPID_SUBJECT_PATTERN = re.compile(
    r"^(mailto:[^@\s]+@(localhost|[%\w-]+(\.[%\w-]+)+)|https://(localhost|[\w-]+(\.[\w-]+)+))$",
    re.IGNORECASE,
)

# Uncompressed P-256 point and the 16 byte auth secret (RFC 8291)
P256DH_LENGTH = 65
AUTH_SECRET_LENGTH = 16


class DeliveryClassification(str, Enum):
    SUCCESS = "success"
    PERMANENT_FAILURE = "permanent_failure"
    TRANSIENT_FAILURE = "transient_failure"
    UNKNOWN = "unknown"


class MalformedSubscriptionError(ValueError):
    """Raised when a subscription's key material cannot be used for encryption."""


class PermanentDeliveryError(Exception):
    """The push service no longer knows this subscription."""

    def __init__(self, message: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.http_status = http_status


class TransientDeliveryError(Exception):
    """A retryable failure: timeout, connection error or non-permanent error status."""

    def __init__(self, message: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.http_status = http_status


@dataclass(frozen=True)
class DeliveryTarget:
    """Immutable copy of the subscription fields a worker needs."""

    endpoint: str
    p256dh: str
    auth: str
    subscriber_id: uuid.UUID | None = None

    def as_subscription_info(self) -> Dict[str, Any]:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}

    @property
    def short_endpoint(self) -> str:
        return self.endpoint[:80]


@dataclass(frozen=True)
class DeliveryOutcome:
    subscriber_id: uuid.UUID | None
    classification: DeliveryClassification
    http_status: int | None = None
    error: str | None = None
    attempts: int = 0


@dataclass(frozen=True)
class NotificationContent:
    """The logical notification; identical for every subscriber of a broadcast."""

    title: str
    body: str
    image_url: Optional[str] = None
    url: Optional[str] = None


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def validate_subscription_keys(p256dh: str, auth: str) -> None:
    """Raise ``MalformedSubscriptionError`` unless both keys decode to usable material."""

    try:
        public_key = _b64url_decode(p256dh)
        secret = _b64url_decode(auth)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise MalformedSubscriptionError(f"Key material is not base64url: {exc}") from exc
    if len(public_key) != P256DH_LENGTH or public_key[0] != 0x04:
        raise MalformedSubscriptionError("p256dh is not an uncompressed P-256 public key")
    if len(secret) != AUTH_SECRET_LENGTH:
        raise MalformedSubscriptionError("auth secret must be 16 bytes")


class WebPushSender:
    """Encrypt, sign, send and classify one notification for one subscriber."""

    def __init__(
        self,
        *,
        vapid_private_key: str | Vapid,
        vapid_subject: str,
        timeout: float = 10.0,
        ttl: int = 86400,
        transient_retries: int = 1,
        default_icon: str = "/logo.png",
        default_url: str = "/",
        send_func: Callable[..., Any] = webpush,
    ) -> None:
        if not vapid_private_key:
            raise ValueError("A VAPID private key is required to sign push requests")
        if not vapid_subject or not VAPID_SUBJECT_PATTERN.match(vapid_subject):
            raise ValueError(
                f"VAPID subject must be a mailto: or https: contact URI, got {vapid_subject!r}"
            )
        if isinstance(vapid_private_key, Vapid):
            self._vapid = vapid_private_key
        else:
            self._vapid = Vapid.from_string(private_key=vapid_private_key)
        self._vapid_subject = vapid_subject
        self.timeout = timeout
        self.ttl = ttl
        self.transient_retries = transient_retries
        self.default_icon = default_icon
        self.default_url = default_url
        self._send_func = send_func

    @classmethod
    def from_settings(cls, settings) -> "WebPushSender":
        return cls(
            vapid_private_key=settings.VAPID_PRIVATE_KEY,
            vapid_subject=settings.VAPID_SUBJECT,
            timeout=settings.PUSH_REQUEST_TIMEOUT_SECONDS,
            ttl=settings.PUSH_TTL_SECONDS,
            transient_retries=settings.PUSH_TRANSIENT_RETRIES,
            default_icon=settings.PUSH_DEFAULT_ICON,
            default_url=settings.PUSH_DEFAULT_URL,
        )

    def render(self, content: NotificationContent) -> str:
        """Serialise the body the service worker turns into a system notification."""

        payload: Dict[str, Any] = {
            "title": content.title,
            "body": content.body,
            "icon": content.image_url or self.default_icon,
            "url": content.url or self.default_url,
        }
        if content.image_url:
            payload["image"] = content.image_url
        return json.dumps(payload)

    def deliver(self, target: DeliveryTarget, content: NotificationContent) -> DeliveryOutcome:
        """Deliver ``content`` to ``target``; never raises for per-subscriber failures."""

        try:
            validate_subscription_keys(target.p256dh, target.auth)
        except MalformedSubscriptionError as exc:
            logger.warning(
                "Subscriber has unusable keys",
                subscriber_id=str(target.subscriber_id),
                endpoint=target.short_endpoint,
                error=str(exc),
            )
            return DeliveryOutcome(
                subscriber_id=target.subscriber_id,
                classification=DeliveryClassification.PERMANENT_FAILURE,
                error=str(exc),
            )

        data = self.render(content)
        retrying = Retrying(
            stop=stop_after_attempt(self.transient_retries + 1),
            retry=retry_if_exception_type(TransientDeliveryError),
            before_sleep=before_sleep_log(logger, "WARNING"),
            reraise=True,
        )
        attempts = 0

        def attempt() -> int | None:
            nonlocal attempts
            attempts += 1
            return self._send_once(target, data)

        try:
            status = retrying(attempt)
        except PermanentDeliveryError as exc:
            logger.info(
                "Push subscription gone",
                subscriber_id=str(target.subscriber_id),
                endpoint=target.short_endpoint,
                status=exc.http_status,
            )
            return DeliveryOutcome(
                subscriber_id=target.subscriber_id,
                classification=DeliveryClassification.PERMANENT_FAILURE,
                http_status=exc.http_status,
                error=str(exc),
                attempts=attempts,
            )
        except TransientDeliveryError as exc:
            logger.warning(
                "Push delivery failed",
                subscriber_id=str(target.subscriber_id),
                endpoint=target.short_endpoint,
                status=exc.http_status,
                attempts=attempts,
                error=str(exc),
            )
            return DeliveryOutcome(
                subscriber_id=target.subscriber_id,
                classification=DeliveryClassification.TRANSIENT_FAILURE,
                http_status=exc.http_status,
                error=str(exc),
                attempts=attempts,
            )

        return DeliveryOutcome(
            subscriber_id=target.subscriber_id,
            classification=DeliveryClassification.SUCCESS,
            http_status=status,
            attempts=attempts,
        )

    def _send_once(self, target: DeliveryTarget, data: str) -> int | None:
        try:
            response = self._send_func(
                subscription_info=target.as_subscription_info(),
                data=data,
                vapid_private_key=self._vapid,
                # pywebpush fills in aud/exp on the dict it is given
                vapid_claims={"sub": self._vapid_subject},
                timeout=self.timeout,
                ttl=self.ttl,
            )
        except WebPushException as exc:
            status = getattr(exc.response, "status_code", None)
            if status is None:
                raise PermanentDeliveryError(f"Subscription rejected: {exc.message}") from exc
            if 200 <= status < 300:
                return status
            if status in PERMANENT_STATUS_CODES:
                raise PermanentDeliveryError(f"Push service returned {status}", http_status=status) from exc
            raise TransientDeliveryError(f"Push service returned {status}", http_status=status) from exc
        except requests.exceptions.RequestException as exc:
            raise TransientDeliveryError(f"{type(exc).__name__}: {exc}") from exc
        except (ValueError, TypeError) as exc:
            # Key material the encryption layer refuses despite decoding cleanly
            raise PermanentDeliveryError(f"Payload encryption failed: {exc}") from exc
        return getattr(response, "status_code", None)
