"""Short-lived response caching with optional Redis backing.

Used for the image gallery, whose listing needs one storage round trip plus
one signed URL per object.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any

import redis
from loguru import logger

from pushhub.config import settings


@dataclass
class _CacheEntry:
    expires_at: float | None
    payload: str


class CacheBackend:
    """Namespaced JSON cache writing through to Redis when reachable."""

    def __init__(self, redis_url: str | None = None) -> None:
        self._lock = threading.Lock()
        self._local: dict[str, _CacheEntry] = {}
        self._redis: redis.Redis | None = None
        if redis_url:
            self._redis = redis.Redis.from_url(redis_url, decode_responses=True, socket_timeout=1.5)

    @staticmethod
    def _compose(namespace: str, key: str) -> str:
        return f"{namespace}:{key}"

    def _disable_redis(self, exc: Exception) -> None:
        logger.warning("Redis cache unavailable, using process memory", error=str(exc))
        self._redis = None

    def get(self, namespace: str, key: str) -> Any | None:
        namespaced = self._compose(namespace, key)
        if self._redis is not None:
            try:
                value = self._redis.get(namespaced)
            except redis.RedisError as exc:
                self._disable_redis(exc)
            else:
                if value is not None:
                    return json.loads(value)
        with self._lock:
            entry = self._local.get(namespaced)
            if entry is None:
                return None
            if entry.expires_at is not None and entry.expires_at < time.time():
                self._local.pop(namespaced, None)
                return None
            return json.loads(entry.payload)

    def set(self, namespace: str, key: str, value: Any, ttl_seconds: int) -> None:
        namespaced = self._compose(namespace, key)
        payload = json.dumps(value, default=str)
        if self._redis is not None:
            try:
                self._redis.set(namespaced, payload, ex=ttl_seconds or None)
            except redis.RedisError as exc:
                self._disable_redis(exc)
        with self._lock:
            expires_at = time.time() + ttl_seconds if ttl_seconds else None
            self._local[namespaced] = _CacheEntry(expires_at=expires_at, payload=payload)

    def invalidate(self, namespace: str, key: str) -> None:
        namespaced = self._compose(namespace, key)
        if self._redis is not None:
            try:
                self._redis.delete(namespaced)
            except redis.RedisError as exc:
                self._disable_redis(exc)
        with self._lock:
            self._local.pop(namespaced, None)

    def clear(self) -> None:
        """Reset the in-memory cache for test environments."""

        with self._lock:
            self._local.clear()


cache_backend = CacheBackend(str(settings.REDIS_URL) if settings.CACHE_REDIS_ENABLED else None)


__all__ = ["cache_backend", "CacheBackend"]
