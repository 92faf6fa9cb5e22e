"""Object storage access for notification images."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple
from urllib.parse import parse_qs, quote, unquote, urlsplit

import httpx
from loguru import logger
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from pushhub.utils.exceptions import StorageError

OBJECT_URL_PATTERN = re.compile(r"/object/(?:public|sign)/([^/]+)/(.+?)(?:\?.*)?$")


@dataclass(frozen=True)
class UploadGrant:
    """Short-lived permission for the browser to write one object."""

    bucket: str
    path: str
    url: str
    signed_url: str
    token: Optional[str] = None


@dataclass(frozen=True)
class StoredObject:
    name: str
    path: str
    created_at: Optional[datetime] = None
    size: Optional[int] = None


class StorageProvider(Protocol):
    """Capabilities the upload broker needs from an object store."""

    def issue_upload_grant(self, bucket: str, path: str) -> UploadGrant:  # pragma: no cover - interface definition
        ...

    def public_url(self, bucket: str, path: str) -> str:  # pragma: no cover - interface definition
        ...

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:  # pragma: no cover - interface definition
        ...

    def list_objects(self, bucket: str, prefix: str, limit: int = 500) -> List[StoredObject]:  # pragma: no cover - interface definition
        ...

    def delete_object(self, bucket: str, path: str) -> bool:  # pragma: no cover - interface definition
        ...

    def resolve_object(self, url: str) -> Optional[Tuple[str, str]]:  # pragma: no cover - interface definition
        ...


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class SupabaseStorageProvider:
    """Talk to the Supabase Storage REST API with the service role key."""

    base_url: str
    service_key: str
    request_timeout: float = 15.0
    transport: Optional[httpx.BaseTransport] = field(default=None, repr=False)

    name: str = "supabase"

    @classmethod
    def from_settings(cls, settings) -> "SupabaseStorageProvider":
        return cls(
            base_url=settings.SUPABASE_URL,
            service_key=settings.SUPABASE_SERVICE_ROLE_KEY,
            request_timeout=settings.STORAGE_REQUEST_TIMEOUT_SECONDS,
        )

    @property
    def storage_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/storage/v1"

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        before_sleep=before_sleep_log(logger, "WARNING"),
        reraise=True,
    )
    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._build_headers(), **kwargs.pop("headers", {})}
        with httpx.Client(
            base_url=self.storage_url,
            timeout=self.request_timeout,
            transport=self.transport,
        ) as client:
            return client.request(method, url, headers=headers, **kwargs)

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self._send(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise StorageError(
                "Object storage is unreachable", {"url": url, "error": str(exc)}
            ) from exc

        if response.status_code >= 400:
            raise StorageError(
                f"Object storage returned {response.status_code}",
                {"url": url, "status": response.status_code, "body": response.text[:500]},
            )
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _object_path(bucket: str, path: str) -> str:
        return f"{quote(bucket, safe='')}/{quote(path.lstrip('/'), safe='/')}"

    def issue_upload_grant(self, bucket: str, path: str) -> UploadGrant:
        data = self._request(
            "POST",
            f"/object/upload/sign/{self._object_path(bucket, path)}",
            headers={"x-upsert": "true"},
        ) or {}
        relative = data.get("url")
        if not relative:
            raise StorageError("Object storage did not return an upload URL", {"bucket": bucket, "path": path})

        token = parse_qs(urlsplit(relative).query).get("token", [None])[0]
        signed_url = relative if relative.startswith("http") else f"{self.storage_url}{relative}"
        logger.info("Upload grant issued", bucket=bucket, path=path)
        return UploadGrant(bucket=bucket, path=path, url=relative, signed_url=signed_url, token=token)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.storage_url}/object/public/{self._object_path(bucket, path)}"

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        data = self._request(
            "POST",
            f"/object/sign/{self._object_path(bucket, path)}",
            json={"expiresIn": expires_in},
        ) or {}
        relative = data.get("signedURL") or data.get("signedUrl")
        if not relative:
            raise StorageError("Object storage did not return a signed URL", {"bucket": bucket, "path": path})
        return relative if relative.startswith("http") else f"{self.storage_url}{relative}"

    def list_objects(self, bucket: str, prefix: str, limit: int = 500) -> List[StoredObject]:
        data = self._request(
            "POST",
            f"/object/list/{quote(bucket, safe='')}",
            json={
                "prefix": prefix,
                "limit": limit,
                "offset": 0,
                "sortBy": {"column": "created_at", "order": "desc"},
            },
        ) or []

        objects = []
        for item in data:
            # Folder placeholders come back without an id
            if not item.get("id"):
                continue
            name = item["name"]
            metadata = item.get("metadata") or {}
            objects.append(
                StoredObject(
                    name=name,
                    path=f"{prefix.rstrip('/')}/{name}" if prefix else name,
                    created_at=_parse_timestamp(item.get("created_at")),
                    size=metadata.get("size"),
                )
            )
        return objects

    def delete_object(self, bucket: str, path: str) -> bool:
        """Remove one object; returns ``False`` when nothing was there."""

        data = self._request(
            "DELETE",
            f"/object/{quote(bucket, safe='')}",
            json={"prefixes": [path]},
        )
        removed = bool(data)
        logger.info("Storage object deleted", bucket=bucket, path=path, removed=removed)
        return removed

    def resolve_object(self, url: str) -> Optional[Tuple[str, str]]:
        """Map a public or signed object URL back to ``(bucket, path)``."""

        match = OBJECT_URL_PATTERN.search(urlsplit(url).path) if url else None
        if not match:
            return None
        return unquote(match.group(1)), unquote(match.group(2))
