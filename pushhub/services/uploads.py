"""Signed uploads, gallery listing and deletion of notification images."""
from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import List, Optional, Sequence

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from pushhub.config import settings
from pushhub.core.security import Operator
from pushhub.db.models.uploaded_asset import UploadedAsset
from pushhub.schemas.upload import UploadedAssetRead
from pushhub.services.storage import StorageProvider, UploadGrant
from pushhub.utils.cache import CacheBackend, cache_backend
from pushhub.utils.exceptions import AuthorizationError, StorageError, ValidationError

GALLERY_CACHE_NAMESPACE = "push:gallery"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_MAX_FILENAME_LENGTH = 120


def sanitize_filename(filename: str) -> str:
    """Reduce a client supplied filename to a safe final path segment."""

    name = PurePosixPath(filename.replace("\\", "/")).name
    name = _UNSAFE_FILENAME_CHARS.sub("_", name).lstrip("._")
    if len(name) > _MAX_FILENAME_LENGTH:
        stem, dot, suffix = name.rpartition(".")
        if dot and len(suffix) <= 10:
            name = f"{stem[: _MAX_FILENAME_LENGTH - len(suffix) - 1]}.{suffix}"
        else:
            name = name[:_MAX_FILENAME_LENGTH]
    return name or "upload"


@dataclass(frozen=True)
class IssuedUpload:
    grant: UploadGrant
    public_url: str


class AssetUploadBroker:
    """Hand out upload grants and manage the images they produced.

    File bytes never pass through this service: the browser writes straight to
    object storage with the grant. Metadata about each grant is kept so the
    gallery can show who uploaded what.
    """

    def __init__(
        self,
        db: Session,
        storage: StorageProvider,
        *,
        bucket: str | None = None,
        prefix: str | None = None,
        managed_buckets: Sequence[str] | None = None,
        cache: CacheBackend | None = None,
    ) -> None:
        self.db = db
        self.storage = storage
        self.bucket = bucket or settings.PUSH_IMAGE_BUCKET
        self.prefix = (prefix if prefix is not None else settings.PUSH_IMAGE_PREFIX).strip("/")
        self.managed_buckets = set(managed_buckets or settings.MANAGED_BUCKETS)
        self.cache = cache or cache_backend

    def _gallery_key(self, prefix: str) -> str:
        return f"{self.bucket}:{prefix}"

    def _build_path(self, filename: str) -> str:
        name = f"{int(time.time() * 1000)}_{secrets.token_hex(4)}_{sanitize_filename(filename)}"
        return f"{self.prefix}/{name}" if self.prefix else name

    def sign_upload(self, filename: str, operator: Operator | None) -> IssuedUpload:
        """Issue a grant to upload one image under a fresh, unguessable path."""

        if operator is None or not operator.is_admin:
            raise AuthorizationError("admin required")
        if not filename or not filename.strip():
            raise ValidationError("missing filename")

        path = self._build_path(filename)
        grant = self.storage.issue_upload_grant(self.bucket, path)
        public_url = self.storage.public_url(self.bucket, path)

        self.db.add(
            UploadedAsset(
                bucket=self.bucket,
                path=path,
                public_url=public_url,
                uploaded_by=operator.id,
            )
        )
        self.db.commit()
        self.cache.invalidate(GALLERY_CACHE_NAMESPACE, self._gallery_key(self.prefix))
        logger.info("Upload signed", bucket=self.bucket, path=path, operator_id=str(operator.id))
        return IssuedUpload(grant=grant, public_url=public_url)

    def list_gallery(self, prefix: str | None = None) -> List[UploadedAssetRead]:
        """Return the images under ``prefix``, newest first, with viewable URLs."""

        prefix = (prefix if prefix is not None else self.prefix).strip("/")
        cache_key = self._gallery_key(prefix)
        cached = self.cache.get(GALLERY_CACHE_NAMESPACE, cache_key)
        if cached is not None:
            return [UploadedAssetRead.model_validate(item) for item in cached]

        objects = self.storage.list_objects(self.bucket, prefix)
        recorded = {}
        if objects:
            rows = self.db.scalars(
                select(UploadedAsset).where(
                    UploadedAsset.bucket == self.bucket,
                    UploadedAsset.path.in_([obj.path for obj in objects]),
                )
            )
            recorded = {row.path: row for row in rows}

        items: List[UploadedAssetRead] = []
        for obj in objects:
            public_url = self.storage.public_url(self.bucket, obj.path)
            try:
                url = self.storage.create_signed_url(self.bucket, obj.path, settings.SIGNED_URL_TTL_SECONDS)
            except StorageError as exc:
                logger.warning("Falling back to public URL", path=obj.path, error=exc.message)
                url = public_url
            row = recorded.get(obj.path)
            items.append(
                UploadedAssetRead(
                    name=obj.name,
                    bucket=self.bucket,
                    path=obj.path,
                    url=url,
                    public_url=public_url,
                    uploaded_by=row.uploaded_by if row else None,
                    created_at=obj.created_at or (row.created_at if row else None),
                )
            )

        oldest = datetime.min.replace(tzinfo=timezone.utc)
        items.sort(key=lambda item: _as_aware(item.created_at) or oldest, reverse=True)

        # Cached entries must expire before the signed URLs inside them
        self.cache.set(
            GALLERY_CACHE_NAMESPACE,
            cache_key,
            [item.model_dump(mode="json") for item in items],
            ttl_seconds=min(settings.GALLERY_CACHE_TTL_SECONDS, settings.SIGNED_URL_TTL_SECONDS),
        )
        return items

    def delete(
        self,
        *,
        path: str | None = None,
        bucket: str | None = None,
        public_url: str | None = None,
    ) -> bool:
        """Delete an object given by path or URL; deleting a missing object succeeds."""

        if not path:
            if not public_url:
                raise ValidationError("missing path")
            resolved = self.storage.resolve_object(public_url)
            if resolved is None:
                raise ValidationError("publicUrl does not reference a storage object")
            resolved_bucket, path = resolved
            bucket = bucket or resolved_bucket
        bucket = bucket or self.bucket
        path = path.lstrip("/")

        if bucket not in self.managed_buckets:
            raise ValidationError("bucket not allowed", {"bucket": bucket})

        removed = self.storage.delete_object(bucket, path)
        self.db.execute(
            delete(UploadedAsset).where(UploadedAsset.bucket == bucket, UploadedAsset.path == path)
        )
        self.db.commit()
        if bucket == self.bucket:
            parent = path.rpartition("/")[0]
            self.cache.invalidate(GALLERY_CACHE_NAMESPACE, self._gallery_key(parent))
        logger.info("Asset deleted", bucket=bucket, path=path, existed=removed)
        return removed


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
