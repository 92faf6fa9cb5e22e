"""Persisted history of authored broadcasts."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pushhub.config import settings
from pushhub.db.models.push_message import PushMessage
from pushhub.schemas.message import NotificationPayload, PushMessageUpdate


class PushMessageNotFoundError(ValueError):
    """Raised when a history entry cannot be located."""


class MessageHistoryStore:
    """Create, list, edit and delete history entries.

    Nothing here delivers anything: editing an entry changes what the console
    shows and what a later repush sends, never what was already sent.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        title: str,
        message: str,
        payload: NotificationPayload,
        created_by: uuid.UUID | None = None,
    ) -> PushMessage:
        entry = PushMessage(
            title=title,
            message=message,
            payload=payload.to_document(),
            status="sent",
            persisted=True,
            created_by=created_by,
            sent_at=datetime.now(timezone.utc),
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        logger.info("Push message recorded", message_id=str(entry.id))
        return entry

    def list_messages(self, limit: int | None = None) -> list[PushMessage]:
        """Return history entries, most recent first."""

        stmt = (
            select(PushMessage)
            .order_by(PushMessage.sent_at.desc(), PushMessage.id)
            .limit(limit or settings.HISTORY_LIST_LIMIT)
        )
        return list(self.db.scalars(stmt))

    def count(self) -> int:
        return int(self.db.scalar(select(func.count()).select_from(PushMessage)) or 0)

    def get(self, message_id: uuid.UUID) -> PushMessage:
        """Load an entry, e.g. to prefill the compose form."""

        entry = self.db.get(PushMessage, message_id)
        if not entry:
            raise PushMessageNotFoundError("Push message not found")
        return entry

    def update(self, message_id: uuid.UUID, changes: PushMessageUpdate) -> PushMessage:
        """Apply edits to the display fields of an entry."""

        entry = self.get(message_id)
        if changes.title is not None:
            entry.title = changes.title
        if changes.message is not None:
            entry.message = changes.message
        if changes.payload is not None:
            entry.payload = changes.payload.to_document()
        entry.updated_at = datetime.now(timezone.utc)

        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        logger.info("Push message edited", message_id=str(message_id))
        return entry

    def delete(self, message_id: uuid.UUID) -> None:
        entry = self.get(message_id)
        self.db.delete(entry)
        self.db.commit()
        logger.info("Push message deleted", message_id=str(message_id))
