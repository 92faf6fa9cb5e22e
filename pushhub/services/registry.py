"""Subscriber registry backed by the relational store."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pushhub.config import settings
from pushhub.db.models.subscriber import STATUS_ACTIVE, STATUS_STALE, Subscriber
from pushhub.schemas.push import SubscriptionInfo


class SubscriberNotFoundError(ValueError):
    """Raised when a subscriber lookup fails."""


class SubscriberRegistry:
    """Register, list and prune push subscriptions.

    Every call goes to the database; no subscriber state is kept between
    broadcasts, so a snapshot always reflects the registry at dispatch time.
    """

    def __init__(self, db: Session, *, max_transient_failures: int | None = None):
        self.db = db
        self.max_transient_failures = (
            max_transient_failures or settings.SUBSCRIBER_MAX_TRANSIENT_FAILURES
        )

    def register(self, subscription: SubscriptionInfo, user_agent: str | None = None) -> uuid.UUID:
        """Insert or refresh the subscription identified by its endpoint."""

        existing = self._get_by_endpoint(subscription.endpoint)
        if existing is not None:
            return self._refresh(existing, subscription, user_agent)

        subscriber = Subscriber(
            endpoint=subscription.endpoint,
            p256dh=subscription.keys.p256dh,
            auth=subscription.keys.auth,
            user_agent=user_agent,
            status=STATUS_ACTIVE,
            failure_count=0,
        )
        self.db.add(subscriber)
        try:
            self.db.commit()
        except IntegrityError:
            # Another request registered the same endpoint first
            self.db.rollback()
            existing = self._get_by_endpoint(subscription.endpoint)
            if existing is None:
                raise
            return self._refresh(existing, subscription, user_agent)

        logger.info("Subscriber registered", subscriber_id=str(subscriber.id))
        return subscriber.id

    def _refresh(
        self, subscriber: Subscriber, subscription: SubscriptionInfo, user_agent: str | None
    ) -> uuid.UUID:
        subscriber.p256dh = subscription.keys.p256dh
        subscriber.auth = subscription.keys.auth
        if user_agent:
            subscriber.user_agent = user_agent
        subscriber.status = STATUS_ACTIVE
        subscriber.failure_count = 0
        subscriber.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        logger.info("Subscriber refreshed", subscriber_id=str(subscriber.id))
        return subscriber.id

    def _get_by_endpoint(self, endpoint: str) -> Subscriber | None:
        return self.db.scalar(select(Subscriber).where(Subscriber.endpoint == endpoint))

    def unregister(self, endpoint: str) -> bool:
        """Delete the subscription for ``endpoint``; unknown endpoints are a no-op."""

        result = self.db.execute(delete(Subscriber).where(Subscriber.endpoint == endpoint))
        self.db.commit()
        removed = bool(result.rowcount)
        if removed:
            logger.info("Subscriber unregistered", endpoint=endpoint[:80])
        return removed

    def get(self, subscriber_id: uuid.UUID) -> Subscriber:
        subscriber = self.db.get(Subscriber, subscriber_id)
        if not subscriber:
            raise SubscriberNotFoundError("Subscriber not found")
        return subscriber

    def list_active(self) -> list[Subscriber]:
        """Return the delivery snapshot: every subscriber not marked stale."""

        stmt = (
            select(Subscriber)
            .where(Subscriber.status == STATUS_ACTIVE)
            .order_by(Subscriber.created_at, Subscriber.id)
        )
        return list(self.db.scalars(stmt))

    def count_active(self) -> int:
        stmt = select(func.count()).select_from(Subscriber).where(Subscriber.status == STATUS_ACTIVE)
        return int(self.db.scalar(stmt) or 0)

    def list_subscribers(self, limit: int = 50, offset: int = 0) -> list[Subscriber]:
        """Return subscribers of any status, newest first."""

        stmt = (
            select(Subscriber)
            .order_by(Subscriber.created_at.desc(), Subscriber.id)
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def count_subscribers(self) -> int:
        return int(self.db.scalar(select(func.count()).select_from(Subscriber)) or 0)

    def mark_failed(self, subscriber_id: uuid.UUID, *, permanent: bool) -> None:
        """Record a failed delivery.

        A permanent failure deletes the subscriber. A transient one bumps the
        failure counter and marks the subscriber stale once the configured
        number of consecutive failures is reached.
        """

        if permanent:
            result = self.db.execute(delete(Subscriber).where(Subscriber.id == subscriber_id))
            self.db.commit()
            if result.rowcount:
                logger.info("Pruned dead subscriber", subscriber_id=str(subscriber_id))
            return

        subscriber = self.db.get(Subscriber, subscriber_id)
        if subscriber is None:
            return
        subscriber.failure_count = (subscriber.failure_count or 0) + 1
        subscriber.last_failure_at = datetime.now(timezone.utc)
        if subscriber.failure_count >= self.max_transient_failures:
            subscriber.status = STATUS_STALE
            logger.warning(
                "Subscriber marked stale",
                subscriber_id=str(subscriber_id),
                failures=subscriber.failure_count,
            )
        self.db.commit()

    def mark_delivered(self, subscriber_ids: Iterable[uuid.UUID]) -> int:
        """Reset the failure streak of every subscriber that just accepted a push."""

        ids = list(subscriber_ids)
        if not ids:
            return 0
        result = self.db.execute(
            update(Subscriber)
            .where(Subscriber.id.in_(ids))
            .values(failure_count=0, last_success_at=datetime.now(timezone.utc))
        )
        self.db.commit()
        return int(result.rowcount or 0)

    def remove(self, subscriber_id: uuid.UUID) -> bool:
        """Operator-initiated removal."""

        result = self.db.execute(delete(Subscriber).where(Subscriber.id == subscriber_id))
        self.db.commit()
        return bool(result.rowcount)

    def reap_stale(self, older_than: datetime) -> int:
        """Delete stale subscribers whose last failure precedes ``older_than``."""

        result = self.db.execute(
            delete(Subscriber)
            .where(Subscriber.status == STATUS_STALE)
            .where(Subscriber.last_failure_at < older_than)
        )
        self.db.commit()
        return int(result.rowcount or 0)
