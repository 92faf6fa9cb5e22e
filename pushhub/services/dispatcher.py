"""Broadcast fan-out and single-subscription sends."""
from __future__ import annotations

import threading
import uuid
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Dict, List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pushhub.config import settings
from pushhub.core.security import Operator
from pushhub.core.webpush import (
    DeliveryClassification,
    DeliveryOutcome,
    DeliveryTarget,
    NotificationContent,
    WebPushSender,
)
from pushhub.schemas.message import NotificationPayload
from pushhub.schemas.push import BroadcastRequest, SubscriptionInfo
from pushhub.services.history import MessageHistoryStore
from pushhub.services.registry import SubscriberRegistry


@dataclass
class BroadcastResult:
    success_count: int = 0
    permanent_failure_count: int = 0
    transient_failure_count: int = 0
    unknown_count: int = 0
    history_id: Optional[uuid.UUID] = None

    @property
    def total(self) -> int:
        return (
            self.success_count
            + self.permanent_failure_count
            + self.transient_failure_count
            + self.unknown_count
        )


class DeliveryTally:
    """Outcome counter shared by the fan-out workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Counter = Counter()

    def record(self, classification: DeliveryClassification, count: int = 1) -> None:
        with self._lock:
            self._counts[classification] += count

    def result(self, history_id: Optional[uuid.UUID] = None) -> BroadcastResult:
        with self._lock:
            return BroadcastResult(
                success_count=self._counts[DeliveryClassification.SUCCESS],
                permanent_failure_count=self._counts[DeliveryClassification.PERMANENT_FAILURE],
                transient_failure_count=self._counts[DeliveryClassification.TRANSIENT_FAILURE],
                unknown_count=self._counts[DeliveryClassification.UNKNOWN],
                history_id=history_id,
            )


class BroadcastDispatcher:
    """Deliver one notification to every active subscriber.

    The subscriber list is snapshotted when the broadcast starts. Deliveries
    run on a bounded thread pool; the workers only talk to push services, and
    all registry writes happen here in the calling thread once an outcome is
    known. Workers still running when the batch deadline passes are abandoned
    and counted as ``unknown``; their subscribers are left untouched.
    """

    def __init__(
        self,
        db: Session,
        sender: WebPushSender,
        *,
        registry: SubscriberRegistry | None = None,
        history: MessageHistoryStore | None = None,
        max_workers: int | None = None,
        deadline_seconds: float | None = None,
    ) -> None:
        self.db = db
        self.sender = sender
        self.registry = registry or SubscriberRegistry(db)
        self.history = history or MessageHistoryStore(db)
        self.max_workers = max_workers or settings.PUSH_MAX_WORKERS
        self.deadline_seconds = deadline_seconds or settings.PUSH_BATCH_DEADLINE_SECONDS

    def dispatch(
        self, request: BroadcastRequest, *, operator: Operator | None = None
    ) -> BroadcastResult:
        content = NotificationContent(
            title=request.title,
            body=request.message,
            image_url=request.image_url,
            url=request.url,
        )
        return self._broadcast(
            content, persist=request.persist and not request.skip_persist, operator=operator
        )

    def _broadcast(
        self, content: NotificationContent, *, persist: bool, operator: Operator | None
    ) -> BroadcastResult:
        # A failing snapshot query aborts the broadcast before anything is sent
        targets = [
            DeliveryTarget(
                endpoint=subscriber.endpoint,
                p256dh=subscriber.p256dh,
                auth=subscriber.auth,
                subscriber_id=subscriber.id,
            )
            for subscriber in self.registry.list_active()
        ]
        logger.info("Broadcast started", subscribers=len(targets), persist=persist)

        tally = DeliveryTally()
        if targets:
            self._fan_out(targets, content, tally)

        history_id = None
        if persist:
            entry = self.history.create(
                title=content.title,
                message=content.body,
                payload=NotificationPayload(image_url=content.image_url, url=content.url),
                created_by=operator.id if operator else None,
            )
            history_id = entry.id

        result = tally.result(history_id=history_id)
        logger.info(
            "Broadcast completed",
            total=result.total,
            success=result.success_count,
            permanent=result.permanent_failure_count,
            transient=result.transient_failure_count,
            unknown=result.unknown_count,
            history_id=str(history_id) if history_id else None,
        )
        return result

    def repush(
        self,
        message_id: uuid.UUID,
        *,
        persist_again: bool = False,
        operator: Operator | None = None,
    ) -> BroadcastResult:
        """Send a history entry again as a fresh broadcast.

        By default the resend does not add another history row. The stored
        text is already plain, so it is sent as it is.
        """

        entry = self.history.get(message_id)
        payload = NotificationPayload.model_validate(entry.payload or {})
        content = NotificationContent(
            title=entry.title,
            body=entry.message or "",
            image_url=payload.image_url,
            url=payload.url,
        )
        logger.info("Repushing message", message_id=str(message_id), persist=persist_again)
        return self._broadcast(content, persist=persist_again, operator=operator)

    def _fan_out(
        self,
        targets: List[DeliveryTarget],
        content: NotificationContent,
        tally: DeliveryTally,
    ) -> None:
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(targets)),
            thread_name_prefix="push-delivery",
        )
        futures: Dict[Future, DeliveryTarget] = {
            executor.submit(self.sender.deliver, target, content): target for target in targets
        }
        settled: set = set()
        delivered: List[uuid.UUID] = []
        try:
            for future in as_completed(futures, timeout=self.deadline_seconds):
                settled.add(future)
                outcome = self._outcome_of(future, futures[future])
                tally.record(outcome.classification)
                if outcome.classification is DeliveryClassification.SUCCESS:
                    if outcome.subscriber_id is not None:
                        delivered.append(outcome.subscriber_id)
                else:
                    self._record_failure(outcome)
        except FuturesTimeoutError:
            abandoned = len(futures) - len(settled)
            tally.record(DeliveryClassification.UNKNOWN, abandoned)
            logger.warning(
                "Broadcast deadline reached",
                deadline_seconds=self.deadline_seconds,
                abandoned=abandoned,
            )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if delivered:
            try:
                self.registry.mark_delivered(delivered)
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.error("Failed to reset failure counters", error=str(exc), subscribers=len(delivered))

    def _outcome_of(self, future: Future, target: DeliveryTarget) -> DeliveryOutcome:
        try:
            return future.result()
        except Exception as exc:
            logger.exception("Delivery worker crashed", endpoint=target.short_endpoint)
            return DeliveryOutcome(
                subscriber_id=target.subscriber_id,
                classification=DeliveryClassification.TRANSIENT_FAILURE,
                error=f"{type(exc).__name__}: {exc}",
            )

    def _record_failure(self, outcome: DeliveryOutcome) -> None:
        if outcome.subscriber_id is None:
            return
        permanent = outcome.classification is DeliveryClassification.PERMANENT_FAILURE
        try:
            self.registry.mark_failed(outcome.subscriber_id, permanent=permanent)
        except SQLAlchemyError as exc:
            # The delivery result stands; the next broadcast retries the bookkeeping
            self.db.rollback()
            logger.error(
                "Failed to record delivery failure",
                subscriber_id=str(outcome.subscriber_id),
                permanent=permanent,
                error=str(exc),
            )


class WelcomeSender:
    """Send one notification to one subscription, bypassing the registry."""

    def __init__(
        self,
        sender: WebPushSender,
        *,
        default_title: str | None = None,
        default_message: str | None = None,
    ) -> None:
        self.sender = sender
        self.default_title = default_title or settings.WELCOME_TITLE
        self.default_message = default_message or settings.WELCOME_MESSAGE

    def send(
        self,
        subscription: SubscriptionInfo,
        *,
        title: str | None = None,
        message: str | None = None,
    ) -> DeliveryOutcome:
        target = DeliveryTarget(
            endpoint=subscription.endpoint,
            p256dh=subscription.keys.p256dh,
            auth=subscription.keys.auth,
        )
        content = NotificationContent(
            title=title or self.default_title,
            body=message or self.default_message,
        )
        outcome = self.sender.deliver(target, content)
        logger.info(
            "Welcome notification sent",
            endpoint=target.short_endpoint,
            outcome=outcome.classification.value,
        )
        return outcome
