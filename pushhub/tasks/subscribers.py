"""Housekeeping for the subscriber registry."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from loguru import logger

from pushhub.celery_app import celery_app
from pushhub.config import settings
from pushhub.db.session import SessionLocal
from pushhub.services.registry import SubscriberRegistry


@celery_app.task(name="pushhub.tasks.subscribers.reap_stale_subscribers")
def reap_stale_subscribers(retention_days: int | None = None) -> dict[str, int | str]:
    """Delete subscribers that went stale and have not recovered within the retention period."""

    if retention_days is None:
        retention_days = settings.STALE_SUBSCRIBER_RETENTION_DAYS
    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
    db = SessionLocal()

    try:
        deleted = SubscriberRegistry(db).reap_stale(older_than=cutoff)
        logger.info("Stale subscribers reaped", deleted_count=deleted, cutoff=cutoff.isoformat())
        return {"deleted": deleted, "cutoff": cutoff.isoformat()}
    except Exception as exc:
        db.rollback()
        logger.error("Failed to reap stale subscribers", error=str(exc))
        raise
    finally:
        db.close()
