"""Celery tasks package."""

from pushhub.tasks import subscribers

__all__ = ["subscribers"]
