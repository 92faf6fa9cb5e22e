"""Utility helpers package."""

from pushhub.utils.cache import CacheBackend, cache_backend
from pushhub.utils.text import html_to_plain_text

__all__ = ["CacheBackend", "cache_backend", "html_to_plain_text"]
