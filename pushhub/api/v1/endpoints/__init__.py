"""API endpoint modules for v1."""

from pushhub.api.v1.endpoints import messages, push, uploads

__all__ = ["messages", "push", "uploads"]
