"""Claims read from operator access tokens."""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class TokenPayload(BaseModel):
    """Payload data extracted from access tokens.

    The role claim name is configurable, so unknown claims are kept.
    """

    sub: uuid.UUID
    exp: datetime
    type: str = "access"

    model_config = ConfigDict(extra="allow")
