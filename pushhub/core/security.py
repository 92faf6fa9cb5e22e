"""Operator identity: verifying and minting the bearer tokens admin routes accept."""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt
from pydantic import ValidationError

from pushhub.config import settings
from pushhub.schemas.auth import TokenPayload


ALGORITHM = "HS256"


class InvalidTokenError(Exception):
    """Raised when a JWT cannot be decoded or is invalid."""


@dataclass(frozen=True)
class Operator:
    """Identity resolved from a bearer token, passed explicitly into handlers."""

    id: uuid.UUID
    role: str | None

    @property
    def is_admin(self) -> bool:
        return self.role == settings.ADMIN_ROLE


def create_access_token(
    subject: str | Any, *, role: str | None = None, expires_minutes: int | None = None
) -> str:
    """Create a signed access token, as the identity service would issue it."""

    minutes = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload: Dict[str, Any] = {"exp": expire, "sub": str(subject), "type": "access"}
    if role is not None:
        payload[settings.OPERATOR_ROLE_CLAIM] = role
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode a JWT and return its payload, raising ``InvalidTokenError`` if invalid."""

    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError as exc:
        raise InvalidTokenError(str(exc)) from exc


def resolve_operator(token: str) -> Operator:
    """Return the operator a token identifies, raising ``InvalidTokenError`` otherwise."""

    payload = decode_token(token)
    if payload.get("type", "access") != "access":
        raise InvalidTokenError("Token must be an access token")
    try:
        token_data = TokenPayload.model_validate(payload)
    except ValidationError as exc:
        raise InvalidTokenError("Token claims are malformed") from exc
    role = payload.get(settings.OPERATOR_ROLE_CLAIM)
    return Operator(id=token_data.sub, role=str(role) if role is not None else None)
