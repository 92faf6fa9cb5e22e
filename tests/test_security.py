"""Tests for operator token handling."""
from __future__ import annotations

import uuid

import pytest
from jose import jwt

from pushhub.config import settings
from pushhub.core.security import ALGORITHM, InvalidTokenError, create_access_token, resolve_operator


def test_resolve_admin_operator():
    operator_id = uuid.uuid4()

    operator = resolve_operator(create_access_token(operator_id, role="admin"))

    assert operator.id == operator_id
    assert operator.is_admin is True


def test_token_without_role_is_not_admin():
    operator = resolve_operator(create_access_token(uuid.uuid4()))

    assert operator.role is None
    assert operator.is_admin is False


def test_expired_token_is_rejected():
    token = create_access_token(uuid.uuid4(), role="admin", expires_minutes=-1)

    with pytest.raises(InvalidTokenError):
        resolve_operator(token)


def test_refresh_tokens_are_rejected():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "exp": 4102444800, "type": "refresh", "role": "admin"},
        settings.SECRET_KEY,
        algorithm=ALGORITHM,
    )

    with pytest.raises(InvalidTokenError):
        resolve_operator(token)


def test_subject_must_be_a_uuid():
    token = jwt.encode(
        {"sub": "operator-7", "exp": 4102444800, "role": "admin"},
        settings.SECRET_KEY,
        algorithm=ALGORITHM,
    )

    with pytest.raises(InvalidTokenError):
        resolve_operator(token)


def test_foreign_signature_is_rejected():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "exp": 4102444800, "role": "admin"},
        "some-other-secret",
        algorithm=ALGORITHM,
    )

    with pytest.raises(InvalidTokenError):
        resolve_operator(token)
