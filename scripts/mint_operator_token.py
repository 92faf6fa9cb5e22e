"""Mint an operator access token for local development.

In production tokens come from the identity service; this signs one with the
shared ``SECRET_KEY`` so the admin routes can be exercised locally.
"""
from __future__ import annotations

import argparse
import uuid

from pushhub.config import settings
from pushhub.core.security import create_access_token


def main() -> None:
    parser = argparse.ArgumentParser(description="Mint a signed operator token")
    parser.add_argument("--operator-id", default=None, help="Operator UUID (default: random)")
    parser.add_argument("--role", default=settings.ADMIN_ROLE, help="Role claim value")
    parser.add_argument("--minutes", type=int, default=None, help="Lifetime in minutes")
    args = parser.parse_args()

    operator_id = uuid.UUID(args.operator_id) if args.operator_id else uuid.uuid4()
    token = create_access_token(operator_id, role=args.role, expires_minutes=args.minutes)
    print(token)


if __name__ == "__main__":
    main()
