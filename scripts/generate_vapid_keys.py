"""Generate a VAPID key pair for the push service.

Usage:

  python scripts/generate_vapid_keys.py >> .env

Prints ``VAPID_PUBLIC_KEY`` (the application server key browsers subscribe
with) and ``VAPID_PRIVATE_KEY`` in the raw base64url form the service loads.
"""
from __future__ import annotations

import argparse

from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from py_vapid import Vapid
from py_vapid.utils import b64urlencode


def generate_key_pair() -> tuple[str, str]:
    vapid = Vapid()
    vapid.generate_keys()
    public_key = vapid.public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
    private_value = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
    return b64urlencode(public_key), b64urlencode(private_value)


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a VAPID key pair")
    parser.add_argument(
        "--subject",
        default=None,
        help="Contact URI to print as VAPID_SUBJECT, e.g. mailto:ops@example.com",
    )
    args = parser.parse_args()

    public_key, private_key = generate_key_pair()
    print(f"VAPID_PUBLIC_KEY={public_key}")
    print(f"VAPID_PRIVATE_KEY={private_key}")
    if args.subject:
        print(f"VAPID_SUBJECT={args.subject}")


if __name__ == "__main__":
    main()
