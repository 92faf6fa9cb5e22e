"""CLI script to delete stale push subscribers now instead of waiting for beat."""
from __future__ import annotations

import argparse

from pushhub.tasks.subscribers import reap_stale_subscribers


def main() -> None:
    parser = argparse.ArgumentParser(description="Delete stale push subscribers")
    parser.add_argument(
        "--retention-days",
        type=int,
        default=None,
        help="Keep stale subscribers whose last failure is newer than this (default: from settings)",
    )
    parser.add_argument(
        "--async",
        action="store_true",
        dest="use_async",
        help="Queue task asynchronously instead of running immediately",
    )
    args = parser.parse_args()

    if args.use_async:
        task = reap_stale_subscribers.apply_async(args=(args.retention_days,))
        print(f"Task queued: {task.id}")
    else:
        result = reap_stale_subscribers.run(args.retention_days)
        print(f"Result: {result}")


if __name__ == "__main__":
    main()
