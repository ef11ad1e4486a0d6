"""
Scheduled rotation: advance the displayed photo by one position.

Runs as its own process (``python -m paperframe.rotation``) so a slow or
failing tick never holds up request handling.
"""

from __future__ import annotations

import argparse
import logging
import random
import time
from typing import Optional

from paperframe.carousel import CAROUSEL_KEY, CURRENT_KEY, load_carousel, load_current, next_index
from paperframe.config import get_settings
from paperframe.dependencies import get_metadata_store
from paperframe.errors import ConflictError
from paperframe.metadata import MetadataStore

logger = logging.getLogger(__name__)


def rotate_once(metadata: MetadataStore, max_retries: int = 5) -> Optional[int]:
    """
    Persist ``(current + 1) % len(carousel)`` as the new current position.

    Returns the new position, or None when the carousel is empty (a no-op).
    The commit is conditioned on the carousel too, so a concurrent delete or
    reorder makes us recompute against the new length.
    """
    for attempt in range(max_retries):
        carousel, carousel_version = load_carousel(metadata)
        current, current_version = load_current(metadata)
        index = next_index(current, len(carousel))
        if index is None:
            logger.info("Carousel is empty, nothing to rotate")
            return None
        if metadata.commit(
            {CURRENT_KEY: str(index)},
            {CURRENT_KEY: current_version, CAROUSEL_KEY: carousel_version},
        ):
            logger.info("Rotated current photo %d -> %d of %d", current, index, len(carousel))
            return index
        logger.info("Rotation raced another writer (attempt %d/%d)", attempt + 1, max_retries)
    raise ConflictError()


def run_loop(
    interval_seconds: float,
    *,
    jitter_seconds: float = 0.0,
    once: bool = False,
    metadata: Optional[MetadataStore] = None,
) -> None:
    """
    Simple scheduling loop. Intended to be run under systemd/supervisor or cron (with --once).
    """
    settings = get_settings()
    metadata = metadata or get_metadata_store(settings)
    while True:
        try:
            rotate_once(metadata, max_retries=settings.cas_max_retries)
        except Exception as exc:
            logger.exception("Rotation failed: %s", exc)

        if once:
            return

        sleep_for = interval_seconds + random.uniform(0, jitter_seconds)
        logger.info("Sleeping for %.1fs", sleep_for)
        time.sleep(sleep_for)


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Paperframe rotation daemon")
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=settings.rotation_interval_seconds,
        help="Seconds between rotations",
    )
    parser.add_argument(
        "--jitter-seconds",
        type=int,
        default=0,
        help="Max random jitter added to sleep",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Rotate a single time and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    run_loop(args.interval_seconds, jitter_seconds=args.jitter_seconds, once=args.once)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
