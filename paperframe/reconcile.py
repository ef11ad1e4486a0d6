"""
Cleanup for blobs left behind by uploads whose metadata commit failed.
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from paperframe.carousel import load_carousel
from paperframe.dependencies import get_metadata_store, get_object_store, get_orphan_queue
from paperframe.config import get_settings
from paperframe.errors import PaperframeError, StorageError
from paperframe.metadata import MetadataStore
from paperframe.queue import OrphanQueue
from paperframe.storage import ObjectStore

logger = logging.getLogger(__name__)


def reconcile_orphans(
    metadata: MetadataStore,
    objects: ObjectStore,
    queue: OrphanQueue,
    limit: Optional[int] = None,
) -> int:
    """
    Drain queued orphan keys and delete those the carousel does not reference.

    A key can still be referenced when the failed commit actually landed, so
    referenced keys are dropped from the queue without touching the blob.
    Returns the number of blobs deleted.
    """
    carousel, _ = load_carousel(metadata)
    referenced = {record.filename for record in carousel}
    deleted = 0
    seen = 0
    while limit is None or seen < limit:
        key = queue.dequeue()
        if key is None:
            break
        seen += 1
        if key in referenced:
            logger.info("%s is referenced by the carousel, keeping it", key)
            continue
        try:
            objects.delete(key)
        except StorageError:
            logger.exception("Failed to delete orphan %s, requeueing", key)
            queue.enqueue(key)
            break
        deleted += 1
        logger.info("Deleted orphaned object %s", key)
    return deleted


def main() -> int:
    parser = argparse.ArgumentParser(description="Delete orphaned photo objects")
    parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=None,
        help="Process at most this many queued keys",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    settings = get_settings()
    try:
        deleted = reconcile_orphans(
            get_metadata_store(settings),
            get_object_store(settings),
            get_orphan_queue(settings),
            limit=args.limit,
        )
    except PaperframeError as exc:
        logger.error("Reconciliation aborted: %s", exc, exc_info=exc)
        return 1
    logger.info("Reconciliation complete, deleted %d objects", deleted)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
