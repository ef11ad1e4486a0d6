"""
Carousel mutations and their persistence across the metadata and object stores.

Each mutation is a read-modify-write cycle: build the new value from a state
snapshot, then commit it with the snapshot's version tokens. A lost race
reloads state and rebuilds, up to ``max_retries`` attempts.

Uploads write the blob first and the metadata second. If the metadata commit
fails, the blob is left unreferenced and its key is queued for cleanup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from paperframe.carousel import (
    AUTOINC_KEY,
    CAROUSEL_KEY,
    CURRENT_KEY,
    CarouselState,
    PhotoRecord,
    dump_carousel,
    generate_filename,
    is_photo_id,
    load_state,
    reorder_records,
    resolve_title,
)
from paperframe.errors import (
    ConflictError,
    NotFoundError,
    PaperframeError,
    StorageError,
    ValidationError,
)
from paperframe.metadata import MetadataStore
from paperframe.queue import OrphanQueue
from paperframe.storage import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class _Plan:
    result: Any
    writes: Dict[str, str] = field(default_factory=dict)
    expected: Dict[str, Any] = field(default_factory=dict)


class CarouselService:
    def __init__(
        self,
        metadata: MetadataStore,
        objects: ObjectStore,
        orphans: OrphanQueue,
        max_retries: int = 5,
    ):
        self.metadata = metadata
        self.objects = objects
        self.orphans = orphans
        self.max_retries = max_retries

    def load_state(self) -> CarouselState:
        return load_state(self.metadata)

    def _commit(
        self,
        state: CarouselState,
        build: Callable[[CarouselState], _Plan],
        operation: str,
    ) -> Any:
        for attempt in range(self.max_retries):
            if attempt:
                state = self.load_state()
            plan = build(state)
            if not plan.writes:
                return plan.result
            if self.metadata.commit(plan.writes, plan.expected):
                return plan.result
            logger.info(
                "%s lost a concurrent write (attempt %d/%d), reloading",
                operation,
                attempt + 1,
                self.max_retries,
            )
        logger.warning("%s gave up after %d conflicting attempts", operation, self.max_retries)
        raise ConflictError()

    def upload(
        self,
        state: CarouselState,
        *,
        data: Optional[bytes],
        original_name: Optional[str] = None,
        title: Optional[str] = None,
        content_type: str = "application/octet-stream",
    ) -> PhotoRecord:
        if not data:
            raise ValidationError("No image supplied")

        filename = generate_filename(original_name)
        title = resolve_title(title, original_name)

        self.objects.put_bytes(filename, data, content_type)
        logger.info("Stored %d bytes as %s", len(data), filename)

        def build(state: CarouselState) -> _Plan:
            record = PhotoRecord(id=state.next_id, title=title, filename=filename)
            return _Plan(
                result=record,
                writes={
                    CAROUSEL_KEY: dump_carousel(state.carousel + [record]),
                    AUTOINC_KEY: str(record.id),
                },
                expected={
                    CAROUSEL_KEY: state.versions.get(CAROUSEL_KEY),
                    AUTOINC_KEY: state.versions.get(AUTOINC_KEY),
                },
            )

        try:
            record = self._commit(state, build, "upload")
        except PaperframeError:
            self._record_orphan(filename)
            raise
        logger.info("Added photo %d (%s) to the carousel", record.id, filename)
        return record

    def _record_orphan(self, filename: str) -> None:
        logger.warning("Metadata commit failed, %s is now unreferenced", filename)
        try:
            self.orphans.enqueue(filename)
        except StorageError:
            logger.exception("Could not queue orphaned object %s for cleanup", filename)

    def delete(self, state: CarouselState, photo_id: int) -> PhotoRecord:
        record = state.find(photo_id)
        if record is None:
            raise NotFoundError(f"Photo {photo_id} not found")

        self.objects.delete(record.filename)

        def build(state: CarouselState) -> _Plan:
            remaining = [r for r in state.carousel if r.id != photo_id]
            if len(remaining) == len(state.carousel):
                # Someone else already removed it.
                return _Plan(result=record)
            return _Plan(
                result=record,
                writes={CAROUSEL_KEY: dump_carousel(remaining)},
                expected={CAROUSEL_KEY: state.versions.get(CAROUSEL_KEY)},
            )

        self._commit(state, build, "delete")
        logger.info("Deleted photo %d (%s)", record.id, record.filename)
        return record

    def reorder(self, state: CarouselState, ordered_ids: Any) -> List[PhotoRecord]:
        def build(state: CarouselState) -> _Plan:
            reordered = reorder_records(state.carousel, ordered_ids)
            return _Plan(
                result=reordered,
                writes={CAROUSEL_KEY: dump_carousel(reordered)},
                expected={CAROUSEL_KEY: state.versions.get(CAROUSEL_KEY)},
            )

        return self._commit(state, build, "reorder")

    def set_current(self, state: CarouselState, photo_id: Any) -> int:
        if not is_photo_id(photo_id):
            raise ValidationError("Photo id must be an integer")

        def build(state: CarouselState) -> _Plan:
            position = state.position_of(photo_id)
            if position is None:
                raise NotFoundError(f"Photo {photo_id} not found")
            return _Plan(
                result=position,
                writes={CURRENT_KEY: str(position)},
                expected={
                    CURRENT_KEY: state.versions.get(CURRENT_KEY),
                    CAROUSEL_KEY: state.versions.get(CAROUSEL_KEY),
                },
            )

        return self._commit(state, build, "set_current")

    def read_image(self, state: CarouselState, photo_id: int) -> Tuple[PhotoRecord, bytes]:
        record = state.find(photo_id)
        if record is None:
            raise NotFoundError(f"Photo {photo_id} not found")
        try:
            return record, self.objects.get_bytes(record.filename)
        except FileNotFoundError as exc:
            logger.warning("Photo %d references missing object %s", photo_id, record.filename)
            raise NotFoundError("Image not found") from exc
