"""
Carousel records, per-request state loading and the pure list operations.

Persisted keys:
  ``carousel`` - JSON array of photo records, in display order.
  ``current``  - stringified display pointer (a position, not an id).
  ``autoinc``  - stringified last *used* photo id.
"""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from paperframe.errors import ConsistencyError, CorruptStateError, ValidationError
from paperframe.metadata import MetadataStore

CAROUSEL_KEY = "carousel"
CURRENT_KEY = "current"
AUTOINC_KEY = "autoinc"

UNTITLED = "Untitled"


@dataclass(frozen=True)
class PhotoRecord:
    id: int
    title: str
    filename: str

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "filename": self.filename,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PhotoRecord":
        photo_id = data["id"]
        if not is_photo_id(photo_id):
            raise ValueError(f"bad photo id: {photo_id!r}")
        title = data.get("title")
        filename = data["filename"]
        if not isinstance(filename, str):
            raise ValueError(f"bad filename: {filename!r}")
        return cls(id=photo_id, title=str(title or UNTITLED), filename=filename)


@dataclass
class CarouselState:
    """
    Request-scoped snapshot of the carousel.

    ``versions`` maps each key that was present to the version token it was
    read at; absent keys are left out so a later commit can require them to
    still be absent.
    """

    carousel: List[PhotoRecord] = field(default_factory=list)
    current: int = 0
    next_id: int = 0
    versions: Dict[str, Any] = field(default_factory=dict)

    def find(self, photo_id: int) -> Optional[PhotoRecord]:
        for record in self.carousel:
            if record.id == photo_id:
                return record
        return None

    def position_of(self, photo_id: int) -> Optional[int]:
        for position, record in enumerate(self.carousel):
            if record.id == photo_id:
                return position
        return None

    def current_photo(self) -> Optional[PhotoRecord]:
        index = effective_index(self.current, len(self.carousel))
        if index is None:
            return None
        return self.carousel[index]


def is_photo_id(value: Any) -> bool:
    # bool is an int subclass; True is not a photo id.
    return isinstance(value, int) and not isinstance(value, bool)


def effective_index(current: int, length: int) -> Optional[int]:
    if length <= 0:
        return None
    return current % length


def next_index(current: int, length: int) -> Optional[int]:
    """Position after ``current``, wrapping at ``length``. None when empty."""
    if length <= 0:
        return None
    return (current + 1) % length


def parse_carousel(raw: str) -> List[PhotoRecord]:
    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("carousel is not a list")
        records = [PhotoRecord.from_dict(item) for item in data]
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise CorruptStateError(CAROUSEL_KEY) from exc
    if len({record.id for record in records}) != len(records):
        raise CorruptStateError(CAROUSEL_KEY)
    return records


def dump_carousel(records: Sequence[PhotoRecord]) -> str:
    return json.dumps([record.as_dict() for record in records])


def _parse_counter(raw: str, key: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise CorruptStateError(key) from exc
    if value < 0:
        raise CorruptStateError(key)
    return value


def load_carousel(metadata: MetadataStore) -> Tuple[List[PhotoRecord], Any]:
    entry = metadata.get(CAROUSEL_KEY)
    if entry is None:
        return [], None
    return parse_carousel(entry.value), entry.version


def load_current(metadata: MetadataStore) -> Tuple[int, Any]:
    entry = metadata.get(CURRENT_KEY)
    if entry is None:
        return 0, None
    return _parse_counter(entry.value, CURRENT_KEY), entry.version


def load_next_id(metadata: MetadataStore) -> Tuple[int, Any]:
    """
    The stored counter is the last id handed out, so the next assignable id
    is one past it. With nothing stored the first id is 0.
    """
    entry = metadata.get(AUTOINC_KEY)
    if entry is None:
        return 0, None
    return _parse_counter(entry.value, AUTOINC_KEY) + 1, entry.version


def load_state(metadata: MetadataStore) -> CarouselState:
    """
    Rebuild carousel state from the metadata store.

    Missing keys fall back to first-run defaults. A key that is present but
    unparseable raises CorruptStateError instead of resetting state.
    """
    carousel, carousel_version = load_carousel(metadata)
    current, current_version = load_current(metadata)
    next_id, autoinc_version = load_next_id(metadata)

    versions: Dict[str, Any] = {}
    for key, version in (
        (CAROUSEL_KEY, carousel_version),
        (CURRENT_KEY, current_version),
        (AUTOINC_KEY, autoinc_version),
    ):
        if version is not None:
            versions[key] = version

    return CarouselState(
        carousel=carousel, current=current, next_id=next_id, versions=versions
    )


def resolve_title(title: Optional[str], original_name: Optional[str]) -> str:
    for candidate in (title, original_name):
        if candidate and candidate.strip():
            return candidate.strip()
    return UNTITLED


def generate_filename(original_name: Optional[str], now: Optional[float] = None) -> str:
    """Object key for a new upload: millisecond timestamp, random suffix, original extension."""
    timestamp = int((time.time() if now is None else now) * 1000)
    _, ext = os.path.splitext(original_name or "")
    return f"{timestamp}-{uuid4().hex[:8]}{ext.lower()}"


def validate_order(ordered_ids: Any, expected_length: int) -> List[int]:
    if not isinstance(ordered_ids, list) or not ordered_ids:
        raise ValidationError("Expected a non-empty array of photo ids")
    if not all(is_photo_id(photo_id) for photo_id in ordered_ids):
        raise ValidationError("Photo ids must be integers")
    if len(set(ordered_ids)) != len(ordered_ids):
        raise ValidationError("Photo ids must not repeat")
    if len(ordered_ids) != expected_length:
        raise ValidationError(
            f"Expected {expected_length} photo ids, got {len(ordered_ids)}"
        )
    return ordered_ids


def reorder_records(
    carousel: Sequence[PhotoRecord], ordered_ids: Any
) -> List[PhotoRecord]:
    """
    Return the carousel rearranged to follow ``ordered_ids``.

    Unknown ids are skipped, but the result must still hold every record;
    otherwise ConsistencyError is raised rather than dropping photos.
    """
    ordered_ids = validate_order(ordered_ids, len(carousel))
    by_id = {record.id: record for record in carousel}
    reordered = [by_id[photo_id] for photo_id in ordered_ids if photo_id in by_id]
    if len(reordered) != len(carousel):
        raise ConsistencyError(
            "Reordered carousel does not contain every photo"
        )
    return reordered
