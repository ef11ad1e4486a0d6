"""
Queue of reconciliation records for orphaned blobs.

An upload writes its blob before committing metadata. When the metadata commit
fails, the blob's key is pushed here so ``paperframe.reconcile`` can remove it
later. Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from paperframe.errors import StorageError


class OrphanQueue(Protocol):
    """Minimal queue interface for object keys awaiting cleanup."""

    def enqueue(self, key: str) -> None:
        ...

    def dequeue(self) -> Optional[str]:
        """Pop the oldest key, or None when the queue is empty."""
        ...


@dataclass
class InMemoryOrphanQueue:
    """Simple FIFO queue for testing/dev."""

    items: list[str] = field(default_factory=list)

    def enqueue(self, key: str) -> None:
        self.items.append(key)

    def dequeue(self) -> Optional[str]:
        if not self.items:
            return None
        return self.items.pop(0)


@dataclass
class RedisOrphanQueue:
    """Redis-backed queue using list push/pop operations."""

    url: str
    queue_key: str = "paperframe:orphans"
    timeout_seconds: float = 10.0

    def __post_init__(self):
        self.client = redis.Redis.from_url(
            self.url,
            socket_timeout=self.timeout_seconds,
            socket_connect_timeout=self.timeout_seconds,
        )

    def enqueue(self, key: str) -> None:
        try:
            self.client.rpush(self.queue_key, key)
        except redis_exceptions.RedisError as exc:
            raise StorageError("orphan enqueue", key) from exc

    def dequeue(self) -> Optional[str]:
        try:
            key = self.client.lpop(self.queue_key)
        except redis_exceptions.RedisError as exc:
            raise StorageError("orphan dequeue", self.queue_key) from exc
        if key is None:
            return None
        return key.decode("utf-8")
