"""
Versioned key-value metadata store for carousel state.

Every write goes through ``commit``, an atomic multi-key compare-and-swap, so
concurrent read-modify-write cycles cannot silently overwrite each other.
Implementations exist for Redis, any SQLAlchemy URL (Postgres, or SQLite in
tests), and an in-memory test double.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions
from sqlalchemy import Column, Integer, String, Text, create_engine, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from paperframe.errors import StorageError


@dataclass(frozen=True)
class Entry:
    """A stored value plus the opaque version token it was read at."""

    value: str
    version: Any


class MetadataStore(Protocol):
    """Interface for the metadata backend."""

    def get(self, key: str) -> Optional[Entry]:
        ...

    def commit(
        self, writes: Mapping[str, str], expected: Mapping[str, Any]
    ) -> bool:
        """
        Apply ``writes`` only if every key in ``expected`` is still at the
        given version (``None`` meaning the key must be absent). Returns False
        on a version conflict and raises StorageError on transport failure.
        """
        ...


class InMemoryMetadataStore:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self.entries: Dict[str, Entry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Entry]:
        with self._lock:
            return self.entries.get(key)

    def put(self, key: str, value: str) -> None:
        """Unconditional write, used to seed state."""
        with self._lock:
            self._write(key, value)

    def commit(
        self, writes: Mapping[str, str], expected: Mapping[str, Any]
    ) -> bool:
        with self._lock:
            for key, version in expected.items():
                current = self.entries.get(key)
                if (current.version if current else None) != version:
                    return False
            for key, value in writes.items():
                self._write(key, value)
            return True

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.entries.clear()

    def _write(self, key: str, value: str) -> None:
        current = self.entries.get(key)
        version = current.version + 1 if current else 1
        self.entries[key] = Entry(value=value, version=version)


@dataclass
class RedisMetadataStore:
    """
    Redis-backed store. The raw stored string doubles as its version token;
    ``commit`` uses WATCH/MULTI/EXEC so a concurrent change aborts the write.
    """

    url: str
    timeout_seconds: float = 10.0

    def __post_init__(self):
        self.client = redis.Redis.from_url(
            self.url,
            decode_responses=True,
            socket_timeout=self.timeout_seconds,
            socket_connect_timeout=self.timeout_seconds,
        )

    def get(self, key: str) -> Optional[Entry]:
        try:
            value = self.client.get(key)
        except redis_exceptions.RedisError as exc:
            raise StorageError("metadata get", key) from exc
        if value is None:
            return None
        return Entry(value=value, version=value)

    def commit(
        self, writes: Mapping[str, str], expected: Mapping[str, Any]
    ) -> bool:
        keys = sorted(set(writes) | set(expected))
        try:
            with self.client.pipeline() as pipe:
                pipe.watch(*keys)
                for key, version in expected.items():
                    if pipe.get(key) != version:
                        return False
                pipe.multi()
                for key, value in writes.items():
                    pipe.set(key, value)
                pipe.execute()
                return True
        except redis_exceptions.WatchError:
            return False
        except redis_exceptions.RedisError as exc:
            raise StorageError("metadata commit", ",".join(keys)) from exc


Base = declarative_base()


class MetadataRow(Base):
    __tablename__ = "metadata_kv"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    version = Column(Integer, nullable=False, default=1)


class SqlMetadataStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, timeout_seconds: float = 10.0):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlMetadataStore")
        if database_url.startswith("sqlite"):
            self.engine = create_engine(database_url, future=True)
        else:
            connect_args = {}
            if database_url.startswith("postgresql"):
                connect_args["connect_timeout"] = max(1, int(timeout_seconds))
            self.engine = create_engine(
                database_url,
                future=True,
                pool_pre_ping=True,
                pool_recycle=1800,
                pool_timeout=timeout_seconds,
                connect_args=connect_args,
            )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def get(self, key: str) -> Optional[Entry]:
        try:
            with self.Session() as session:
                row = session.get(MetadataRow, key)
                if not row:
                    return None
                return Entry(value=row.value, version=row.version)
        except SQLAlchemyError as exc:
            raise StorageError("metadata get", key) from exc

    def commit(
        self, writes: Mapping[str, str], expected: Mapping[str, Any]
    ) -> bool:
        try:
            with self.Session() as session:
                for key, version in expected.items():
                    if key in writes:
                        continue
                    row = session.execute(
                        select(MetadataRow)
                        .where(MetadataRow.key == key)
                        .with_for_update()
                    ).scalar_one_or_none()
                    if (row.version if row else None) != version:
                        return False

                for key, value in writes.items():
                    if key not in expected:
                        row = session.get(MetadataRow, key)
                        if row:
                            row.value = value
                            row.version = row.version + 1
                        else:
                            session.add(MetadataRow(key=key, value=value, version=1))
                        continue
                    version = expected[key]
                    if version is None:
                        # Primary key collision means another writer got there first.
                        session.add(MetadataRow(key=key, value=value, version=1))
                        session.flush()
                        continue
                    result = session.execute(
                        update(MetadataRow)
                        .where(
                            MetadataRow.key == key,
                            MetadataRow.version == version,
                        )
                        .values(value=value, version=version + 1)
                    )
                    if result.rowcount != 1:
                        session.rollback()
                        return False
                session.commit()
                return True
        except IntegrityError:
            return False
        except SQLAlchemyError as exc:
            raise StorageError("metadata commit", ",".join(sorted(writes))) from exc
