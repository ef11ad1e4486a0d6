"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Header

from paperframe.auth import Denied, RequestContext, check_admin, check_authorization
from paperframe.config import Settings, get_settings
from paperframe.errors import AuthError
from paperframe.metadata import (
    InMemoryMetadataStore,
    MetadataStore,
    RedisMetadataStore,
    SqlMetadataStore,
)
from paperframe.queue import InMemoryOrphanQueue, OrphanQueue, RedisOrphanQueue
from paperframe.service import CarouselService
from paperframe.storage import InMemoryObjectStore, ObjectStore, S3ObjectStore

logger = logging.getLogger(__name__)

_metadata_store: MetadataStore | None = None
_object_store: ObjectStore | None = None
_orphan_queue: OrphanQueue | None = None


def build_metadata_store(settings: Settings) -> MetadataStore:
    if settings.use_in_memory_backends:
        return InMemoryMetadataStore()
    if settings.redis_url:
        return RedisMetadataStore(
            url=settings.redis_url, timeout_seconds=settings.storage_timeout_seconds
        )
    if settings.database_url:
        return SqlMetadataStore(
            settings.database_url, timeout_seconds=settings.storage_timeout_seconds
        )
    logger.warning("No metadata backend configured, carousel state is in-memory only")
    return InMemoryMetadataStore()


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.use_in_memory_backends or not settings.s3_bucket:
        return InMemoryObjectStore()
    return S3ObjectStore(
        bucket=settings.s3_bucket,
        region=settings.s3_region or "",
        endpoint=settings.s3_endpoint or "",
        access_key_id=settings.aws_access_key_id or "",
        secret_access_key=settings.aws_secret_access_key or "",
        timeout_seconds=settings.storage_timeout_seconds,
    )


def build_orphan_queue(settings: Settings) -> OrphanQueue:
    if settings.redis_url and not settings.use_in_memory_backends:
        return RedisOrphanQueue(
            url=settings.redis_url,
            queue_key=settings.orphan_queue_key,
            timeout_seconds=settings.storage_timeout_seconds,
        )
    return InMemoryOrphanQueue()


def get_metadata_store(settings: Settings = Depends(get_settings)) -> MetadataStore:
    """
    Return a singleton metadata store so every request and daemon tick shares it.

    The first caller's settings pick the backend; the app passes its own
    settings through ``Depends(get_settings)``, daemons pass ``get_settings()``.
    """
    global _metadata_store
    if _metadata_store is None:
        _metadata_store = build_metadata_store(settings)
    return _metadata_store


def get_object_store(settings: Settings = Depends(get_settings)) -> ObjectStore:
    global _object_store
    if _object_store is None:
        _object_store = build_object_store(settings)
    return _object_store


def get_orphan_queue(settings: Settings = Depends(get_settings)) -> OrphanQueue:
    global _orphan_queue
    if _orphan_queue is None:
        _orphan_queue = build_orphan_queue(settings)
    return _orphan_queue


def reset_backends() -> None:
    """Forget the singletons (useful in tests)."""
    global _metadata_store, _object_store, _orphan_queue
    _metadata_store = None
    _object_store = None
    _orphan_queue = None


def get_carousel_service(
    metadata: MetadataStore = Depends(get_metadata_store),
    objects: ObjectStore = Depends(get_object_store),
    orphans: OrphanQueue = Depends(get_orphan_queue),
    settings: Settings = Depends(get_settings),
) -> CarouselService:
    return CarouselService(
        metadata, objects, orphans, max_retries=settings.cas_max_retries
    )


def get_authorized(
    authorization: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> bool:
    return check_authorization(
        authorization, settings.api_admin_user, settings.api_admin_pass
    )


def get_request_context(
    authorized: bool = Depends(get_authorized),
    service: CarouselService = Depends(get_carousel_service),
) -> RequestContext:
    """Load carousel state fresh for this request; nothing is cached across requests."""
    return RequestContext(state=service.load_state(), authorized=authorized)


def require_admin(
    context: RequestContext = Depends(get_request_context),
) -> RequestContext:
    result = check_admin(context)
    if isinstance(result, Denied):
        raise AuthError(result.reason)
    return result.context
