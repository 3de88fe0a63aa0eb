"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from feedlog.config import get_settings
from feedlog.records import RecordService
from feedlog.store import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore

logger = logging.getLogger(__name__)

_store: KeyValueStore | None = None


def get_store() -> KeyValueStore:
    """
    Return a singleton store so records persist across requests.
    """
    global _store
    if _store:
        return _store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.redis_url:
        logger.info("Using in-memory key-value store")
        _store = InMemoryKeyValueStore()
    else:
        _store = RedisKeyValueStore(
            url=settings.redis_url,
            key_prefix=settings.redis_key_prefix,
        )
    return _store


def get_record_service() -> RecordService:
    return RecordService(get_store())
