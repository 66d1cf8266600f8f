"""Key-value store clients and backend selection."""

import logging

from ..models.settings import Settings
from .base import KeyValueStore, StoreError, WrongTypeError
from .memory import MemoryStore

logger = logging.getLogger(__name__)

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "StoreError",
    "WrongTypeError",
    "create_store",
]


def create_store(settings: Settings) -> KeyValueStore:
    """Build the store selected by ``settings.store_backend``.

    ``auto`` prefers Upstash when both REST variables are present, then a
    ``REDIS_URL``, and finally the in-memory store.
    """
    backend = settings.store_backend
    if backend == "auto":
        if settings.has_upstash_credentials:
            backend = "upstash"
        elif settings.redis_url:
            backend = "redis"
        else:
            backend = "memory"
            logger.warning(
                "No KV_REST_API_URL/KV_REST_API_TOKEN or REDIS_URL configured - "
                "using the in-memory store, data will not persist"
            )

    if backend == "upstash":
        from .upstash import UpstashStore

        return UpstashStore(
            settings.kv_rest_api_url, settings.kv_rest_api_token, timeout=settings.kv_timeout
        )
    if backend == "redis":
        from .redis_store import RedisStore

        return RedisStore(settings.redis_url, timeout=settings.kv_timeout)
    return MemoryStore()
