"""Redis client backed by ``redis.asyncio``."""

import logging
from typing import Dict, List, Mapping, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError, ResponseError

from .base import KeyValueStore, StoreError, WrongTypeError

logger = logging.getLogger(__name__)


def _translate(error: RedisError, command: str, key: str = "") -> StoreError:
    message = str(error)
    if isinstance(error, ResponseError) and message.startswith("WRONGTYPE"):
        return WrongTypeError(message)
    logger.error(f"Redis {command} {key} failed: {message}")
    return StoreError(f"Redis {command} failed: {message}")


class RedisStore(KeyValueStore):
    """Store talking to a Redis server over a pooled connection."""

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[redis.Redis] = None):
        """Initialize the Redis store.

        Args:
            url: ``redis://`` or ``rediss://`` connection URL
            timeout: Socket timeout in seconds
            client: Pre-built client, mainly for tests
        """
        self.url = url
        self.client = client or redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            max_connections=20,
        )

    @property
    def backend_name(self) -> str:
        return "redis"

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            raise _translate(e, "PING") from e

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(key)
        except RedisError as e:
            raise _translate(e, "GET", key) from e

    async def set(self, key: str, value: str) -> None:
        try:
            await self.client.set(key, value)
        except RedisError as e:
            raise _translate(e, "SET", key) from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self.client.delete(*keys))
        except RedisError as e:
            raise _translate(e, "DEL", ",".join(keys)) from e

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.client.exists(key))
        except RedisError as e:
            raise _translate(e, "EXISTS", key) from e

    async def type(self, key: str) -> str:
        try:
            return str(await self.client.type(key))
        except RedisError as e:
            raise _translate(e, "TYPE", key) from e

    async def keys(self, pattern: str = "*") -> List[str]:
        try:
            found = [key async for key in self.client.scan_iter(match=pattern, count=100)]
        except RedisError as e:
            raise _translate(e, "SCAN", pattern) from e
        return sorted(set(found))

    async def hgetall(self, key: str) -> Dict[str, str]:
        try:
            return dict(await self.client.hgetall(key) or {})
        except RedisError as e:
            raise _translate(e, "HGETALL", key) from e

    async def hset(self, key: str, mapping: Mapping[str, str]) -> int:
        if not mapping:
            return 0
        try:
            return int(await self.client.hset(key, mapping=dict(mapping)))
        except RedisError as e:
            raise _translate(e, "HSET", key) from e

    async def lpush(self, key: str, *values: str) -> int:
        try:
            return int(await self.client.lpush(key, *values))
        except RedisError as e:
            raise _translate(e, "LPUSH", key) from e

    async def lrange(self, key: str, start: int, stop: int) -> List[str]:
        try:
            return list(await self.client.lrange(key, start, stop))
        except RedisError as e:
            raise _translate(e, "LRANGE", key) from e

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Redis connection pool closed")
