"""Upstash Redis client speaking the REST API over aiohttp."""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from .base import KeyValueStore, StoreError, WrongTypeError

logger = logging.getLogger(__name__)


class UpstashStore(KeyValueStore):
    """Client for the Upstash REST API.

    Each command is POSTed to the database URL as a JSON array, e.g.
    ``["GET", "newsletter:1"]``, and answered with ``{"result": ...}`` or
    ``{"error": "..."}``.
    """

    def __init__(self, url: str, token: str, timeout: float = 10.0):
        """Initialize Upstash client.

        Args:
            url: REST endpoint (``KV_REST_API_URL``)
            token: REST token (``KV_REST_API_TOKEN``)
            timeout: Request timeout in seconds
        """
        self.url = url.rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._lock = asyncio.Lock()

    @property
    def backend_name(self) -> str:
        return "upstash"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            async with self._lock:
                if self._session is None or self._session.closed:
                    self._session = aiohttp.ClientSession(
                        headers=self.headers,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    )
        return self._session

    async def execute(self, *command: Any) -> Any:
        """Run one Redis command and return its ``result``.

        Raises:
            WrongTypeError: for WRONGTYPE replies
            StoreError: for any other error reply or transport failure
        """
        name = str(command[0]).upper()
        body = [str(part) for part in command]
        session = await self._get_session()
        try:
            async with session.post(self.url, json=body) as response:
                try:
                    payload = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    payload = {"error": await response.text()}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Upstash {name} request failed: {e}")
            raise StoreError(f"Upstash {name} request failed: {e}") from e

        error = payload.get("error") if isinstance(payload, dict) else None
        if error:
            if str(error).startswith("WRONGTYPE"):
                raise WrongTypeError(str(error))
            logger.error(f"Upstash {name} error ({response.status}): {error}")
            raise StoreError(f"Upstash {name} error: {error}")
        if response.status >= 400:
            raise StoreError(f"Upstash {name} returned HTTP {response.status}")
        if not isinstance(payload, dict):
            raise StoreError(f"Upstash {name} returned an unexpected payload")
        return payload.get("result")

    async def ping(self) -> bool:
        return await self.execute("PING") == "PONG"

    async def get(self, key: str) -> Optional[str]:
        return await self.execute("GET", key)

    async def set(self, key: str, value: str) -> None:
        await self.execute("SET", key, value)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.execute("DEL", *keys) or 0)

    async def exists(self, key: str) -> bool:
        return bool(await self.execute("EXISTS", key))

    async def type(self, key: str) -> str:
        return str(await self.execute("TYPE", key))

    async def keys(self, pattern: str = "*") -> List[str]:
        found = set()
        cursor = "0"
        while True:
            result = await self.execute("SCAN", cursor, "MATCH", pattern, "COUNT", 100)
            cursor, batch = str(result[0]), result[1] or []
            found.update(batch)
            if cursor == "0":
                break
        return sorted(found)

    async def hgetall(self, key: str) -> Dict[str, str]:
        result = await self.execute("HGETALL", key)
        if not result:
            return {}
        if isinstance(result, dict):
            return {str(k): str(v) for k, v in result.items()}
        # Flat [field, value, field, value, ...] reply
        return {str(result[i]): str(result[i + 1]) for i in range(0, len(result) - 1, 2)}

    async def hset(self, key: str, mapping: Mapping[str, str]) -> int:
        if not mapping:
            return 0
        args: List[str] = []
        for field, value in mapping.items():
            args.extend([field, value])
        return int(await self.execute("HSET", key, *args) or 0)

    async def lpush(self, key: str, *values: str) -> int:
        return int(await self.execute("LPUSH", key, *values))

    async def lrange(self, key: str, start: int, stop: int) -> List[str]:
        return [str(v) for v in await self.execute("LRANGE", key, start, stop) or []]

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
