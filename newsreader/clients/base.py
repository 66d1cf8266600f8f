"""Interface shared by the key-value store clients."""

from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional


class StoreError(Exception):
    """Raised when the backing key-value store call fails."""


class WrongTypeError(StoreError):
    """Raised when a command is used against a key holding another type."""


class KeyValueStore(ABC):
    """Async subset of Redis commands used by the application.

    Values are always ``str``. Hashes are flat ``str -> str`` maps; nested
    values must be JSON encoded by the caller.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short name for logs and the health endpoint, e.g. 'redis'."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the store answers."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the string at ``key`` or None when missing.

        Raises:
            WrongTypeError: if ``key`` holds a non-string value
        """

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def type(self, key: str) -> str:
        """Return 'string', 'hash', 'list' or 'none'."""

    @abstractmethod
    async def keys(self, pattern: str = "*") -> List[str]:
        """Return keys matching a glob-style pattern, sorted."""

    @abstractmethod
    async def hgetall(self, key: str) -> Dict[str, str]:
        """Return all fields of the hash at ``key``; empty dict when missing.

        Raises:
            WrongTypeError: if ``key`` holds a non-hash value
        """

    @abstractmethod
    async def hset(self, key: str, mapping: Mapping[str, str]) -> int:
        """Set hash fields and return the number of fields added."""

    @abstractmethod
    async def lpush(self, key: str, *values: str) -> int:
        pass

    @abstractmethod
    async def lrange(self, key: str, start: int, stop: int) -> List[str]:
        pass

    async def close(self) -> None:
        """Release connections held by the client."""
        return None
