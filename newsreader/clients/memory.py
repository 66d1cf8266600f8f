"""In-process key-value store used for local development and tests."""

import logging
import re
from typing import Dict, List, Mapping, Optional, Pattern, Union

from .base import KeyValueStore, WrongTypeError

logger = logging.getLogger(__name__)

Value = Union[str, Dict[str, str], List[str]]


def glob_to_regex(pattern: str) -> Pattern[str]:
    """Translate a Redis glob (``*``, ``?``, ``[...]``, ``\\`` escapes)."""
    parts = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end in (-1, i + 1):
                parts.append(re.escape(char))
            else:
                # Redis and re share the [abc], [a-z] and [^a] forms
                body = pattern[i + 1:end].replace("\\", "\\\\")
                parts.append(f"[{body}]")
                i = end
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("".join(parts), re.DOTALL)


class MemoryStore(KeyValueStore):
    """Dictionary-backed store with the Redis type rules the app relies on."""

    def __init__(self, data: Optional[Dict[str, Value]] = None):
        self._data: Dict[str, Value] = {}
        for key, value in (data or {}).items():
            if isinstance(value, dict):
                self._data[key] = {str(k): str(v) for k, v in value.items()}
            elif isinstance(value, list):
                self._data[key] = [str(v) for v in value]
            else:
                self._data[key] = str(value)

    @property
    def backend_name(self) -> str:
        return "memory"

    def _typed(self, key: str, expected: type) -> Optional[Value]:
        value = self._data.get(key)
        if value is not None and not isinstance(value, expected):
            raise WrongTypeError(
                "WRONGTYPE Operation against a key holding the wrong kind of value"
            )
        return value

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> Optional[str]:
        return self._typed(key, str)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    async def exists(self, key: str) -> bool:
        return key in self._data

    async def type(self, key: str) -> str:
        value = self._data.get(key)
        if value is None:
            return "none"
        if isinstance(value, dict):
            return "hash"
        if isinstance(value, list):
            return "list"
        return "string"

    async def keys(self, pattern: str = "*") -> List[str]:
        regex = glob_to_regex(pattern)
        return sorted(k for k in self._data if regex.fullmatch(k))

    async def hgetall(self, key: str) -> Dict[str, str]:
        value = self._typed(key, dict)
        return dict(value) if value else {}

    async def hset(self, key: str, mapping: Mapping[str, str]) -> int:
        current = self._typed(key, dict)
        if current is None:
            current = {}
            self._data[key] = current
        added = 0
        for field, value in mapping.items():
            if field not in current:
                added += 1
            current[field] = str(value)
        return added

    async def lpush(self, key: str, *values: str) -> int:
        current = self._typed(key, list)
        if current is None:
            current = []
            self._data[key] = current
        for value in values:
            current.insert(0, str(value))
        return len(current)

    async def lrange(self, key: str, start: int, stop: int) -> List[str]:
        current = self._typed(key, list) or []
        # Redis treats stop as inclusive and -1 as the last element
        end = None if stop == -1 else stop + 1
        return list(current[start:end])
