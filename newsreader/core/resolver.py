"""Best-effort lookup of a newsletter record across key naming conventions."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..clients.base import KeyValueStore, WrongTypeError
from .keys import candidate_keys, normalize_id
from .normalizer import decode_json_object

logger = logging.getLogger(__name__)


@dataclass
class ResolvedRecord:
    """A record found in the store."""

    key: str
    data: Dict[str, Any]
    representation: str  # "string" or "hash"


@dataclass
class ProbeAttempt:
    """One step of a lookup, kept for the debug endpoint."""

    candidate: str
    key: str
    outcome: str
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate": self.candidate,
            "key": self.key,
            "outcome": self.outcome,
            "detail": self.detail,
        }


async def read_record(
    store: KeyValueStore, key: str, attempts: Optional[List[ProbeAttempt]] = None,
    candidate: Optional[str] = None,
) -> Optional[ResolvedRecord]:
    """Read ``key`` as a JSON string, then as a hash.

    Wrong-type replies and undecodable JSON count as a miss for that
    representation. Any other store failure propagates.
    """
    candidate = candidate or key

    def note(outcome: str, detail: Optional[str] = None) -> None:
        if attempts is not None:
            attempts.append(ProbeAttempt(candidate, key, outcome, detail))

    try:
        value = await store.get(key)
    except WrongTypeError:
        value = None
        note("not-a-string")

    if value is not None:
        try:
            decoded = json.loads(value)
        except ValueError as e:
            logger.warning(f"Error parsing JSON for key {key}: {e}")
            note("invalid-json", str(e))
        else:
            if isinstance(decoded, dict):
                note("hit", "string")
                return ResolvedRecord(key=key, data=decoded, representation="string")
            logger.warning(f"Value at {key} is JSON {type(decoded).__name__}, not an object")
            note("not-an-object", type(decoded).__name__)

    try:
        fields = await store.hgetall(key)
    except WrongTypeError:
        note("not-a-hash")
        return None

    if fields:
        data: Dict[str, Any] = dict(fields)
        metadata = decode_json_object(data.get("metadata"))
        if metadata is not None:
            data["metadata"] = metadata
        note("hit", "hash")
        return ResolvedRecord(key=key, data=data, representation="hash")

    if value is None:
        logger.debug(f"No record at {key}")
        note("miss")
    return None


class RecordResolver:
    """Finds a record by trying each key pattern in order."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.attempts: List[ProbeAttempt] = []

    async def find(self, raw_id: str) -> Optional[ResolvedRecord]:
        """Resolve an identifier to the first matching record.

        Args:
            raw_id: Identifier, optionally prefixed with ``newsletter:`` or
                ``article:``

        Returns:
            The first hit, or None when no candidate matched

        Raises:
            ValueError: if the identifier is empty
            StoreError: if the store itself fails
        """
        clean_id = normalize_id(raw_id)
        if not clean_id:
            raise ValueError("Article ID is required")

        self.attempts = []
        tried = set()
        candidates = candidate_keys(clean_id)
        logger.debug(f"Searching for article {clean_id!r} using {[c.key for c in candidates]}")

        for candidate in candidates:
            if not candidate.wildcard:
                tried.add(candidate.key)
                found = await read_record(self.store, candidate.key, self.attempts)
                if found:
                    logger.info(f"Found article {clean_id!r} at {found.key} ({found.representation})")
                    return found
                continue

            matches = [key for key in await self.store.keys(candidate.key) if key not in tried]
            logger.debug(f"Pattern {candidate.key} matched {len(matches)} untried keys")
            if not matches:
                self.attempts.append(ProbeAttempt(candidate.key, candidate.key, "no-keys"))
            for key in matches:
                tried.add(key)
                found = await read_record(
                    self.store, key, self.attempts, candidate=candidate.key
                )
                if found:
                    logger.info(f"Found article {clean_id!r} at {found.key} via {candidate.key}")
                    return found

        logger.info(f"No matches found for article {clean_id!r}")
        return None
