"""Reconcile the historical newsletter record shapes into one article view.

Records written over the life of the app carry different field names for
the same thing (``from`` vs ``sender``, ``body`` vs ``content``, ``date``
vs ``publishDate``), may keep flags at the top level or inside a
``metadata`` object, and - when stored as Redis hashes - hold every value as
a string. Everything here accepts any of those shapes.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from ..models.newsletter import Article
from .dates import is_valid_date, to_iso
from .keys import id_from_key

logger = logging.getLogger(__name__)

TRUE_STRINGS = {"1", "true", "yes", "on"}

CONTENT_FIELDS = ("content", "cleanContent", "rawContent", "textContent", "body")


def decode_json_object(value: Any) -> Optional[Dict[str, Any]]:
    """Return ``value`` as a dict if it is one or JSON-encodes one."""
    if isinstance(value, dict):
        return value
    if isinstance(value, str) and value.strip().startswith("{"):
        try:
            decoded = json.loads(value)
        except ValueError:
            return None
        if isinstance(decoded, dict):
            return decoded
    return None


def parse_metadata(record: Mapping[str, Any]) -> Dict[str, Any]:
    """The record's ``metadata`` object, decoding hash-stored JSON."""
    raw = record.get("metadata")
    if raw in (None, ""):
        return {}
    decoded = decode_json_object(raw)
    if decoded is None:
        logger.warning(f"Ignoring unparseable metadata: {str(raw)[:80]!r}")
        return {}
    return decoded


def as_bool(value: Any) -> bool:
    """Truthiness that understands hash-stored flags like ``"0"``/``"1"``."""
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


def as_tags(value: Any) -> List[str]:
    """Coerce list, JSON list string or single tag into a list of strings."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(tag) for tag in value if tag not in (None, "")]
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except ValueError:
                decoded = None
            if isinstance(decoded, list):
                return [str(tag) for tag in decoded if tag not in (None, "")]
        return [text] if text else []
    return [str(value)]


def first_present(record: Mapping[str, Any], *fields: str) -> Any:
    """Value of the first field that is present and non-empty."""
    for name in fields:
        value = record.get(name)
        if value not in (None, "", [], {}):
            return value
    return None


def first_valid_date(record: Mapping[str, Any], *fields: str) -> Any:
    """Value of the first field that parses as a date, or None."""
    for name in fields:
        value = record.get(name)
        if value not in (None, "") and is_valid_date(value):
            return value
    return None


def _image_url(record: Mapping[str, Any]) -> Optional[str]:
    if record.get("imageUrl"):
        return str(record["imageUrl"])
    images = record.get("images")
    if isinstance(images, str):
        images = as_tags(images)
    if isinstance(images, list) and images:
        return str(images[0])
    return None


def to_article(record: Mapping[str, Any], key: str, include_raw: bool = False) -> Article:
    """Build the canonical article view from a stored record.

    Args:
        record: Decoded JSON object or hash fields
        key: Store key the record was found under
        include_raw: Attach the untouched record as ``_raw``

    Returns:
        Article with every canonical field filled in
    """
    metadata = parse_metadata(record)

    tags = as_tags(record.get("tags"))
    if not tags:
        tags = as_tags(metadata.get("tags"))

    return Article(
        id=str(record.get("id") or id_from_key(key)),
        key=key,
        title=str(first_present(record, "title", "subject") or "Untitled Article"),
        content=str(first_present(record, *CONTENT_FIELDS) or ""),
        sender=str(first_present(record, "sender", "from") or "Unknown Sender"),
        publishDate=to_iso(first_valid_date(record, "publishDate", "date", "receivedAt")),
        tags=tags,
        imageUrl=_image_url(record),
        isRead=as_bool(record.get("isRead")) or as_bool(metadata.get("isRead")),
        isArchived=(
            as_bool(record.get("isArchived"))
            or as_bool(record.get("archived"))
            or as_bool(metadata.get("archived"))
            or as_bool(metadata.get("isArchived"))
        ),
        _raw=dict(record) if include_raw else None,
    )
