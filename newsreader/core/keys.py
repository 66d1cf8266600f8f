"""Key naming conventions used for newsletter records."""

import re
from typing import List, NamedTuple

NEWSLETTER_PREFIX = "newsletter:"
ARTICLE_PREFIX = "article:"
META_PREFIX = "newsletter:meta:"
NEWSLETTER_IDS_KEY = "newsletter_ids"

_RECORD_PREFIXES = (META_PREFIX, NEWSLETTER_PREFIX, ARTICLE_PREFIX)


def normalize_id(raw_id: str) -> str:
    """Strip whitespace and a single leading ``newsletter:``/``article:``."""
    if not raw_id:
        return ""
    cleaned = raw_id.strip()
    for prefix in (NEWSLETTER_PREFIX, ARTICLE_PREFIX):
        if cleaned.startswith(prefix):
            return cleaned[len(prefix):].strip()
    return cleaned


def newsletter_key(newsletter_id: str) -> str:
    return f"{NEWSLETTER_PREFIX}{normalize_id(newsletter_id)}"


def meta_key(newsletter_id: str) -> str:
    return f"{META_PREFIX}{normalize_id(newsletter_id)}"


def id_from_key(key: str) -> str:
    """Return the identifier part of a record key."""
    for prefix in _RECORD_PREFIXES:
        if key.startswith(prefix):
            return key[len(prefix):]
    return key


class Candidate(NamedTuple):
    key: str
    wildcard: bool = False


def escape_pattern(text: str) -> str:
    """Escape glob metacharacters so ``text`` matches itself in SCAN/KEYS."""
    return re.sub(r"([*?\[\]\\])", r"\\\1", text)


def candidate_keys(clean_id: str) -> List[Candidate]:
    """Ordered probe list for a normalized id.

    The exact ``newsletter:`` key comes first, the broad wildcard last.
    """
    escaped = escape_pattern(clean_id)
    return [
        Candidate(f"{NEWSLETTER_PREFIX}{clean_id}"),
        Candidate(clean_id),
        Candidate(f"{ARTICLE_PREFIX}{clean_id}"),
        Candidate(f"*:{escaped}", wildcard=True),
        Candidate(f"*{escaped}*", wildcard=True),
    ]
