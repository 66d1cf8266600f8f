import json

import pytest

from newsreader.clients.memory import MemoryStore
from newsreader.models.settings import Settings

DIGEST_RAW = '<p>Hello digest readers</p><img src="t.gif" width="1" height="1">'


def seed_data():
    """Records in each of the shapes found in production stores."""
    return {
        "newsletter_ids": ["1700000000002", "1700000000001"],
        # Current shape: JSON string with every content field
        "newsletter:1700000000001": json.dumps(
            {
                "id": "1700000000001",
                "subject": "Weekly Digest",
                "sender": "digest@example.com",
                "date": "2023-11-14T22:13:20.001Z",
                "content": "<p>Hello digest readers</p>",
                "cleanContent": "<p>Hello digest readers</p>",
                "rawContent": DIGEST_RAW,
                "metadata": {"processingVersion": "2.0", "processedAt": "2023-11-14T22:13:21.000Z"},
            }
        ),
        "newsletter:meta:1700000000001": {"isRead": "1", "tags": '["tech", "weekly"]'},
        # Older webhook shape using from/body and an RFC 2822 date
        "newsletter:1700000000002": json.dumps(
            {
                "subject": "Fresh Edition",
                "from": "news@example.com",
                "date": "Tue, 14 Nov 2023 23:00:00 +0000",
                "body": "<p>Latest news</p>",
            }
        ),
        # Hash-stored article
        "article:hash-1": {
            "title": "Hash Article",
            "content": "<p>Stored as hash</p>",
            "sender": "hash@example.com",
            "publishDate": "2023-11-01T00:00:00.000Z",
            "isRead": "true",
            "tags": '["a"]',
            "metadata": '{"archived": true}',
        },
        "newsletter:hashed": {"subject": "Hashed", "content": "<p>Hashed body</p>"},
        # Unprefixed legacy key
        "legacy-1": json.dumps(
            {
                "subject": "Legacy Note",
                "from": "old@example.com",
                "body": "<p>Legacy body</p>",
                "date": "1699999999000",
            }
        ),
        "custom:odd-id": json.dumps({"title": "Found by wildcard", "content": "<p>odd</p>"}),
        "newsletter:broken": "not json {",
    }


@pytest.fixture
def seeded_store():
    return MemoryStore(seed_data())


@pytest.fixture
def dev_settings():
    return Settings(_env_file=None, environment="development", store_backend="memory")


@pytest.fixture
def prod_settings():
    return Settings(_env_file=None, environment="production", store_backend="memory")
