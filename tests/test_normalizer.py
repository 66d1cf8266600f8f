import pytest

from newsreader.core.normalizer import (
    as_bool,
    as_tags,
    decode_json_object,
    first_present,
    first_valid_date,
    parse_metadata,
    to_article,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("1", True),
        ("true", True),
        ("TRUE", True),
        ("0", False),
        ("false", False),
        ("", False),
        (None, False),
        (True, True),
        (False, False),
        (1, True),
    ],
)
def test_as_bool(value, expected):
    assert as_bool(value) is expected


@pytest.mark.parametrize(
    "value,expected",
    [
        (["a", "b"], ["a", "b"]),
        ('["a", "b"]', ["a", "b"]),
        ("news", ["news"]),
        ("", []),
        (None, []),
        (["a", None, ""], ["a"]),
    ],
)
def test_as_tags(value, expected):
    assert as_tags(value) == expected


def test_decode_json_object():
    assert decode_json_object('{"a": 1}') == {"a": 1}
    assert decode_json_object({"a": 1}) == {"a": 1}
    assert decode_json_object("[1]") is None
    assert decode_json_object("{broken") is None
    assert decode_json_object(None) is None


def test_parse_metadata_ignores_garbage():
    assert parse_metadata({"metadata": '{"isRead": true}'}) == {"isRead": True}
    assert parse_metadata({"metadata": "garbage"}) == {}
    assert parse_metadata({}) == {}


def test_first_present_skips_empty_values():
    record = {"content": "", "cleanContent": None, "body": "<p>x</p>"}
    assert first_present(record, "content", "cleanContent", "body") == "<p>x</p>"
    assert first_present(record, "missing") is None


def test_first_valid_date_skips_unparseable_values():
    record = {"publishDate": "garbage", "date": "", "receivedAt": "2023-11-14T22:13:20.000Z"}
    assert first_valid_date(record, "publishDate", "date", "receivedAt") == "2023-11-14T22:13:20.000Z"
    assert first_valid_date(record, "publishDate") is None


class TestToArticle:
    def test_current_shape(self):
        record = {
            "id": "1",
            "title": "Title",
            "subject": "Subject",
            "content": "<p>c</p>",
            "sender": "a@b.c",
            "publishDate": "2023-11-14T22:13:20.000Z",
            "tags": ["x"],
            "imageUrl": "https://img/1.png",
        }
        article = to_article(record, "newsletter:1")
        assert article.id == "1"
        assert article.key == "newsletter:1"
        assert article.title == "Title"
        assert article.content == "<p>c</p>"
        assert article.publish_date == "2023-11-14T22:13:20.000Z"
        assert article.tags == ["x"]
        assert article.image_url == "https://img/1.png"
        assert article.is_read is False

    def test_legacy_shape(self):
        record = {
            "subject": "Legacy",
            "from": "old@example.com",
            "body": "<p>b</p>",
            "date": "1699999999000",
        }
        article = to_article(record, "legacy-1")
        assert article.id == "legacy-1"
        assert article.title == "Legacy"
        assert article.sender == "old@example.com"
        assert article.content == "<p>b</p>"
        assert article.publish_date == "2023-11-14T22:13:19.000Z"

    def test_hash_shape(self):
        record = {
            "title": "Hash",
            "isRead": "true",
            "tags": '["a"]',
            "metadata": {"archived": True},
        }
        article = to_article(record, "article:hash-1")
        assert article.id == "hash-1"
        assert article.is_read is True
        assert article.is_archived is True
        assert article.tags == ["a"]

    def test_invalid_publish_date_uses_next_field(self):
        article = to_article(
            {"publishDate": "garbage", "date": "2023-11-14T22:13:20.000Z"}, "newsletter:dated"
        )
        assert article.publish_date == "2023-11-14T22:13:20.000Z"

    def test_defaults(self):
        article = to_article({}, "newsletter:empty")
        assert article.title == "Untitled Article"
        assert article.sender == "Unknown Sender"
        assert article.content == ""
        assert article.tags == []
        assert article.image_url is None
        assert article.publish_date.endswith("Z")

    def test_fallbacks_from_metadata_and_images(self):
        record = {
            "cleanContent": "<p>clean</p>",
            "images": ["https://img/a.png", "https://img/b.png"],
            "metadata": '{"tags": ["m"], "isRead": true}',
        }
        article = to_article(record, "newsletter:x")
        assert article.content == "<p>clean</p>"
        assert article.image_url == "https://img/a.png"
        assert article.tags == ["m"]
        assert article.is_read is True

    def test_to_api_raw_payload(self):
        record = {"title": "T"}
        assert "_raw" not in to_article(record, "k").to_api()

        data = to_article(record, "k", include_raw=True).to_api()
        assert data["_raw"] == {"title": "T"}
        assert data["publishDate"]
        assert data["isRead"] is False
