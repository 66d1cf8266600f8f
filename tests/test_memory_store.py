import pytest

from newsreader.clients.base import WrongTypeError
from newsreader.clients.memory import MemoryStore, glob_to_regex


@pytest.mark.parametrize(
    "pattern,key,matches",
    [
        ("newsletter:*", "newsletter:1", True),
        ("newsletter:*", "article:1", False),
        ("*:42", "article:42", True),
        ("*:42", "article:420", False),
        ("h?llo", "hello", True),
        ("h[ae]llo", "hallo", True),
        ("h[ae]llo", "hillo", False),
        ("h[^e]llo", "hallo", True),
        ("h[^e]llo", "hello", False),
        ("h[a-c]llo", "hbllo", True),
        ("*:a\\*b", "x:a*b", True),
        ("*:a\\*b", "x:aXb", False),
        ("a[]b", "a[]b", True),
    ],
)
def test_glob_to_regex(pattern, key, matches):
    assert bool(glob_to_regex(pattern).fullmatch(key)) is matches


@pytest.mark.asyncio
async def test_string_roundtrip_and_delete():
    store = MemoryStore()
    await store.set("k", "v")
    assert await store.get("k") == "v"
    assert await store.exists("k")
    assert await store.type("k") == "string"
    assert await store.delete("k", "missing") == 1
    assert await store.get("k") is None
    assert await store.type("k") == "none"


@pytest.mark.asyncio
async def test_wrong_type_errors():
    store = MemoryStore({"h": {"a": "1"}, "s": "text"})
    with pytest.raises(WrongTypeError):
        await store.get("h")
    with pytest.raises(WrongTypeError):
        await store.hgetall("s")
    with pytest.raises(WrongTypeError):
        await store.lpush("s", "x")


@pytest.mark.asyncio
async def test_hash_operations():
    store = MemoryStore()
    assert await store.hgetall("h") == {}
    assert await store.hset("h", {"a": "1", "b": "2"}) == 2
    assert await store.hset("h", {"a": "3", "c": "4"}) == 1
    assert await store.hgetall("h") == {"a": "3", "b": "2", "c": "4"}
    assert await store.type("h") == "hash"


@pytest.mark.asyncio
async def test_list_operations():
    store = MemoryStore()
    await store.lpush("ids", "a")
    assert await store.lpush("ids", "b", "c") == 3
    assert await store.lrange("ids", 0, -1) == ["c", "b", "a"]
    assert await store.lrange("ids", 0, 1) == ["c", "b"]
    assert await store.lrange("missing", 0, -1) == []


@pytest.mark.asyncio
async def test_keys_sorted(seeded_store):
    assert await seeded_store.keys("newsletter:meta:*") == ["newsletter:meta:1700000000001"]
    found = await seeded_store.keys("*")
    assert found == sorted(found)
    assert "legacy-1" in found
