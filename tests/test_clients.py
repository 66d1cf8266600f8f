import pytest

from newsreader.clients import MemoryStore, create_store
from newsreader.clients.redis_store import RedisStore
from newsreader.clients.upstash import UpstashStore
from newsreader.models.settings import Settings


def make_settings(**kwargs):
    kwargs.setdefault("kv_rest_api_url", None)
    kwargs.setdefault("kv_rest_api_token", None)
    kwargs.setdefault("redis_url", None)
    return Settings(_env_file=None, **kwargs)


def test_auto_prefers_upstash():
    store = create_store(
        make_settings(
            kv_rest_api_url="https://kv.example.com",
            kv_rest_api_token="token",
            redis_url="redis://localhost:6379",
        )
    )
    assert isinstance(store, UpstashStore)


def test_auto_uses_redis_url():
    store = create_store(make_settings(redis_url="redis://localhost:6379/0"))
    assert isinstance(store, RedisStore)


def test_auto_falls_back_to_memory():
    assert isinstance(create_store(make_settings()), MemoryStore)


def test_explicit_memory_ignores_credentials():
    store = create_store(make_settings(store_backend="memory", redis_url="redis://localhost"))
    assert store.backend_name == "memory"
