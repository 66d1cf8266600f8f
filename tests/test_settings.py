"""Tests for settings and configuration."""

import pytest
from pydantic import ValidationError

from newsreader.models.settings import Settings

ENV_VARS = [
    "KV_REST_API_URL",
    "KV_REST_API_TOKEN",
    "REDIS_URL",
    "STORE_BACKEND",
    "ENVIRONMENT",
    "DEBUG",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_settings_defaults():
    """Test that settings have proper default values."""
    settings = Settings(_env_file=None)
    assert settings.debug is False
    assert settings.log_level == "INFO"
    assert settings.environment == "production"
    assert settings.store_backend == "auto"
    assert settings.redis_url is None
    assert settings.is_development is False
    assert settings.has_upstash_credentials is False


def test_settings_from_env(monkeypatch):
    """Test that settings are loaded from environment variables."""
    monkeypatch.setenv("KV_REST_API_URL", "https://kv.example.com")
    monkeypatch.setenv("KV_REST_API_TOKEN", "token")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    settings = Settings(_env_file=None)
    assert settings.has_upstash_credentials is True
    assert settings.is_development is True
    assert settings.log_level == "DEBUG"


def test_settings_case_insensitive(monkeypatch):
    monkeypatch.setenv("redis_url", "redis://localhost:6379/0")
    assert Settings(_env_file=None).redis_url == "redis://localhost:6379/0"


def test_debug_enables_development_mode():
    assert Settings(_env_file=None, debug=True).is_development is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"store_backend": "upstash"},
        {"store_backend": "upstash", "kv_rest_api_url": "https://kv.example.com"},
        {"store_backend": "redis"},
    ],
)
def test_explicit_backend_requires_credentials(kwargs):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **kwargs)


@pytest.mark.parametrize("timeout", [0.5, 61])
def test_timeout_bounds(timeout):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, kv_timeout=timeout)


def test_default_page_size_clamped():
    settings = Settings(_env_file=None, default_page_size=50, max_page_size=20)
    assert settings.default_page_size == 20
