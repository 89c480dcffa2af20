"""Tests for Settings validation."""

import pytest

from paperhub.core.config import DEFAULT_CACHE_TTL, Settings


def test_defaults():
    config = Settings(etherpad_api_key="secret")

    assert config.cache_ttl_seconds == DEFAULT_CACHE_TTL == 90 * 24 * 60 * 60
    assert config.github_api_url == "https://api.github.com"
    assert config.image_command == ["convert"]


def test_missing_etherpad_key_fails_in_production():
    with pytest.raises(ValueError, match="ETHERPAD_API_KEY"):
        Settings(app_env="production", etherpad_api_key="")


def test_missing_etherpad_key_only_warns_in_development():
    config = Settings(app_env="development", etherpad_api_key="")

    assert config.etherpad_api_key == ""


def test_non_positive_ttl_is_rejected():
    with pytest.raises(ValueError, match="CACHE_TTL_SECONDS"):
        Settings(etherpad_api_key="secret", cache_ttl_seconds=0)


def test_commands_from_environment(monkeypatch):
    monkeypatch.setenv("RENDER_COMMAND", '["pandoc", "--pdf-engine=xelatex"]')

    config = Settings(etherpad_api_key="secret")

    assert config.render_command == ["pandoc", "--pdf-engine=xelatex"]
