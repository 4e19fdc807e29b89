from __future__ import annotations

import pytest

from pydantic import ValidationError

from core.constants import PROVIDERS, SUPPORTED_PROVIDERS, Settings


def _settings(**overrides: object) -> Settings:
    return Settings(app_env="test", **overrides)


def test_provider_table_covers_every_vendor() -> None:
    assert SUPPORTED_PROVIDERS == {"openai", "anthropic", "google"}
    for spec in PROVIDERS.values():
        assert not spec.default_base_url.endswith("/")
        assert spec.history_token_budget > 0


def test_api_key_for_each_provider() -> None:
    settings = _settings(openai_api_key="o", anthropic_api_key="a", google_ai_api_key="g")

    assert settings.api_key_for("openai") == "o"
    assert settings.api_key_for("anthropic") == "a"
    assert settings.api_key_for("google") == "g"
    assert settings.api_key_for("mistral") is None


@pytest.mark.parametrize("blank", ["", "   ", None])
def test_blank_key_is_missing(blank: str | None) -> None:
    assert _settings(openai_api_key=blank).api_key_for("openai") is None


def test_base_url_trailing_slash_is_removed() -> None:
    settings = _settings(openai_base_url="https://proxy.internal/openai/")

    assert settings.base_url_for("openai") == "https://proxy.internal/openai"


def test_invalid_app_env_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(app_env="staging")


def test_inverted_pool_bounds_are_rejected() -> None:
    with pytest.raises(ValidationError):
        _settings(db_pool_min_size=20, db_pool_max_size=5)


def test_provider_timeout_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        _settings(provider_timeout=0)


def test_cors_lists_are_split() -> None:
    settings = _settings(cors_allow_origins="https://a.example, https://b.example,")

    assert settings.cors_origins_list == ["https://a.example", "https://b.example"]
