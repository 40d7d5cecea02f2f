from __future__ import annotations

import allure
import pytest

from sly.config import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_OLLAMA_URL,
    DEFAULT_OPENAI_URL,
    Config,
    parse_provider,
)
from sly.pipeline.models import Provider

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment"),
]

KEY = "sk-test-0123456789abcdef"


def test_defaults_to_ollama_without_keys() -> None:
    config = Config.from_env({})

    assert config.provider == Provider.OLLAMA
    assert config.ollama.url == DEFAULT_OLLAMA_URL
    assert config.openai.url == DEFAULT_OPENAI_URL
    assert config.anthropic.model == DEFAULT_ANTHROPIC_MODEL
    assert config.retry.max_retries == DEFAULT_MAX_RETRIES
    assert config.prompt_extend is None


@pytest.mark.parametrize(
    ("env", "expected"),
    [
        ({"GEMINI_API_KEY": KEY}, Provider.GEMINI),
        ({"OPENAI_API_KEY": KEY, "GEMINI_API_KEY": KEY}, Provider.OPENAI),
        ({"ANTHROPIC_API_KEY": KEY, "OPENAI_API_KEY": KEY}, Provider.ANTHROPIC),
        ({"ANTHROPIC_API_KEY": "  ", "GEMINI_API_KEY": KEY}, Provider.GEMINI),
    ],
)
def test_detects_provider_from_available_keys(env: dict[str, str], expected: Provider) -> None:
    assert Config.from_env(env).provider == expected


def test_explicit_provider_wins_over_detected_keys() -> None:
    config = Config.from_env({"SLY_PROVIDER": " Echo ", "ANTHROPIC_API_KEY": KEY})

    assert config.provider == Provider.ECHO
    assert config.anthropic.api_key == KEY


def test_unknown_provider_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unsupported provider"):
        Config.from_env({"SLY_PROVIDER": "mistral"})


def test_reads_models_urls_and_prompt_extension() -> None:
    config = Config.from_env(
        {
            "SLY_PROVIDER": "openai",
            "OPENAI_API_KEY": KEY,
            "SLY_OPENAI_MODEL": "gpt-4o-mini",
            "SLY_OPENAI_URL": "http://localhost:8080/v1/responses",
            "SLY_OLLAMA_MODEL": "qwen2.5-coder",
            "SLY_PROMPT_EXTEND": "Always use GNU coreutils flags.",
        },
    )

    assert config.model() == "gpt-4o-mini"
    assert config.api_key() == KEY
    assert config.openai.url == "http://localhost:8080/v1/responses"
    assert config.model(Provider.OLLAMA) == "qwen2.5-coder"
    assert config.prompt_extend == "Always use GNU coreutils flags."


def test_reads_retry_policy() -> None:
    config = Config.from_env(
        {
            "SLY_MAX_RETRIES": "5",
            "SLY_RETRY_BACKOFF_SECONDS": "0.5",
            "SLY_RETRY_MAX_BACKOFF_SECONDS": "2",
        },
    )

    assert config.retry.max_retries == 5
    assert config.retry.backoff_base_seconds == 0.5
    assert config.retry.backoff_max_seconds == 2.0


@pytest.mark.parametrize(
    ("env", "message"),
    [
        ({"SLY_MAX_RETRIES": "0"}, "SLY_MAX_RETRIES must be >= 1"),
        ({"SLY_MAX_RETRIES": "three"}, "Invalid integer value for SLY_MAX_RETRIES"),
        ({"SLY_RETRY_BACKOFF_SECONDS": "-1"}, "SLY_RETRY_BACKOFF_SECONDS must be >= 0"),
        ({"SLY_RETRY_MAX_BACKOFF_SECONDS": "soon"}, "Invalid number value"),
    ],
)
def test_invalid_retry_values_are_rejected(env: dict[str, str], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        Config.from_env(env)


def test_with_provider_returns_copy() -> None:
    config = Config.from_env({"ANTHROPIC_API_KEY": KEY})

    echo = config.with_provider(Provider.ECHO)

    assert echo.provider == Provider.ECHO
    assert echo.model() == "echo"
    assert echo.api_key() is None
    assert config.provider == Provider.ANTHROPIC


def test_from_env_reads_process_environment(clean_env) -> None:
    clean_env.setenv("OPENAI_API_KEY", KEY)

    assert Config.from_env().provider == Provider.OPENAI


def test_parse_provider_normalizes_case() -> None:
    assert parse_provider("GEMINI") == Provider.GEMINI
