"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field

import pytest

from sly.config import AnthropicSettings, Config, GeminiSettings, OpenAISettings
from sly.http.transport import TransportResponse
from sly.pipeline.models import Provider, QueryError

VALID_KEY = "sk-test-0123456789abcdef"

_SLY_ENV_VARS = (
    "SLY_PROVIDER",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
    "SLY_ANTHROPIC_MODEL",
    "SLY_GEMINI_MODEL",
    "SLY_OPENAI_MODEL",
    "SLY_OPENAI_URL",
    "SLY_OLLAMA_MODEL",
    "SLY_OLLAMA_URL",
    "SLY_PROMPT_EXTEND",
    "SLY_MAX_RETRIES",
    "SLY_RETRY_BACKOFF_SECONDS",
    "SLY_RETRY_MAX_BACKOFF_SECONDS",
)


@dataclass
class StubTransport:
    """Replays canned responses (or raises canned errors) in order.

    The last outcome repeats once the list is exhausted.
    """

    outcomes: list[TransportResponse | QueryError]
    calls: list[tuple[str, dict[str, str], str]] = field(default_factory=list)

    def post_json(
        self,
        url: str,
        headers: Mapping[str, str],
        body: str | bytes,
    ) -> TransportResponse:
        text = body.decode("utf-8") if isinstance(body, bytes) else body
        self.calls.append((url, dict(headers), text))
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, QueryError):
            raise outcome
        return outcome

    def sent_json(self, index: int = -1) -> dict[str, object]:
        return json.loads(self.calls[index][2])


@pytest.fixture()
def make_transport():
    def _make(*outcomes: TransportResponse | QueryError) -> StubTransport:
        return StubTransport(outcomes=list(outcomes))

    return _make


@pytest.fixture()
def anthropic_config() -> Config:
    return Config(provider=Provider.ANTHROPIC, anthropic=AnthropicSettings(api_key=VALID_KEY))


@pytest.fixture()
def keyed_config() -> Config:
    """Config with a valid key for every key-requiring provider."""

    return Config(
        provider=Provider.ANTHROPIC,
        anthropic=AnthropicSettings(api_key=VALID_KEY),
        gemini=GeminiSettings(api_key=VALID_KEY),
        openai=OpenAISettings(api_key=VALID_KEY),
    )


@pytest.fixture()
def clean_env(monkeypatch):
    """Remove sly-related variables inherited from the developer shell."""

    for name in _SLY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
