"""Runtime configuration for provider selection and plan retries."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

from sly.pipeline.models import Provider

DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash-exp"
DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_OPENAI_URL = "https://api.openai.com/v1/responses"
DEFAULT_OLLAMA_MODEL = "llama3.2"
DEFAULT_OLLAMA_URL = "http://localhost:11434"

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 0.0
DEFAULT_RETRY_MAX_BACKOFF_SECONDS = 5.0

# Auto-detection order when SLY_PROVIDER is not set.
_KEYED_PROVIDER_PRIORITY: tuple[tuple[Provider, str], ...] = (
    (Provider.ANTHROPIC, "ANTHROPIC_API_KEY"),
    (Provider.OPENAI, "OPENAI_API_KEY"),
    (Provider.GEMINI, "GEMINI_API_KEY"),
)


@dataclass(slots=True)
class AnthropicSettings:
    """Anthropic Messages API settings."""

    api_key: str | None = None
    model: str = DEFAULT_ANTHROPIC_MODEL


@dataclass(slots=True)
class GeminiSettings:
    """Google Gemini generateContent settings."""

    api_key: str | None = None
    model: str = DEFAULT_GEMINI_MODEL


@dataclass(slots=True)
class OpenAISettings:
    """OpenAI Responses API settings."""

    api_key: str | None = None
    model: str = DEFAULT_OPENAI_MODEL
    url: str = DEFAULT_OPENAI_URL


@dataclass(slots=True)
class OllamaSettings:
    """Local Ollama server settings."""

    model: str = DEFAULT_OLLAMA_MODEL
    url: str = DEFAULT_OLLAMA_URL


@dataclass(slots=True)
class PlanRetrySettings:
    """Retry policy for structured plan generation."""

    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_base_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    backoff_max_seconds: float = DEFAULT_RETRY_MAX_BACKOFF_SECONDS


@dataclass(slots=True)
class Config:
    """Provider selection plus per-provider settings."""

    provider: Provider = Provider.ANTHROPIC
    anthropic: AnthropicSettings = field(default_factory=AnthropicSettings)
    gemini: GeminiSettings = field(default_factory=GeminiSettings)
    openai: OpenAISettings = field(default_factory=OpenAISettings)
    ollama: OllamaSettings = field(default_factory=OllamaSettings)
    prompt_extend: str | None = None
    retry: PlanRetrySettings = field(default_factory=PlanRetrySettings)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        """Resolve configuration from an environment snapshot."""

        env = os.environ if environ is None else environ
        config = cls(
            provider=_resolve_provider(env),
            anthropic=AnthropicSettings(
                api_key=_env_opt(env, "ANTHROPIC_API_KEY"),
                model=env.get("SLY_ANTHROPIC_MODEL", DEFAULT_ANTHROPIC_MODEL),
            ),
            gemini=GeminiSettings(
                api_key=_env_opt(env, "GEMINI_API_KEY"),
                model=env.get("SLY_GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            ),
            openai=OpenAISettings(
                api_key=_env_opt(env, "OPENAI_API_KEY"),
                model=env.get("SLY_OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
                url=env.get("SLY_OPENAI_URL", DEFAULT_OPENAI_URL),
            ),
            ollama=OllamaSettings(
                model=env.get("SLY_OLLAMA_MODEL", DEFAULT_OLLAMA_MODEL),
                url=env.get("SLY_OLLAMA_URL", DEFAULT_OLLAMA_URL),
            ),
            prompt_extend=_env_opt(env, "SLY_PROMPT_EXTEND"),
            retry=PlanRetrySettings(
                max_retries=_env_int(env, "SLY_MAX_RETRIES", DEFAULT_MAX_RETRIES),
                backoff_base_seconds=_env_float(
                    env,
                    "SLY_RETRY_BACKOFF_SECONDS",
                    DEFAULT_RETRY_BACKOFF_SECONDS,
                ),
                backoff_max_seconds=_env_float(
                    env,
                    "SLY_RETRY_MAX_BACKOFF_SECONDS",
                    DEFAULT_RETRY_MAX_BACKOFF_SECONDS,
                ),
            ),
        )
        config.validate_retry()
        return config

    def with_provider(self, provider: Provider) -> Config:
        """Return a copy that targets another provider."""

        return replace(self, provider=provider)

    def api_key(self, provider: Provider | None = None) -> str | None:
        """Key configured for ``provider`` (defaults to the active one)."""

        target = provider or self.provider
        if target == Provider.ANTHROPIC:
            return self.anthropic.api_key
        if target == Provider.GEMINI:
            return self.gemini.api_key
        if target == Provider.OPENAI:
            return self.openai.api_key
        return None

    def model(self, provider: Provider | None = None) -> str:
        """Model identifier configured for ``provider``."""

        target = provider or self.provider
        if target == Provider.ANTHROPIC:
            return self.anthropic.model
        if target == Provider.GEMINI:
            return self.gemini.model
        if target == Provider.OPENAI:
            return self.openai.model
        if target == Provider.OLLAMA:
            return self.ollama.model
        return "echo"

    def validate_retry(self) -> None:
        """Raise configuration error if the retry policy is unusable."""

        if self.retry.max_retries < 1:
            raise ValueError("SLY_MAX_RETRIES must be >= 1.")
        if self.retry.backoff_base_seconds < 0:
            raise ValueError("SLY_RETRY_BACKOFF_SECONDS must be >= 0.")
        if self.retry.backoff_max_seconds < 0:
            raise ValueError("SLY_RETRY_MAX_BACKOFF_SECONDS must be >= 0.")


def parse_provider(name: str) -> Provider:
    """Parse a provider name, rejecting unknown values."""

    normalized = name.strip().lower()
    try:
        return Provider(normalized)
    except ValueError as error:
        supported = ", ".join(item.value for item in Provider)
        raise ValueError(
            f"Unsupported provider: {name!r}. Use one of: {supported}.",
        ) from error


def _resolve_provider(env: Mapping[str, str]) -> Provider:
    explicit = _env_opt(env, "SLY_PROVIDER")
    if explicit is not None:
        return parse_provider(explicit)
    for provider, key_name in _KEYED_PROVIDER_PRIORITY:
        if _env_opt(env, key_name) is not None:
            return provider
    return Provider.OLLAMA


def _env_opt(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = _env_opt(env, name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = _env_opt(env, name)
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from error
