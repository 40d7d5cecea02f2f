"""Per-provider endpoints, headers, payload shapes and reply fields."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

from sly.pipeline.codec import escape_json_string
from sly.pipeline.models import Provider
from sly.pipeline.providers.base import ProviderSpec

if TYPE_CHECKING:
    from sly.config import Config

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
GEMINI_URL_TEMPLATE = (
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent?key={key}"
)

TEMPERATURE = 0.3
DEFAULT_MAX_OUTPUT_TOKENS = 256


def _anthropic_payload(model: str, system: str, user: str, max_tokens: int) -> str:
    return (
        f'{{"model":"{escape_json_string(model)}","max_tokens":{max_tokens},'
        f'"temperature":{TEMPERATURE},"system":"{escape_json_string(system)}",'
        f'"messages":[{{"role":"user","content":"{escape_json_string(user)}"}}]}}'
    )


def _gemini_payload(model: str, system: str, user: str, max_tokens: int) -> str:
    del model  # carried by the endpoint path
    return (
        f'{{"contents":[{{"role":"user","parts":[{{"text":"{escape_json_string(user)}"}}]}}],'
        f'"systemInstruction":{{"parts":[{{"text":"{escape_json_string(system)}"}}]}},'
        f'"generationConfig":{{"temperature":{TEMPERATURE},"maxOutputTokens":{max_tokens}}}}}'
    )


def _openai_payload(model: str, system: str, user: str, max_tokens: int) -> str:
    return (
        f'{{"model":"{escape_json_string(model)}",'
        f'"instructions":"{escape_json_string(system)}",'
        f'"input":"{escape_json_string(user)}",'
        f'"max_output_tokens":{max_tokens},"temperature":{TEMPERATURE}}}'
    )


def _ollama_payload(model: str, system: str, user: str, max_tokens: int) -> str:
    return (
        f'{{"model":"{escape_json_string(model)}","prompt":"{escape_json_string(user)}",'
        f'"system":"{escape_json_string(system)}","stream":false,'
        f'"options":{{"temperature":{TEMPERATURE},"num_predict":{max_tokens}}}}}'
    )


def _anthropic_headers(config: Config) -> dict[str, str]:
    return {
        "x-api-key": config.anthropic.api_key or "",
        "anthropic-version": ANTHROPIC_VERSION,
    }


def _openai_headers(config: Config) -> dict[str, str]:
    return {"Authorization": f"Bearer {config.openai.api_key or ''}"}


def _no_headers(config: Config) -> dict[str, str]:
    del config
    return {}


def _gemini_endpoint(config: Config) -> str:
    return GEMINI_URL_TEMPLATE.format(
        model=quote(config.gemini.model, safe=""),
        key=quote(config.gemini.api_key or "", safe=""),
    )


def _ollama_endpoint(config: Config) -> str:
    return f"{config.ollama.url.rstrip('/')}/api/generate"


PROVIDER_SPECS: dict[Provider, ProviderSpec] = {
    Provider.ANTHROPIC: ProviderSpec(
        name="anthropic",
        endpoint=lambda config: ANTHROPIC_URL,
        payload=_anthropic_payload,
        headers=_anthropic_headers,
        response_fields=("text",),
    ),
    Provider.GEMINI: ProviderSpec(
        name="gemini",
        endpoint=_gemini_endpoint,
        payload=_gemini_payload,
        headers=_no_headers,
        response_fields=("text",),
    ),
    Provider.OPENAI: ProviderSpec(
        name="openai",
        endpoint=lambda config: config.openai.url,
        payload=_openai_payload,
        headers=_openai_headers,
        # The raw Responses API envelope nests the reply under "text".
        response_fields=("output_text", "text"),
    ),
    Provider.OLLAMA: ProviderSpec(
        name="ollama",
        endpoint=_ollama_endpoint,
        payload=_ollama_payload,
        headers=_no_headers,
        response_fields=("response",),
    ),
}


def get_spec(provider: Provider) -> ProviderSpec:
    """Return the network spec for ``provider``; ``echo`` has none."""

    try:
        return PROVIDER_SPECS[provider]
    except KeyError as error:
        raise ValueError(f"Provider {provider.value!r} does not use the network.") from error


def encode_request(
    provider: Provider,
    model: str,
    system_prompt: str | bytes,
    user_query: str | bytes,
    *,
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
) -> str:
    """Build the JSON request body for ``provider``."""

    spec = get_spec(provider)
    return spec.payload(
        model,
        _as_text(system_prompt),
        _as_text(user_query),
        max_output_tokens,
    )


def _as_text(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="surrogateescape")
    return value
