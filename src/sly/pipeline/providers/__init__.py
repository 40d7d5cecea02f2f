"""Provider registry and request encoding."""

from sly.pipeline.providers.base import ProviderSpec
from sly.pipeline.providers.echo import echo_reply
from sly.pipeline.providers.registry import PROVIDER_SPECS, encode_request, get_spec

__all__ = [
    "PROVIDER_SPECS",
    "ProviderSpec",
    "echo_reply",
    "encode_request",
    "get_spec",
]
