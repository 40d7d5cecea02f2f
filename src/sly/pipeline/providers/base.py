"""Provider descriptor shared by the request registry."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sly.config import Config


@dataclass(frozen=True, slots=True)
class ProviderSpec:
    """Everything that differs between two network providers.

    ``response_fields`` are tried in order against the raw reply body.
    """

    name: str
    endpoint: Callable[[Config], str]
    payload: Callable[[str, str, str, int], str]
    headers: Callable[[Config], dict[str, str]]
    response_fields: tuple[str, ...]
