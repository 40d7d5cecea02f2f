"""Blocking JSON POST transport with fixed timeouts."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

import httpx

from sly import __version__
from sly.pipeline.models import ErrorKind, QueryError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 5.0
TOTAL_TIMEOUT_SECONDS = 15.0
DEFAULT_USER_AGENT = f"sly/{__version__}"


@dataclass(slots=True)
class TransportResponse:
    """Status and raw body of one provider call."""

    status: int
    body: bytes


class Transport(Protocol):
    """Protocol implemented by request transports."""

    def post_json(
        self,
        url: str,
        headers: Mapping[str, str],
        body: str | bytes,
    ) -> TransportResponse:
        """POST a JSON body and return the raw response."""


class HttpTransport:
    """httpx-backed transport.

    Transport-level failures raise `QueryError` with kind ``network`` (timeouts,
    refused or dropped connections) or ``unavailable`` (the request could not
    be issued at all).
    """

    def __init__(
        self,
        *,
        connect_timeout_seconds: float = CONNECT_TIMEOUT_SECONDS,
        total_timeout_seconds: float = TOTAL_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._total_timeout_seconds = total_timeout_seconds
        self._timeout = httpx.Timeout(total_timeout_seconds, connect=connect_timeout_seconds)
        self._client = httpx.Client(
            timeout=self._timeout,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    def post_json(
        self,
        url: str,
        headers: Mapping[str, str],
        body: str | bytes,
    ) -> TransportResponse:
        content = body.encode("utf-8") if isinstance(body, str) else body
        request_headers = {"Content-Type": "application/json", **headers}
        deadline = time.monotonic() + self._total_timeout_seconds
        try:
            with self._client.stream(
                "POST",
                url,
                content=content,
                headers=request_headers,
            ) as response:
                chunks: list[bytes] = []
                self._check_deadline(deadline, url)
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    self._check_deadline(deadline, url)
        except (httpx.TimeoutException, httpx.NetworkError) as error:
            logger.warning("Network error posting to %s: %s", _redact(url), error)
            raise QueryError(f"Network error: {error}", kind=ErrorKind.NETWORK) from error
        except (httpx.HTTPError, httpx.InvalidURL) as error:
            logger.warning("Provider unavailable at %s: %s", _redact(url), error)
            raise QueryError(
                f"Provider unavailable: {error}",
                kind=ErrorKind.UNAVAILABLE,
            ) from error

        if not response.is_success:
            logger.debug("Provider %s answered HTTP %d", _redact(url), response.status_code)
        return TransportResponse(status=response.status_code, body=b"".join(chunks))

    def _check_deadline(self, deadline: float, url: str) -> None:
        """Raise a network error once the whole-request budget is spent."""

        if time.monotonic() <= deadline:
            return
        logger.warning(
            "Provider %s exceeded the %.1fs total timeout",
            _redact(url),
            self._total_timeout_seconds,
        )
        raise QueryError(
            f"Request exceeded {self._total_timeout_seconds}s total timeout",
            kind=ErrorKind.NETWORK,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _redact(url: str) -> str:
    # Gemini carries its key in the query string.
    return url.split("?", 1)[0]
