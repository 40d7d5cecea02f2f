"""Provider query orchestration with echo fallback and plan retries."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable

from sly.config import Config
from sly.context import build_context
from sly.http.transport import HttpTransport, Transport
from sly.pipeline.codec import collapse_single_line, extract_field
from sly.pipeline.models import CommandPlan, ErrorKind, Provider, QueryError
from sly.pipeline.plan import PlanError, parse_plan
from sly.pipeline.prompts import build_system_prompt
from sly.pipeline.providers import echo_reply, encode_request, get_spec
from sly.pipeline.providers.registry import DEFAULT_MAX_OUTPUT_TOKENS
from sly.pipeline.snapshot import TerminalSnapshot, format_snapshot

logger = logging.getLogger(__name__)

MIN_API_KEY_LENGTH = 10
PLAN_MAX_OUTPUT_TOKENS = 1024

ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.MISSING_API_KEY: "API Error: Missing API key",
    ErrorKind.INVALID_API_KEY: "API Error: Invalid API key",
    ErrorKind.PROVIDER_ERROR: "API Error: Invalid request or API key",
    ErrorKind.BAD_RESPONSE: "Error: Unable to parse response",
    ErrorKind.NETWORK: "Error: Failed to connect to provider",
    ErrorKind.UNAVAILABLE: "Error: Failed to connect to provider",
}
UNKNOWN_ERROR_MESSAGE = "Error: Unknown"


def failure_message(kind: ErrorKind) -> str:
    """User-readable message for an unrecovered failure."""

    return ERROR_MESSAGES.get(kind, UNKNOWN_ERROR_MESSAGE)


def validate_config(config: Config) -> None:
    """Fail fast when a key-requiring provider has no plausible key."""

    provider = config.provider
    if not provider.requires_key:
        return
    key = config.api_key()
    if key is None:
        raise QueryError(
            f"Provider {provider.value!r} requires an API key.",
            kind=ErrorKind.MISSING_API_KEY,
        )
    if len(key.strip()) < MIN_API_KEY_LENGTH:
        raise QueryError(
            f"API key for {provider.value!r} is too short to be valid.",
            kind=ErrorKind.INVALID_API_KEY,
        )


def query_provider(
    config: Config,
    query: str,
    system_prompt: str,
    *,
    transport: Transport,
    structured: bool = False,
) -> str:
    """Send one request to the configured provider and return its reply text.

    Raises `QueryError`. Legacy replies are collapsed to a single line; plan
    replies are returned untouched.
    """

    if config.provider == Provider.ECHO:
        return echo_reply(query, structured=structured)

    validate_config(config)
    spec = get_spec(config.provider)
    body = encode_request(
        config.provider,
        config.model(),
        system_prompt,
        query,
        max_output_tokens=PLAN_MAX_OUTPUT_TOKENS if structured else DEFAULT_MAX_OUTPUT_TOKENS,
    )
    response = transport.post_json(spec.endpoint(config), spec.headers(config), body)

    for field_name in spec.response_fields:
        value = extract_field(response.body, field_name)
        if value is not None:
            return value if structured else collapse_single_line(value)

    if b'"error"' in response.body:
        raise QueryError(
            f"{spec.name} rejected the request (HTTP {response.status}).",
            kind=ErrorKind.PROVIDER_ERROR,
        )
    raise QueryError(
        f"{spec.name} reply has no {'/'.join(spec.response_fields)} field "
        f"(HTTP {response.status}).",
        kind=ErrorKind.BAD_RESPONSE,
    )


class CommandGenerator:
    """Caller-facing entry point for command and plan generation."""

    def __init__(
        self,
        *,
        transport: Transport | None = None,
        context_builder: Callable[[], str] = build_context,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._transport = transport
        self._owns_transport = transport is None
        self._context_builder = context_builder
        self._sleep = sleep
        self._random = rng or random.Random()  # noqa: S311

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            self._transport = HttpTransport()
        return self._transport

    def generate(
        self,
        query: str,
        config: Config,
        *,
        context: str | None = None,
        snapshot: TerminalSnapshot | str | None = None,
        structured: bool = False,
    ) -> str:
        """Return the text to act on: a command, a plan document or a failure message.

        Never raises `QueryError`. A transport failure is retried once against
        the echo provider; the original error is reported if that fails too.
        """

        reply, _ = self._attempt(
            query,
            config,
            context=context,
            snapshot=snapshot,
            structured=structured,
        )
        return reply

    def _attempt(
        self,
        query: str,
        config: Config,
        *,
        context: str | None,
        snapshot: TerminalSnapshot | str | None,
        structured: bool,
    ) -> tuple[str, QueryError | None]:
        """Like `generate`, but also return the unrecovered error behind a failure message."""

        try:
            validate_config(config)
        except QueryError as error:
            logger.warning("Configuration rejected: %s", error)
            return failure_message(error.kind), error

        system_prompt = self._system_prompt(
            config,
            context=context,
            snapshot=snapshot,
            structured=structured,
        )
        try:
            reply = query_provider(
                config,
                query,
                system_prompt,
                transport=self.transport,
                structured=structured,
            )
        except QueryError as error:
            return self._recover(
                error,
                query=query,
                config=config,
                system_prompt=system_prompt,
                structured=structured,
            )
        return reply, None

    def generate_plan(
        self,
        query: str,
        config: Config,
        *,
        max_retries: int | None = None,
        context: str | None = None,
        snapshot: TerminalSnapshot | str | None = None,
    ) -> CommandPlan:
        """Query the model until its reply validates as a `CommandPlan`.

        Every attempt is a fresh model query. Raises `QueryError` with kind
        ``validation_failed`` once all attempts are spent, or a credential
        error before any attempt is made.
        """

        attempts = config.retry.max_retries if max_retries is None else max_retries
        if attempts < 1:
            raise ValueError("max_retries must be >= 1.")
        validate_config(config)
        if context is None:
            context = self._build_context()

        last_error: PlanError | QueryError | None = None
        for attempt in range(1, attempts + 1):
            if attempt > 1:
                self._wait_before_retry(config, retry_number=attempt - 1)
            reply, failure = self._attempt(
                query,
                config,
                context=context,
                snapshot=snapshot,
                structured=True,
            )
            if failure is not None:
                last_error = failure
                logger.warning(
                    "Plan attempt %d/%d failed (%s): %s",
                    attempt,
                    attempts,
                    failure.kind.value,
                    reply,
                )
                continue
            try:
                plan = parse_plan(reply)
            except PlanError as error:
                last_error = error
                logger.warning(
                    "Plan attempt %d/%d rejected (%s): %s",
                    attempt,
                    attempts,
                    error.reason.value,
                    error,
                )
                continue
            logger.debug("Plan %s accepted on attempt %d", plan.plan_id, attempt)
            return plan

        raise QueryError(
            f"Plan validation failed after {attempts} attempts: {last_error}",
            kind=ErrorKind.VALIDATION_FAILED,
            last_reason=last_error,
        )

    def close(self) -> None:
        if self._owns_transport and isinstance(self._transport, HttpTransport):
            self._transport.close()

    def __enter__(self) -> CommandGenerator:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _recover(
        self,
        error: QueryError,
        *,
        query: str,
        config: Config,
        system_prompt: str,
        structured: bool,
    ) -> tuple[str, QueryError | None]:
        if error.transient and config.provider != Provider.ECHO:
            logger.warning(
                "Provider %s unreachable (%s); falling back to echo",
                config.provider.value,
                error,
            )
            try:
                reply = query_provider(
                    config.with_provider(Provider.ECHO),
                    query,
                    system_prompt,
                    transport=self.transport,
                    structured=structured,
                )
                return reply, None
            except QueryError as fallback_error:
                logger.warning("Echo fallback failed: %s", fallback_error)

        logger.warning("Query failed (%s): %s", error.kind.value, error)
        return failure_message(error.kind), error

    def _system_prompt(
        self,
        config: Config,
        *,
        context: str | None,
        snapshot: TerminalSnapshot | str | None,
        structured: bool,
    ) -> str:
        snapshot_text = (
            format_snapshot(snapshot) if isinstance(snapshot, TerminalSnapshot) else snapshot
        )
        return build_system_prompt(
            context if context is not None else self._build_context(),
            extend=config.prompt_extend,
            snapshot_text=snapshot_text,
            structured=structured,
        )

    def _build_context(self) -> str:
        try:
            return self._context_builder()
        except OSError as error:
            logger.warning("Context probe failed: %s", error)
            return "Current directory: unknown"

    def _wait_before_retry(self, config: Config, *, retry_number: int) -> None:
        max_delay = min(
            config.retry.backoff_max_seconds,
            config.retry.backoff_base_seconds * (2 ** max(retry_number - 1, 0)),
        )
        if max_delay <= 0:
            return
        self._sleep(self._random.uniform(0, max_delay))
