"""Domain models for the query-and-validate pipeline."""

from __future__ import annotations

import json
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


class Provider(str, Enum):
    """Supported LLM backends."""

    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    OPENAI = "openai"
    OLLAMA = "ollama"
    ECHO = "echo"

    @property
    def requires_key(self) -> bool:
        return self in {Provider.ANTHROPIC, Provider.GEMINI, Provider.OPENAI}


class ErrorKind(str, Enum):
    """Normalized failure kinds used for fallback policy and user messages."""

    MISSING_API_KEY = "missing_api_key"
    INVALID_API_KEY = "invalid_api_key"
    BAD_RESPONSE = "bad_response"
    PROVIDER_ERROR = "provider_error"
    NETWORK = "network"
    UNAVAILABLE = "unavailable"
    VALIDATION_FAILED = "validation_failed"
    UNSUPPORTED_SHELL = "unsupported_shell"
    NO_HOME_DIR = "no_home_dir"


TRANSIENT_ERROR_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.UNAVAILABLE})


class QueryError(RuntimeError):
    """Pipeline failure with a normalized kind."""

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        last_reason: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.last_reason = last_reason

    @property
    def transient(self) -> bool:
        """Whether the failure happened at transport level."""

        return self.kind in TRANSIENT_ERROR_KINDS


class PastePolicy(str, Enum):
    """Whether a generated command may be inserted into the shell buffer."""

    AUTO = "auto"
    NEEDS_CONFIRM = "needs_confirm"
    NEVER = "never"


class ConfirmMode(str, Enum):
    """Execution gating for a generated command."""

    AUTO = "auto"
    PREVIEW = "preview"
    REJECT = "reject"


class Severity(str, Enum):
    """Severity attached to a failure signal."""

    WARNING = "warning"
    ERR = "err"
    CRITICAL = "critical"


@dataclass(frozen=True, slots=True)
class Expectation:
    """Success-validation hint for a plan."""

    pattern: str
    exit_code: int | None = None


@dataclass(frozen=True, slots=True)
class FailureSignal:
    """Failure-detection hint for a plan."""

    pattern: str
    severity: Severity


@dataclass(frozen=True, slots=True)
class CommandPlan:
    """Validated description of one shell action.

    Collections are frozen on construction: sequences become tuples and
    ``env`` a read-only mapping.
    """

    plan_id: str
    command: str
    args: tuple[str, ...]
    paste_policy: PastePolicy
    confirm_mode: ConfirmMode
    created_at: int
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    stdin: str | None = None
    expectations: tuple[Expectation, ...] = ()
    failure_signals: tuple[FailureSignal, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))
        object.__setattr__(self, "expectations", tuple(self.expectations))
        object.__setattr__(self, "failure_signals", tuple(self.failure_signals))

    def to_dict(self) -> dict[str, Any]:
        """Serialize the plan back into its wire schema."""

        return {
            "plan_id": self.plan_id,
            "command": self.command,
            "args": list(self.args),
            "env": dict(self.env),
            "stdin": self.stdin,
            "paste_policy": self.paste_policy.value,
            "confirm_mode": self.confirm_mode.value,
            "expectations": [
                {"pattern": item.pattern, "exit_code": item.exit_code}
                for item in self.expectations
            ],
            "failure_signals": [
                {"pattern": item.pattern, "severity": item.severity.value}
                for item in self.failure_signals
            ],
            "created_at": self.created_at,
        }

    def to_json(self, *, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    def shell_line(self) -> str:
        """Render the plan as one line a POSIX shell can run."""

        parts = [f"{name}={shlex.quote(value)}" for name, value in self.env.items()]
        parts.append(shlex.join([self.command, *self.args]))
        line = " ".join(parts)
        if self.stdin is not None:
            line = f"printf '%s' {shlex.quote(self.stdin)} | {line}"
        return line
