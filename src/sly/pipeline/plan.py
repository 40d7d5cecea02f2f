"""Parsing and validation of structured command plans."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, TypeVar

from sly.pipeline.models import (
    CommandPlan,
    ConfirmMode,
    Expectation,
    FailureSignal,
    PastePolicy,
    Severity,
)

REQUIRED_FIELDS: tuple[str, ...] = (
    "plan_id",
    "command",
    "args",
    "paste_policy",
    "confirm_mode",
    "created_at",
)
OPTIONAL_FIELDS: tuple[str, ...] = ("env", "stdin", "expectations", "failure_signals")
_KNOWN_FIELDS = frozenset(REQUIRED_FIELDS + OPTIONAL_FIELDS)
_EXPECTATION_FIELDS = frozenset({"pattern", "exit_code"})
_FAILURE_SIGNAL_FIELDS = frozenset({"pattern", "severity"})

_EnumT = TypeVar("_EnumT", bound=Enum)


class PlanErrorReason(str, Enum):
    """Why a plan document was rejected."""

    MALFORMED_SYNTAX = "malformed_syntax"
    UNKNOWN_FIELD = "unknown_field"
    MISSING_FIELD = "missing_field"
    INVALID_VALUE = "invalid_value"


class PlanError(ValueError):
    """Plan document failed parsing or schema validation."""

    def __init__(self, message: str, *, reason: PlanErrorReason) -> None:
        super().__init__(message)
        self.reason = reason


def parse_plan(json_text: str) -> CommandPlan:
    """Parse and validate a plan document.

    Raises `PlanError` on unparsable JSON, unknown keys, missing required
    keys, or values of the wrong type. Enum values are never coerced.
    """

    try:
        raw = json.loads(json_text)
    except (json.JSONDecodeError, TypeError) as error:
        raise PlanError(
            f"Plan is not valid JSON: {error}",
            reason=PlanErrorReason.MALFORMED_SYNTAX,
        ) from error
    if not isinstance(raw, dict):
        raise PlanError("Plan must be a JSON object.", reason=PlanErrorReason.MALFORMED_SYNTAX)

    _check_fields(raw, known=_KNOWN_FIELDS, required=REQUIRED_FIELDS, where="plan")

    return CommandPlan(
        plan_id=_non_empty_string(raw["plan_id"], "plan_id"),
        command=_command_name(raw["command"]),
        args=_string_list(raw["args"], "args"),
        paste_policy=_enum_value(PastePolicy, raw["paste_policy"], "paste_policy"),
        confirm_mode=_enum_value(ConfirmMode, raw["confirm_mode"], "confirm_mode"),
        created_at=_timestamp(raw["created_at"]),
        env=_env_mapping(raw.get("env")),
        stdin=_optional_string(raw.get("stdin"), "stdin"),
        expectations=_expectations(raw.get("expectations")),
        failure_signals=_failure_signals(raw.get("failure_signals")),
    )


def _check_fields(
    raw: dict[str, Any],
    *,
    known: frozenset[str],
    required: tuple[str, ...],
    where: str,
) -> None:
    unknown = sorted(key for key in raw if key not in known)
    if unknown:
        raise PlanError(
            f"{where} contains unknown fields: {', '.join(unknown)}",
            reason=PlanErrorReason.UNKNOWN_FIELD,
        )
    missing = [key for key in required if key not in raw]
    if missing:
        raise PlanError(
            f"{where} is missing required fields: {', '.join(missing)}",
            reason=PlanErrorReason.MISSING_FIELD,
        )


def _invalid(message: str) -> PlanError:
    return PlanError(message, reason=PlanErrorReason.INVALID_VALUE)


def _non_empty_string(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise _invalid(f"{name} must be a non-empty string.")
    return value


def _command_name(value: Any) -> str:
    command = _non_empty_string(value, "command")
    if any(char.isspace() for char in command):
        raise _invalid(f"command must be a bare executable name, got {command!r}.")
    return command


def _optional_string(value: Any, name: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise _invalid(f"{name} must be a string or null.")


def _string_list(value: Any, name: str) -> list[str]:
    if not isinstance(value, list):
        raise _invalid(f"{name} must be an array of strings.")
    for index, item in enumerate(value):
        if not isinstance(item, str):
            raise _invalid(f"{name}[{index}] must be a string.")
    return list(value)


def _env_mapping(value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _invalid("env must be an object of string values.")
    for name, item in value.items():
        if not name or not isinstance(item, str):
            raise _invalid(f"env[{name!r}] must be a string.")
    return dict(value)


def _enum_value(enum_type: type[_EnumT], value: Any, name: str) -> _EnumT:
    if not isinstance(value, str):
        raise _invalid(f"{name} must be a string.")
    try:
        return enum_type(value)
    except ValueError as error:
        allowed = ", ".join(str(item.value) for item in enum_type)
        raise _invalid(f"{name}={value!r} is not one of: {allowed}.") from error


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _timestamp(value: Any) -> int:
    if not _is_int(value) or value < 0:
        raise _invalid("created_at must be a non-negative integer (epoch milliseconds).")
    return value


def _entries(value: Any, name: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _invalid(f"{name} must be an array.")
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            raise _invalid(f"{name}[{index}] must be an object.")
    return value


def _expectations(value: Any) -> list[Expectation]:
    expectations: list[Expectation] = []
    for index, item in enumerate(_entries(value, "expectations")):
        where = f"expectations[{index}]"
        _check_fields(item, known=_EXPECTATION_FIELDS, required=("pattern",), where=where)
        exit_code = item.get("exit_code")
        if exit_code is not None and not _is_int(exit_code):
            raise _invalid(f"{where}.exit_code must be an integer or null.")
        expectations.append(
            Expectation(
                pattern=_pattern(item["pattern"], where),
                exit_code=exit_code,
            ),
        )
    return expectations


def _failure_signals(value: Any) -> list[FailureSignal]:
    signals: list[FailureSignal] = []
    for index, item in enumerate(_entries(value, "failure_signals")):
        where = f"failure_signals[{index}]"
        _check_fields(
            item,
            known=_FAILURE_SIGNAL_FIELDS,
            required=("pattern", "severity"),
            where=where,
        )
        signals.append(
            FailureSignal(
                pattern=_pattern(item["pattern"], where),
                severity=_enum_value(Severity, item["severity"], f"{where}.severity"),
            ),
        )
    return signals


def _pattern(value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise _invalid(f"{where}.pattern must be a string.")
    return value
