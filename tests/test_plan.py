from __future__ import annotations

import json

import allure
import pytest

from sly.pipeline.models import (
    CommandPlan,
    ConfirmMode,
    Expectation,
    FailureSignal,
    PastePolicy,
    Severity,
)
from sly.pipeline.plan import PlanError, PlanErrorReason, parse_plan

pytestmark = [
    allure.epic("Query Pipeline"),
    allure.feature("Plan Validation"),
]


def _plan(**overrides: object) -> str:
    payload: dict[str, object] = {
        "plan_id": "test-123",
        "command": "echo",
        "args": ["Hello World!"],
        "env": {},
        "stdin": None,
        "paste_policy": "auto",
        "confirm_mode": "auto",
        "expectations": [],
        "failure_signals": [],
        "created_at": 1234567890,
    }
    payload.update(overrides)
    return json.dumps(payload)


def test_parse_plan_accepts_documented_example() -> None:
    plan = parse_plan(_plan())

    assert plan.plan_id == "test-123"
    assert plan.command == "echo"
    assert plan.args == ("Hello World!",)
    assert plan.paste_policy == PastePolicy.AUTO
    assert plan.confirm_mode == ConfirmMode.AUTO
    assert plan.created_at == 1234567890


def test_parse_plan_defaults_optional_fields() -> None:
    payload = json.loads(_plan())
    for name in ("env", "stdin", "expectations", "failure_signals"):
        del payload[name]

    plan = parse_plan(json.dumps(payload))

    assert dict(plan.env) == {}
    assert plan.stdin is None
    assert plan.expectations == ()
    assert plan.failure_signals == ()


def test_parse_plan_reads_expectations_and_failure_signals() -> None:
    plan = parse_plan(
        _plan(
            command="rm",
            args=["-r", "build"],
            env={"LC_ALL": "C"},
            stdin="y\n",
            paste_policy="needs_confirm",
            confirm_mode="preview",
            expectations=[{"pattern": "^$", "exit_code": 0}, {"pattern": "removed"}],
            failure_signals=[{"pattern": "Permission denied", "severity": "critical"}],
        ),
    )

    assert dict(plan.env) == {"LC_ALL": "C"}
    assert plan.stdin == "y\n"
    assert plan.paste_policy == PastePolicy.NEEDS_CONFIRM
    assert plan.confirm_mode == ConfirmMode.PREVIEW
    assert plan.expectations == (
        Expectation(pattern="^$", exit_code=0),
        Expectation(pattern="removed"),
    )
    assert plan.failure_signals == (
        FailureSignal(pattern="Permission denied", severity=Severity.CRITICAL),
    )


@pytest.mark.parametrize(
    "text",
    ["", "not json", "echo 'list files'", "[1, 2]", '"plan"', '{"plan_id": '],
)
def test_parse_plan_rejects_malformed_documents(text: str) -> None:
    with pytest.raises(PlanError) as excinfo:
        parse_plan(text)

    assert excinfo.value.reason == PlanErrorReason.MALFORMED_SYNTAX


def test_parse_plan_rejects_unknown_fields() -> None:
    with pytest.raises(PlanError, match="explanation") as excinfo:
        parse_plan(_plan(explanation="prints a greeting"))

    assert excinfo.value.reason == PlanErrorReason.UNKNOWN_FIELD


def test_parse_plan_rejects_missing_required_field() -> None:
    payload = json.loads(_plan())
    del payload["created_at"]

    with pytest.raises(PlanError, match="created_at") as excinfo:
        parse_plan(json.dumps(payload))

    assert excinfo.value.reason == PlanErrorReason.MISSING_FIELD


@pytest.mark.parametrize(
    "overrides",
    [
        {"paste_policy": "AUTO"},
        {"paste_policy": "sometimes"},
        {"confirm_mode": "ask"},
        {"confirm_mode": 1},
        {"command": ""},
        {"command": "ls -la"},
        {"args": "Hello World!"},
        {"args": ["ok", 3]},
        {"env": {"PATH": 1}},
        {"stdin": ["y"]},
        {"created_at": "1234567890"},
        {"created_at": -1},
        {"created_at": True},
        {"plan_id": ""},
        {"expectations": [{"pattern": "ok", "exit_code": "0"}]},
        {"expectations": ["ok"]},
        {"failure_signals": [{"pattern": "boom", "severity": "fatal"}]},
    ],
)
def test_parse_plan_rejects_invalid_values(overrides: dict[str, object]) -> None:
    with pytest.raises(PlanError) as excinfo:
        parse_plan(_plan(**overrides))

    assert excinfo.value.reason == PlanErrorReason.INVALID_VALUE


def test_parse_plan_checks_entry_fields() -> None:
    with pytest.raises(PlanError) as unknown:
        parse_plan(_plan(expectations=[{"pattern": "ok", "regex": True}]))
    with pytest.raises(PlanError) as missing:
        parse_plan(_plan(failure_signals=[{"pattern": "boom"}]))

    assert unknown.value.reason == PlanErrorReason.UNKNOWN_FIELD
    assert missing.value.reason == PlanErrorReason.MISSING_FIELD


def test_plan_serializes_back_to_the_same_document() -> None:
    original = json.loads(
        _plan(failure_signals=[{"pattern": "denied", "severity": "err"}]),
    )

    assert parse_plan(json.dumps(original)).to_dict() == original


def test_shell_line_quotes_arguments() -> None:
    plan = parse_plan(_plan())

    assert plan.shell_line() == "echo 'Hello World!'"


def test_shell_line_renders_env_and_stdin() -> None:
    plan = CommandPlan(
        plan_id="p1",
        command="grep",
        args=["-i", "error log"],
        paste_policy=PastePolicy.AUTO,
        confirm_mode=ConfirmMode.AUTO,
        created_at=0,
        env={"LC_ALL": "C"},
        stdin="first line",
    )

    assert plan.shell_line() == "printf '%s' 'first line' | LC_ALL=C grep -i 'error log'"


def test_plan_collections_are_read_only() -> None:
    env = {"LC_ALL": "C"}
    args = ["-la"]
    plan = CommandPlan(
        plan_id="p2",
        command="ls",
        args=args,
        paste_policy=PastePolicy.AUTO,
        confirm_mode=ConfirmMode.AUTO,
        created_at=0,
        env=env,
    )
    env["LC_ALL"] = "en_US.UTF-8"
    args.append("/etc")

    assert plan.args == ("-la",)
    assert plan.env["LC_ALL"] == "C"
    with pytest.raises(TypeError):
        plan.env["PATH"] = "/usr/bin"  # type: ignore[index]
    with pytest.raises(AttributeError):
        plan.args.append("/tmp")  # type: ignore[attr-defined]
