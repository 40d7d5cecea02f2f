"""Controllers for sly CLI commands."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from sly.config import Config, parse_provider
from sly.pipeline.models import ConfirmMode, PastePolicy, Provider
from sly.pipeline.orchestrator import CommandGenerator
from sly.pipeline.snapshot import TerminalSnapshot
from sly.shell import ShellType, detect_shell, install_shell_integration

PLAN_FORMATS = ("json", "shell")


@dataclass(slots=True)
class AskCommand:
    """CLI input for single-line command generation."""

    query: str
    provider: str | None = None
    snapshot_path: Path | None = None


@dataclass(slots=True)
class PlanCommand:
    """CLI input for structured plan generation."""

    query: str
    provider: str | None = None
    max_retries: int | None = None
    output_format: str = "json"
    snapshot_path: Path | None = None


@dataclass(slots=True)
class PlanResult:
    """Rendered plan plus operator notices for stderr."""

    lines: list[str]
    notices: list[str] = field(default_factory=list)
    rejected: bool = False


@dataclass(slots=True)
class ShellInstallCommand:
    """CLI input for shell integration install."""

    shell: str | None
    auto_source: bool


class SlyCliController:
    """Wires configuration, context and the generator for each CLI call."""

    def __init__(
        self,
        *,
        generator_factory: Callable[[], CommandGenerator] = CommandGenerator,
        config_loader: Callable[[], Config] = Config.from_env,
    ) -> None:
        self._generator_factory = generator_factory
        self._config_loader = config_loader

    def ask(self, command: AskCommand) -> str:
        config = self._config(command.provider)
        snapshot = _load_snapshot(command.snapshot_path)
        with self._generator_factory() as generator:
            return generator.generate(command.query, config, snapshot=snapshot)

    def plan(self, command: PlanCommand) -> PlanResult:
        """Generate a validated plan; `QueryError` propagates to the caller."""

        if command.output_format not in PLAN_FORMATS:
            raise ValueError(f"Unsupported plan format: {command.output_format!r}")
        config = self._config(command.provider)
        snapshot = _load_snapshot(command.snapshot_path)
        with self._generator_factory() as generator:
            plan = generator.generate_plan(
                command.query,
                config,
                max_retries=command.max_retries,
                snapshot=snapshot,
            )

        notices: list[str] = []
        if plan.paste_policy != PastePolicy.AUTO:
            notices.append(f"Paste policy is {plan.paste_policy.value}: review before running.")
        if plan.confirm_mode == ConfirmMode.PREVIEW:
            notices.append("Confirm mode is preview: do not run without confirmation.")
        rejected = plan.confirm_mode == ConfirmMode.REJECT
        if rejected:
            notices.append("The model rejected this request as unsafe to run.")

        if command.output_format == "shell":
            lines = [plan.shell_line()]
        else:
            lines = [plan.to_json(indent=2)]
        return PlanResult(lines=lines, notices=notices, rejected=rejected)

    def install_shell(self, command: ShellInstallCommand) -> list[str]:
        shell = ShellType.from_path(command.shell) if command.shell else detect_shell()
        result = install_shell_integration(shell, auto_source=command.auto_source)
        lines = [f"Installed {shell.value} integration: {result.plugin_path}"]
        if result.rc_path is None:
            lines.append(f"Add to your rc file: source {result.plugin_path}")
        elif result.rc_updated:
            lines.append(f"Sourced from {result.rc_path}")
        else:
            lines.append(f"Already sourced from {result.rc_path}")
        return lines

    def describe_config(self, provider: str | None = None) -> list[str]:
        config = self._config(provider)
        lines = [f"Provider: {config.provider.value}", f"Model: {config.model()}"]
        if config.provider.requires_key:
            lines.append(f"API key: {_mask(config.api_key())}")
        if config.provider == Provider.OPENAI:
            lines.append(f"URL: {config.openai.url}")
        if config.provider == Provider.OLLAMA:
            lines.append(f"URL: {config.ollama.url}")
        lines.append(f"Plan retries: {config.retry.max_retries}")
        return lines

    def _config(self, provider: str | None) -> Config:
        config = self._config_loader()
        if provider:
            config = config.with_provider(parse_provider(provider))
        return config


def _load_snapshot(path: Path | None) -> TerminalSnapshot | None:
    if path is None:
        return None
    try:
        payload = json.loads(path.read_text("utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("expected a JSON object")
        return TerminalSnapshot.from_dict(payload)
    except ValueError as error:
        raise ValueError(f"Invalid snapshot file {path}: {error}") from error


def _mask(key: str | None) -> str:
    if not key:
        return "<missing>"
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}...{key[-4:]}"
