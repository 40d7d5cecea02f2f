"""Shell detection and integration plugin installation."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from importlib import resources
from pathlib import Path

from sly.pipeline.models import ErrorKind

logger = logging.getLogger(__name__)

CONFIG_DIR_PARTS = (".config", "sly")


class ShellIntegrationError(RuntimeError):
    """Shell integration cannot be installed."""

    def __init__(self, message: str, *, kind: ErrorKind) -> None:
        super().__init__(message)
        self.kind = kind


class ShellType(str, Enum):
    """Shells with an integration plugin."""

    BASH = "bash"
    ZSH = "zsh"
    UNKNOWN = "unknown"

    @classmethod
    def from_path(cls, value: str) -> ShellType:
        name = Path(value.strip()).name.lower()
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN

    @property
    def rc_file(self) -> str:
        return {ShellType.BASH: ".bashrc", ShellType.ZSH: ".zshrc"}.get(self, "")

    @property
    def plugin_name(self) -> str:
        return {ShellType.BASH: "sly.plugin.sh", ShellType.ZSH: "sly.plugin.zsh"}.get(self, "")

    def plugin_content(self) -> str:
        if self == ShellType.UNKNOWN:
            return ""
        return resources.files("sly").joinpath("plugins").joinpath(self.plugin_name).read_text(
            "utf-8",
        )


@dataclass(slots=True)
class InstallResult:
    """Where the plugin went and whether the rc file was touched."""

    plugin_path: Path
    rc_path: Path | None
    rc_updated: bool


def detect_shell(environ: Mapping[str, str] | None = None) -> ShellType:
    env = os.environ if environ is None else environ
    shell_path = env.get("SHELL", "")
    if not shell_path.strip():
        return ShellType.UNKNOWN
    return ShellType.from_path(shell_path)


def install_shell_integration(
    shell: ShellType,
    *,
    auto_source: bool = False,
    home: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> InstallResult:
    """Write the plugin under ``~/.config/sly`` and optionally source it from the rc file.

    The source line is appended at most once.
    """

    if shell == ShellType.UNKNOWN:
        raise ShellIntegrationError(
            "Unsupported shell. Use --shell bash or --shell zsh.",
            kind=ErrorKind.UNSUPPORTED_SHELL,
        )
    home_dir = home or _home_dir(environ)

    config_dir = home_dir.joinpath(*CONFIG_DIR_PARTS)
    config_dir.mkdir(parents=True, exist_ok=True)
    plugin_path = config_dir / shell.plugin_name
    plugin_path.write_text(shell.plugin_content(), "utf-8")
    logger.info("Wrote %s plugin to %s", shell.value, plugin_path)

    if not auto_source:
        return InstallResult(plugin_path=plugin_path, rc_path=None, rc_updated=False)

    rc_path = home_dir / shell.rc_file
    existing = rc_path.read_text("utf-8") if rc_path.exists() else ""
    if str(plugin_path) in existing:
        return InstallResult(plugin_path=plugin_path, rc_path=rc_path, rc_updated=False)
    with rc_path.open("a", encoding="utf-8") as handle:
        handle.write(f"\n# sly shell integration\nsource {plugin_path}\n")
    return InstallResult(plugin_path=plugin_path, rc_path=rc_path, rc_updated=True)


def _home_dir(environ: Mapping[str, str] | None) -> Path:
    env = os.environ if environ is None else environ
    home = env.get("HOME", "").strip()
    if not home:
        raise ShellIntegrationError(
            "HOME is not set; cannot locate the shell configuration directory.",
            kind=ErrorKind.NO_HOME_DIR,
        )
    return Path(home)
