"""Working-environment probe that feeds the system prompt."""

from __future__ import annotations

import logging
import os
import platform
import subprocess
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_SCANNED_FILES = 20
MAX_LISTED_FILES = 10
PROBE_TIMEOUT_SECONDS = 2.0

_PROJECT_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("node", ("package.json",)),
    ("rust", ("Cargo.toml",)),
    ("python", ("requirements.txt", "setup.py", "pyproject.toml")),
    ("ruby", ("Gemfile",)),
    ("go", ("go.mod",)),
    ("php", ("composer.json",)),
    ("java", ("pom.xml", "build.gradle")),
    ("docker", ("docker-compose.yml", "Dockerfile")),
)
_OS_NAMES = {"Linux": "Linux", "Darwin": "Darwin", "Windows": "Windows"}


def build_context(cwd: Path | None = None, environ: Mapping[str, str] | None = None) -> str:
    """Describe the directory, project, git state, OS and shell in a few lines."""

    directory = (cwd or Path.cwd()).resolve()
    env = os.environ if environ is None else environ

    lines = [f"Current directory: {directory}"]
    files_line = list_files(directory)
    if files_line:
        lines.append(files_line)
    project_type = detect_project_type(directory)
    if project_type is not None:
        lines.append(f"Project type: {project_type}")
    git_line = git_status(directory)
    if git_line:
        lines.append(git_line)
    lines.append(f"OS: {_OS_NAMES.get(platform.system(), 'Unix')}")
    shell_line = describe_shell(env)
    if shell_line:
        lines.append(shell_line)
    return "\n".join(lines)


def list_files(directory: Path) -> str:
    names: list[str] = []
    try:
        with os.scandir(directory) as entries:
            for entry in entries:
                if len(names) >= MAX_SCANNED_FILES:
                    break
                if entry.is_dir(follow_symlinks=False) or entry.is_symlink():
                    continue
                names.append(entry.name)
    except OSError as error:
        logger.debug("Cannot list %s: %s", directory, error)
        return ""

    if not names:
        return ""
    shown = names[:MAX_LISTED_FILES]
    line = f"Files: {', '.join(shown)}"
    if len(names) > len(shown):
        line += f" ... and {len(names) - len(shown)} more"
    return line


def detect_project_type(directory: Path) -> str | None:
    for project_type, markers in _PROJECT_MARKERS:
        if any((directory / marker).exists() for marker in markers):
            return project_type
    return None


def git_status(directory: Path) -> str:
    inside = _run(["git", "rev-parse", "--is-inside-work-tree"], cwd=directory)
    if inside is None or "true" not in inside:
        return ""
    branch = _run(["git", "branch", "--show-current"], cwd=directory)
    if branch is None:
        return ""
    porcelain = _run(["git", "status", "--porcelain"], cwd=directory)
    if porcelain is None:
        return ""
    status = "dirty" if porcelain.strip() else "clean"
    return f"Git: branch={branch.strip()}, status={status}"


def describe_shell(env: Mapping[str, str]) -> str:
    shell_path = env.get("SHELL", "").strip()
    if not shell_path:
        return ""
    name = Path(shell_path).name
    version_output = _run([shell_path, "--version"], cwd=None)
    if not version_output or not version_output.strip():
        return f"Shell: {name}"
    return f"Shell: {name} ({version_output.strip().splitlines()[0]})"


def _run(argv: list[str], *, cwd: Path | None) -> str | None:
    try:
        completed = subprocess.run(  # noqa: S603
            argv,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as error:
        logger.debug("Probe %s failed: %s", argv[0], error)
        return None
    if completed.returncode != 0:
        return None
    return completed.stdout
