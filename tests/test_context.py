from __future__ import annotations

from pathlib import Path

import allure

from sly import context
from sly.context import build_context, detect_project_type, git_status, list_files

pytestmark = [
    allure.epic("Prompt Context"),
    allure.feature("Environment Probe"),
]


def _fake_git(branch: str, porcelain: str):
    answers = {
        ("git", "rev-parse", "--is-inside-work-tree"): "true\n",
        ("git", "branch", "--show-current"): f"{branch}\n",
        ("git", "status", "--porcelain"): porcelain,
    }

    def _run(argv: list[str], *, cwd: Path | None) -> str | None:
        return answers.get(tuple(argv))

    return _run


def test_list_files_shows_ten_and_counts_the_rest(tmp_path: Path) -> None:
    for index in range(14):
        (tmp_path / f"file{index:02d}.txt").write_text("x")
    (tmp_path / "subdir").mkdir()

    line = list_files(tmp_path)

    assert line.startswith("Files: ")
    assert line.endswith(" ... and 4 more")
    assert "subdir" not in line
    assert len(line.removeprefix("Files: ").split(" ... ")[0].split(", ")) == 10


def test_list_files_stops_scanning_at_twenty(tmp_path: Path) -> None:
    for index in range(30):
        (tmp_path / f"f{index}").write_text("x")

    assert list_files(tmp_path).endswith(" ... and 10 more")


def test_list_files_empty_directory(tmp_path: Path) -> None:
    assert list_files(tmp_path) == ""


def test_detect_project_type_follows_marker_priority(tmp_path: Path) -> None:
    assert detect_project_type(tmp_path) is None

    (tmp_path / "pyproject.toml").write_text("[project]\n")
    assert detect_project_type(tmp_path) == "python"

    (tmp_path / "package.json").write_text("{}")
    assert detect_project_type(tmp_path) == "node"


def test_git_status_clean_and_dirty(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(context, "_run", _fake_git("main", ""))
    assert git_status(tmp_path) == "Git: branch=main, status=clean"

    monkeypatch.setattr(context, "_run", _fake_git("feature/x", " M README.md\n"))
    assert git_status(tmp_path) == "Git: branch=feature/x, status=dirty"


def test_git_status_outside_repository(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(context, "_run", lambda argv, *, cwd: None)

    assert git_status(tmp_path) == ""


def test_build_context_assembles_lines(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "Cargo.toml").write_text("[package]\n")
    runs = _fake_git("main", "")

    def _run(argv: list[str], *, cwd: Path | None) -> str | None:
        if argv[0] == "/bin/zsh":
            return "zsh 5.9 (x86_64-apple-darwin23.0)\n"
        return runs(argv, cwd=cwd)

    monkeypatch.setattr(context, "_run", _run)
    monkeypatch.setattr(context.platform, "system", lambda: "Darwin")

    text = build_context(tmp_path, environ={"SHELL": "/bin/zsh"})

    assert text.splitlines() == [
        f"Current directory: {tmp_path.resolve()}",
        "Files: Cargo.toml",
        "Project type: rust",
        "Git: branch=main, status=clean",
        "OS: Darwin",
        "Shell: zsh (zsh 5.9 (x86_64-apple-darwin23.0))",
    ]


def test_build_context_without_shell_or_git(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(context, "_run", lambda argv, *, cwd: None)
    monkeypatch.setattr(context.platform, "system", lambda: "SunOS")

    assert build_context(tmp_path, environ={}).splitlines() == [
        f"Current directory: {tmp_path.resolve()}",
        "OS: Unix",
    ]
