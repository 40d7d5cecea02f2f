"""CLI entrypoint for sly."""

import logging
import sys
from pathlib import Path

import rich_click as click

from sly import __version__
from sly.controllers import (
    PLAN_FORMATS,
    AskCommand,
    PlanCommand,
    ShellInstallCommand,
    SlyCliController,
)
from sly.pipeline.models import Provider, QueryError
from sly.shell import ShellIntegrationError

click.rich_click.USE_MARKDOWN = True
CONTROLLER = SlyCliController()
PROVIDER_CHOICES = [provider.value for provider in Provider]


@click.group()
@click.version_option(version=__version__, prog_name="sly")
@click.option("--verbose", "-V", is_flag=True, default=False, help="Log diagnostics to stderr.")
def sly(verbose: bool) -> None:
    """Turn natural-language requests into shell commands.

    Configure the backend with `SLY_PROVIDER` and the matching API key
    (`ANTHROPIC_API_KEY`, `OPENAI_API_KEY`, `GEMINI_API_KEY`).
    """

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@sly.command("ask")
@click.argument("query", nargs=-1, required=True)
@click.option(
    "--provider",
    type=click.Choice(PROVIDER_CHOICES, case_sensitive=False),
    default=None,
    help="Override SLY_PROVIDER for this call.",
)
@click.option(
    "--snapshot-file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    default=None,
    help="JSON terminal snapshot to include in the prompt.",
)
def ask(query: tuple[str, ...], provider: str | None, snapshot_file: Path | None) -> None:
    """Print a single shell command for QUERY (used by the shell plugins)."""

    try:
        result = CONTROLLER.ask(
            AskCommand(query=" ".join(query), provider=provider, snapshot_path=snapshot_file),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    click.echo(result, nl=False)


@sly.command("plan")
@click.argument("query", nargs=-1, required=True)
@click.option(
    "--provider",
    type=click.Choice(PROVIDER_CHOICES, case_sensitive=False),
    default=None,
    help="Override SLY_PROVIDER for this call.",
)
@click.option(
    "--max-retries",
    type=click.IntRange(min=1, max=10),
    default=None,
    help="Model queries before giving up (default: SLY_MAX_RETRIES or 3).",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(PLAN_FORMATS),
    default="json",
    show_default=True,
    help="Print the plan document or a runnable shell line.",
)
@click.option(
    "--snapshot-file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    default=None,
    help="JSON terminal snapshot to include in the prompt.",
)
def plan(
    query: tuple[str, ...],
    provider: str | None,
    max_retries: int | None,
    output_format: str,
    snapshot_file: Path | None,
) -> None:
    """Generate a validated command plan for QUERY."""

    try:
        result = CONTROLLER.plan(
            PlanCommand(
                query=" ".join(query),
                provider=provider,
                max_retries=max_retries,
                output_format=output_format,
                snapshot_path=snapshot_file,
            ),
        )
    except (QueryError, ValueError) as error:
        raise click.ClickException(str(error)) from error

    for notice in result.notices:
        click.echo(notice, err=True)
    _emit_lines(result.lines)
    if result.rejected:
        sys.exit(1)


@sly.command("config")
@click.option(
    "--provider",
    type=click.Choice(PROVIDER_CHOICES, case_sensitive=False),
    default=None,
    help="Show settings for another provider.",
)
def show_config(provider: str | None) -> None:
    """Show the resolved provider, model and masked key."""

    try:
        lines = CONTROLLER.describe_config(provider)
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@sly.group()
def shell() -> None:
    """Shell integration commands."""


@shell.command("install")
@click.option(
    "--shell",
    "shell_name",
    type=click.Choice(["bash", "zsh"]),
    default=None,
    help="Shell to integrate with (default: detected from $SHELL).",
)
@click.option(
    "--auto/--no-auto",
    default=False,
    show_default=True,
    help="Append a source line to the shell rc file.",
)
def shell_install(shell_name: str | None, auto: bool) -> None:
    """Install the `# <request>` key binding for bash or zsh."""

    try:
        lines = CONTROLLER.install_shell(ShellInstallCommand(shell=shell_name, auto_source=auto))
    except ShellIntegrationError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    sly()
