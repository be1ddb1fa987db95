"""CLI entrypoint for claude-gitlab."""

import logging
from pathlib import Path

import rich_click as click

from claude_gitlab import __version__
from claude_gitlab.controllers import CiCliController, RunCommand, SetupSettingsCommand
from claude_gitlab.errors import ClaudeGitLabError

click.rich_click.USE_MARKDOWN = True
CONTROLLER = CiCliController()


@click.group()
@click.version_option(version=__version__, prog_name="claude-gitlab")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging verbosity.",
)
def claude_gitlab(log_level: str) -> None:
    """Run the Claude CLI inside a GitLab CI job."""

    logging.basicConfig(format="%(message)s")
    logging.getLogger().setLevel(log_level.upper())


@claude_gitlab.command("run")
@click.option("--prompt", default=None, help="Literal prompt text. Overrides `CLAUDE_PROMPT`.")
@click.option(
    "--prompt-file",
    default=None,
    help="Path to a prompt file. Overrides `CLAUDE_PROMPT_FILE`.",
)
@click.option(
    "--timeout-minutes",
    default=None,
    help="Per-run timeout; `CLAUDE_TIMEOUT_MINUTES` applies when omitted.",
)
@click.option("--max-turns", default=None, help="Overrides `CLAUDE_MAX_TURNS`.")
@click.option("--model", default=None, help="Overrides `CLAUDE_MODEL`.")
def run(
    prompt: str | None,
    prompt_file: str | None,
    timeout_minutes: str | None,
    max_turns: str | None,
    model: str | None,
) -> None:
    """Validate the job, merge settings, prepare the prompt and run Claude."""

    try:
        result = CONTROLLER.run(
            RunCommand(
                prompt=prompt,
                prompt_file=prompt_file,
                timeout_minutes=timeout_minutes,
                max_turns=max_turns,
                model=model,
            ),
        )
    except (ClaudeGitLabError, OSError) as error:
        raise click.ClickException(f"Claude execution failed: {error}") from error
    if result.exit_code != 0:
        raise SystemExit(result.exit_code)


@claude_gitlab.command("validate")
def validate() -> None:
    """Check provider credentials and GitLab CI variables only."""

    try:
        _emit_lines(CONTROLLER.validate())
    except ClaudeGitLabError as error:
        raise click.ClickException(str(error)) from error


@claude_gitlab.command("setup-settings")
@click.option(
    "--settings",
    default=None,
    help="Inline JSON or path to a JSON file. Defaults to `CLAUDE_SETTINGS`.",
)
@click.option(
    "--home-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Home directory holding `.claude/settings.json`.",
)
def setup_settings(settings: str | None, home_dir: Path | None) -> None:
    """Merge settings into the Claude settings file."""

    try:
        _emit_lines(
            CONTROLLER.setup_settings(
                SetupSettingsCommand(settings=settings, home_dir=home_dir),
            ),
        )
    except ClaudeGitLabError as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    claude_gitlab()
