"""Controllers wiring validation, settings, prompt and run for CLI commands."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from claude_gitlab.config import Settings
from claude_gitlab.errors import ClaudeGitLabError
from claude_gitlab.outputs import GitLabOutput
from claude_gitlab.prompt import prepare_prompt
from claude_gitlab.runner import ClaudeRunner, ExecutionResult, prepare_run
from claude_gitlab.settings_file import settings_path, setup_claude_settings
from claude_gitlab.validation import validate_environment

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunCommand:
    """CLI overrides layered over the environment for one run."""

    prompt: str | None = None
    prompt_file: str | None = None
    timeout_minutes: str | None = None
    max_turns: str | None = None
    model: str | None = None


@dataclass(slots=True)
class SetupSettingsCommand:
    """CLI input for a standalone settings merge."""

    settings: str | None
    home_dir: Path | None


class CiCliController:
    """Coordinates the GitLab CI pipeline: validate, configure, prompt, run."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self.environ = environ

    def run(self, command: RunCommand) -> ExecutionResult:
        environ = os.environ if self.environ is None else self.environ
        # The env file is known before the snapshot so snapshot errors are published too.
        outputs = GitLabOutput(environ.get("GITLAB_ENV"))
        logger.info("Starting Claude Code GitLab CI execution...")

        try:
            settings = _apply_overrides(Settings.from_env(environ), command)
            settings.paths.temp_dir.mkdir(parents=True, exist_ok=True)
            validate_environment(settings)
            setup_claude_settings(
                settings.settings,
                home_dir=settings.paths.home_dir,
                slash_commands_dir=settings.slash_commands_dir or None,
            )
            prompt = prepare_prompt(
                settings.prompt,
                settings.prompt_file,
                settings.paths.temp_dir,
            )
            prepared = prepare_run(prompt.path, settings.run, settings)
            result = ClaudeRunner(settings, outputs).run(prepared)
        except (ClaudeGitLabError, OSError):
            outputs.set_output("conclusion", "failure")
            raise

        if result.exit_code == 0:
            logger.info("Claude Code execution completed successfully")
        return result

    def validate(self) -> list[str]:
        validate_environment(Settings.from_env(self.environ))
        return ["Environment OK"]

    def setup_settings(self, command: SetupSettingsCommand) -> list[str]:
        settings = Settings.from_env(self.environ)
        home_dir = command.home_dir or settings.paths.home_dir
        raw_input = command.settings if command.settings is not None else settings.settings
        document = setup_claude_settings(
            raw_input,
            home_dir=home_dir,
            slash_commands_dir=settings.slash_commands_dir or None,
        )
        return [
            f"Settings written: {settings_path(home_dir)}",
            f"Keys: {', '.join(sorted(document))}",
        ]


def _apply_overrides(settings: Settings, command: RunCommand) -> Settings:
    top_level: dict[str, Any] = {}
    if command.prompt is not None:
        top_level["prompt"] = command.prompt
    if command.prompt_file is not None:
        top_level["prompt_file"] = command.prompt_file

    run_overrides = {
        name: value
        for name, value in (
            ("timeout_minutes", command.timeout_minutes),
            ("max_turns", command.max_turns),
            ("model", command.model),
        )
        if value is not None
    }
    if run_overrides:
        top_level["run"] = replace(settings.run, **run_overrides)
    return replace(settings, **top_level) if top_level else settings
