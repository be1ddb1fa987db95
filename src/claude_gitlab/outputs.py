"""Publish job outputs through GitLab CI conventions."""

from __future__ import annotations

import logging
from pathlib import Path

import rich_click as click

logger = logging.getLogger(__name__)


class GitLabOutput:
    """Emit `name=value` outputs on stdout and into the job's env file."""

    def __init__(self, env_file: str | Path | None = None) -> None:
        self.env_file = Path(env_file) if env_file else None

    def set_output(self, name: str, value: str) -> None:
        click.echo(f"::set-output name={name}::{value}")
        if self.env_file is None:
            return
        try:
            with self.env_file.open("a", encoding="utf-8") as handle:
                handle.write(f"{name}={value}\n")
        except OSError as error:
            logger.debug("Could not append %s to %s: %s", name, self.env_file, error)

    def warning(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)
