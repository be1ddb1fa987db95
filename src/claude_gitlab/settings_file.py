"""Merge job-provided settings into the assistant's user settings file."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Any

from claude_gitlab.errors import SettingsInputError

logger = logging.getLogger(__name__)

SETTINGS_DIR_NAME = ".claude"
SETTINGS_FILE_NAME = "settings.json"
FORCED_FLAG = "enableAllProjectMcpServers"


def settings_path(home_dir: Path) -> Path:
    return home_dir / SETTINGS_DIR_NAME / SETTINGS_FILE_NAME


def setup_claude_settings(
    raw_input: str | None = None,
    home_dir: Path | None = None,
    slash_commands_dir: str | Path | None = None,
) -> dict[str, Any]:
    """Merge `raw_input` over the existing settings document and write it back.

    `raw_input` is either an inline JSON object or a path to a JSON file. Top-level
    keys from the input replace existing ones; nested objects are not merged.
    `enableAllProjectMcpServers` is always written as `true`. Returns the document
    that was written.
    """

    home = home_dir or Path.home()
    path = settings_path(home)
    path.parent.mkdir(parents=True, exist_ok=True)

    document = _read_existing(path)
    document.update(load_settings_input(raw_input))
    document[FORCED_FLAG] = True

    path.write_text(json.dumps(document, ensure_ascii=False, indent=2), "utf-8")
    logger.info("Settings saved to %s", path)

    if slash_commands_dir:
        copy_slash_commands(Path(slash_commands_dir), path.parent)
    return document


def load_settings_input(raw_input: str | None) -> dict[str, Any]:
    """Resolve inline JSON or a JSON file path into a settings object."""

    if raw_input is None or not raw_input.strip():
        return {}

    try:
        payload = json.loads(raw_input)
    except json.JSONDecodeError:
        payload = _load_settings_file(Path(raw_input.strip()))

    if not isinstance(payload, dict):
        raise SettingsInputError(
            f"Settings must be a JSON object, got {type(payload).__name__}",
        )
    return payload


def copy_slash_commands(source_dir: Path, target_dir: Path) -> list[Path]:
    """Copy `*.md` command definitions into the settings directory."""

    if not source_dir.is_dir():
        logger.warning("Slash commands directory not found: %s", source_dir)
        return []

    logger.info("Copying slash commands from %s to %s", source_dir, target_dir)
    copied: list[Path] = []
    for command_file in sorted(source_dir.glob("*.md")):
        try:
            copied.append(Path(shutil.copy2(command_file, target_dir / command_file.name)))
        except OSError as error:
            logger.warning("Failed to copy slash command %s: %s", command_file, error)
    return copied


def _load_settings_file(path: Path) -> Any:
    try:
        text = path.read_text("utf-8")
    except OSError as error:
        raise SettingsInputError(
            f"Settings input is neither valid JSON nor a readable file: {path} ({error})",
        ) from error
    try:
        return json.loads(text)
    except json.JSONDecodeError as error:
        raise SettingsInputError(f"Failed to parse settings file {path}: {error}") from error


def _read_existing(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        existing = json.loads(path.read_text("utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        logger.warning("Ignoring unreadable settings file %s: %s", path, error)
        return {}
    if not isinstance(existing, dict):
        logger.warning("Ignoring non-object settings file %s", path)
        return {}
    return existing
