"""Resolve the prompt source into a single file on disk."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from claude_gitlab.errors import PromptError

PROMPT_DIR_NAME = "claude-prompts"
PROMPT_FILE_NAME = "prompt.txt"


@dataclass(slots=True, frozen=True)
class PreparedPrompt:
    """Prompt location handed to the orchestrator."""

    path: Path
    source: Literal["file", "text"]


def prepare_prompt(prompt: str, prompt_file: str, temp_dir: Path) -> PreparedPrompt:
    if prompt and prompt_file:
        raise PromptError(
            "Both 'prompt' and 'prompt_file' were provided. Please specify only one.",
        )

    if prompt_file:
        path = Path(prompt_file)
        if not path.is_file():
            raise PromptError(f"Prompt file '{prompt_file}' does not exist.")
        if path.stat().st_size == 0:
            raise PromptError(
                "Prompt file is empty. Please provide a non-empty prompt file.",
            )
        return PreparedPrompt(path=path, source="file")

    if not prompt:
        raise PromptError(
            "Neither 'prompt' nor 'prompt_file' was provided. At least one is required.",
        )
    if not prompt.strip():
        raise PromptError("Prompt is empty. Please provide a non-empty prompt.")

    path = temp_dir / PROMPT_DIR_NAME / PROMPT_FILE_NAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(prompt, "utf-8")
    return PreparedPrompt(path=path, source="text")
