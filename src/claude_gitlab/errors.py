"""Error taxonomy for the GitLab CI adapter."""

from __future__ import annotations


class ClaudeGitLabError(RuntimeError):
    """Base error raised by the adapter."""


class ConfigurationError(ClaudeGitLabError):
    """Invalid option value detected before any process is spawned."""


class EnvironmentValidationError(ConfigurationError):
    """Aggregated credential/provider validation failure."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        lines = "\n".join(f"  - {error}" for error in self.errors)
        super().__init__(f"GitLab CI environment variable validation failed:\n{lines}")


class SettingsInputError(ClaudeGitLabError):
    """Settings input is neither valid JSON nor a readable JSON file."""


class PromptError(ClaudeGitLabError):
    """Prompt source is missing, ambiguous or empty."""


class RunError(ClaudeGitLabError):
    """Fatal orchestration failure (for example, the named pipe cannot be created)."""
