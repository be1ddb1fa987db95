"""GitLab CI adapter for the Claude CLI."""

__version__ = "0.1.0"
