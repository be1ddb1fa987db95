"""Build the assistant command line and environment for one run."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from claude_gitlab.config import DEFAULT_TIMEOUT_MINUTES, RunOptions, Settings
from claude_gitlab.errors import ConfigurationError

BASE_ARGS = ("-p", "--verbose", "--output-format", "stream-json")
GITLAB_CI_INPUTS_ENV = "GITLAB_CI_INPUTS"


@dataclass(slots=True, frozen=True)
class PreparedRun:
    """Fully validated invocation, ready to spawn."""

    claude_args: list[str]
    prompt_path: Path
    env: dict[str, str] = field(default_factory=dict)
    provider_env: dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = DEFAULT_TIMEOUT_MINUTES * 60

    @property
    def custom_env_keys(self) -> list[str]:
        return [key for key in self.env if key != GITLAB_CI_INPUTS_ENV]


def parse_custom_env(text: str | None) -> dict[str, str]:
    """Parse a `KEY: VALUE` block, one variable per line."""

    if not text or not text.strip():
        return {}

    custom_env: dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        key, separator, value = stripped.partition(":")
        if not separator:
            continue
        key = key.strip()
        if key:
            custom_env[key] = value.strip()
    return custom_env


def parse_positive_int(value: str, name: str) -> int:
    try:
        number = int(value.strip())
    except ValueError as error:
        raise ConfigurationError(f"{name} must be a positive integer, got: {value!r}") from error
    if number <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got: {value!r}")
    return number


def build_claude_args(options: RunOptions) -> list[str]:
    args = list(BASE_ARGS)
    if options.allowed_tools:
        args.extend(["--allowedTools", options.allowed_tools])
    if options.disallowed_tools:
        args.extend(["--disallowedTools", options.disallowed_tools])
    if options.max_turns:
        max_turns = parse_positive_int(options.max_turns, "maxTurns")
        args.extend(["--max-turns", str(max_turns)])
    if options.mcp_config:
        args.extend(["--mcp-config", options.mcp_config])
    if options.system_prompt:
        args.extend(["--system-prompt", options.system_prompt])
    if options.append_system_prompt:
        args.extend(["--append-system-prompt", options.append_system_prompt])
    if options.fallback_model:
        args.extend(["--fallback-model", options.fallback_model])
    if options.model:
        args.extend(["--model", options.model])
    return args


def resolve_timeout_seconds(options: RunOptions, env_timeout_minutes: str = "") -> float:
    """Per-run timeout, then the job-level CLAUDE_TIMEOUT_MINUTES, then the default."""

    if options.timeout_minutes:
        minutes = parse_positive_int(options.timeout_minutes, "timeoutMinutes")
    elif env_timeout_minutes:
        minutes = parse_positive_int(env_timeout_minutes, "CLAUDE_TIMEOUT_MINUTES")
    else:
        minutes = DEFAULT_TIMEOUT_MINUTES
    return float(minutes * 60)


def prepare_run(prompt_path: Path, options: RunOptions, settings: Settings) -> PreparedRun:
    """Validate options and assemble the invocation; nothing is spawned here."""

    claude_args = build_claude_args(options)
    timeout_seconds = resolve_timeout_seconds(options, settings.env_timeout_minutes)

    env = parse_custom_env(options.claude_env)
    if settings.gitlab.ci_mode:
        env[GITLAB_CI_INPUTS_ENV] = settings.gitlab.ci_mode

    return PreparedRun(
        claude_args=claude_args,
        prompt_path=prompt_path,
        env=env,
        provider_env=settings.provider.exported_env(),
        timeout_seconds=timeout_seconds,
    )
