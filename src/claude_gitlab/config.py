"""Runtime configuration snapshot built from GitLab CI job variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from claude_gitlab.errors import ConfigurationError

DEFAULT_TIMEOUT_MINUTES = 10
DEFAULT_CLAUDE_EXECUTABLE = "claude"
PIPE_NAME = "claude_prompt_pipe"
EXECUTION_FILE_NAME = "claude-execution-output.json"
RAW_OUTPUT_FILE_NAME = "output.txt"


@dataclass(slots=True, frozen=True)
class RunOptions:
    """Options controlling one assistant invocation.

    Values are kept as the raw strings received from the job; numeric fields
    are validated when the run is prepared.
    """

    allowed_tools: str = ""
    disallowed_tools: str = ""
    max_turns: str = ""
    mcp_config: str = ""
    system_prompt: str = ""
    append_system_prompt: str = ""
    claude_env: str = ""
    fallback_model: str = ""
    timeout_minutes: str = ""
    model: str = ""


@dataclass(slots=True, frozen=True)
class ProviderSettings:
    """Credentials for the direct API and the managed providers."""

    use_bedrock: bool = False
    use_vertex: bool = False
    anthropic_api_key: str = ""
    oauth_token: str = ""
    anthropic_base_url: str = ""
    aws_region: str = ""
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_session_token: str = ""
    bedrock_base_url: str = ""
    vertex_project_id: str = ""
    cloud_ml_region: str = ""
    google_application_credentials: str = ""
    vertex_base_url: str = ""
    oidc_token: str = ""

    def exported_env(self) -> dict[str, str]:
        """Provider variables the assistant process expects under its own names."""

        env: dict[str, str] = {}
        if self.use_bedrock:
            env["CLAUDE_CODE_USE_BEDROCK"] = "1"
        if self.use_vertex:
            env["CLAUDE_CODE_USE_VERTEX"] = "1"
        if self.bedrock_base_url:
            env["ANTHROPIC_BEDROCK_BASE_URL"] = self.bedrock_base_url
        return env


@dataclass(slots=True, frozen=True)
class GitLabContext:
    """GitLab CI job identity."""

    ci_mode: str = ""
    project_dir: str = ""
    project_path: str = ""
    pipeline_id: str = ""
    job_name: str = ""
    env_file: str = ""


@dataclass(slots=True, frozen=True)
class PathSettings:
    """Filesystem locations used by one run."""

    temp_dir: Path = Path(".tmp")
    pipe_path: Path = Path(".tmp") / PIPE_NAME
    execution_file: Path = Path(EXECUTION_FILE_NAME)
    raw_output_file: Path = Path(RAW_OUTPUT_FILE_NAME)
    home_dir: Path = field(default_factory=Path.home)

    @classmethod
    def under(
        cls,
        project_dir: Path,
        temp_dir: Path | None = None,
        home_dir: Path | None = None,
    ) -> PathSettings:
        """Derive the standard layout from a project directory."""

        resolved_temp = temp_dir or project_dir / ".tmp"
        return cls(
            temp_dir=resolved_temp,
            pipe_path=resolved_temp / PIPE_NAME,
            execution_file=project_dir / EXECUTION_FILE_NAME,
            raw_output_file=project_dir / RAW_OUTPUT_FILE_NAME,
            home_dir=home_dir or Path.home(),
        )


@dataclass(slots=True, frozen=True)
class Settings:
    """Immutable snapshot of everything the adapter reads from the environment."""

    prompt: str = ""
    prompt_file: str = ""
    settings: str = ""
    slash_commands_dir: str = ""
    claude_executable: str = DEFAULT_CLAUDE_EXECUTABLE
    env_timeout_minutes: str = ""
    run: RunOptions = field(default_factory=RunOptions)
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    gitlab: GitLabContext = field(default_factory=GitLabContext)
    paths: PathSettings = field(default_factory=PathSettings)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Map GitLab CI variables onto the adapter's settings."""

        env = os.environ if environ is None else environ

        def get(name: str, default: str = "") -> str:
            return env.get(name) or default

        project_dir = Path(get("CI_PROJECT_DIR") or Path.cwd())
        runner_temp = get("RUNNER_TEMP")
        home = get("HOME")
        aws_region = get("AWS_REGION")

        return cls(
            prompt=get("CLAUDE_PROMPT"),
            prompt_file=get("CLAUDE_PROMPT_FILE"),
            settings=get("CLAUDE_SETTINGS"),
            slash_commands_dir=get("CLAUDE_EXPERIMENTAL_SLASH_COMMANDS_DIR"),
            claude_executable=get("CLAUDE_CODE_CLI_PATH", DEFAULT_CLAUDE_EXECUTABLE),
            env_timeout_minutes=get("CLAUDE_TIMEOUT_MINUTES"),
            run=RunOptions(
                allowed_tools=get("CLAUDE_ALLOWED_TOOLS"),
                disallowed_tools=get("CLAUDE_DISALLOWED_TOOLS"),
                max_turns=get("CLAUDE_MAX_TURNS"),
                mcp_config=get("CLAUDE_MCP_CONFIG"),
                system_prompt=get("CLAUDE_SYSTEM_PROMPT"),
                append_system_prompt=get("CLAUDE_APPEND_SYSTEM_PROMPT"),
                claude_env=get("CLAUDE_ENV"),
                fallback_model=get("CLAUDE_FALLBACK_MODEL"),
                model=get("CLAUDE_MODEL") or get("ANTHROPIC_MODEL"),
            ),
            provider=ProviderSettings(
                use_bedrock=_env_flag(env, "CLAUDE_USE_BEDROCK", "CLAUDE_CODE_USE_BEDROCK"),
                use_vertex=_env_flag(env, "CLAUDE_USE_VERTEX", "CLAUDE_CODE_USE_VERTEX"),
                anthropic_api_key=get("ANTHROPIC_API_KEY"),
                oauth_token=get("CLAUDE_CODE_OAUTH_TOKEN"),
                anthropic_base_url=get("ANTHROPIC_BASE_URL"),
                aws_region=aws_region,
                aws_access_key_id=get("AWS_ACCESS_KEY_ID"),
                aws_secret_access_key=get("AWS_SECRET_ACCESS_KEY"),
                aws_session_token=get("AWS_SESSION_TOKEN"),
                bedrock_base_url=get(
                    "ANTHROPIC_BEDROCK_BASE_URL",
                    f"https://bedrock-runtime.{aws_region}.amazonaws.com" if aws_region else "",
                ),
                vertex_project_id=get("ANTHROPIC_VERTEX_PROJECT_ID"),
                cloud_ml_region=get("CLOUD_ML_REGION"),
                google_application_credentials=get("GOOGLE_APPLICATION_CREDENTIALS"),
                vertex_base_url=get("ANTHROPIC_VERTEX_BASE_URL"),
                oidc_token=get("CI_JOB_JWT_V2") or get("CI_JOB_JWT"),
            ),
            gitlab=GitLabContext(
                ci_mode=get("GITLAB_CI_MODE"),
                project_dir=get("CI_PROJECT_DIR"),
                project_path=get("CI_PROJECT_PATH"),
                pipeline_id=get("CI_PIPELINE_ID"),
                job_name=get("CI_JOB_NAME"),
                env_file=get("GITLAB_ENV"),
            ),
            paths=PathSettings.under(
                project_dir,
                temp_dir=Path(runner_temp) if runner_temp else None,
                home_dir=Path(home) if home else None,
            ),
        )


def _env_flag(env: Mapping[str, str], input_name: str, native_name: str) -> bool:
    """Provider selection: `<input_name>=true` or the tool's own `<native_name>=1`."""

    if (env.get(native_name) or "").strip() == "1":
        return True
    value = env.get(input_name)
    if value is None:
        return False
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"", "0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"Invalid boolean value for {input_name}: {value!r}")
