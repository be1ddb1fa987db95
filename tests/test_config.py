from __future__ import annotations

from pathlib import Path

import allure
import pytest

from claude_gitlab.config import Settings
from claude_gitlab.errors import ConfigurationError

pytestmark = [
    allure.epic("Job Setup"),
    allure.feature("Configuration"),
]


def test_from_env_maps_gitlab_variables(tmp_path: Path) -> None:
    settings = Settings.from_env(
        {
            "CI_PROJECT_DIR": str(tmp_path),
            "HOME": str(tmp_path / "home"),
            "CLAUDE_PROMPT": "hello",
            "CLAUDE_MAX_TURNS": "3",
            "CLAUDE_ALLOWED_TOOLS": "Bash",
            "ANTHROPIC_MODEL": "fallback-name",
            "CLAUDE_MODEL": "claude-sonnet",
            "CLAUDE_TIMEOUT_MINUTES": "15",
            "CI_JOB_JWT": "legacy-jwt",
            "GITLAB_ENV": "/tmp/gitlab.env",
        },
    )

    assert settings.prompt == "hello"
    assert settings.run.max_turns == "3"
    assert settings.run.allowed_tools == "Bash"
    assert settings.run.model == "claude-sonnet"
    assert settings.run.timeout_minutes == ""
    assert settings.env_timeout_minutes == "15"
    assert settings.provider.oidc_token == "legacy-jwt"
    assert settings.gitlab.env_file == "/tmp/gitlab.env"
    assert settings.claude_executable == "claude"
    assert settings.paths.temp_dir == tmp_path / ".tmp"
    assert settings.paths.pipe_path == tmp_path / ".tmp" / "claude_prompt_pipe"
    assert settings.paths.execution_file == tmp_path / "claude-execution-output.json"
    assert settings.paths.raw_output_file == tmp_path / "output.txt"
    assert settings.paths.home_dir == tmp_path / "home"


def test_runner_temp_overrides_temp_dir(tmp_path: Path) -> None:
    settings = Settings.from_env(
        {"CI_PROJECT_DIR": str(tmp_path), "RUNNER_TEMP": str(tmp_path / "runner")},
    )

    assert settings.paths.pipe_path == tmp_path / "runner" / "claude_prompt_pipe"


def test_provider_flags_and_bedrock_base_url() -> None:
    settings = Settings.from_env({"CLAUDE_USE_BEDROCK": "true", "AWS_REGION": "eu-west-1"})

    assert settings.provider.use_bedrock is True
    assert settings.provider.use_vertex is False
    assert settings.provider.bedrock_base_url == "https://bedrock-runtime.eu-west-1.amazonaws.com"
    assert settings.provider.exported_env()["CLAUDE_CODE_USE_BEDROCK"] == "1"


def test_native_provider_flag_is_honoured() -> None:
    settings = Settings.from_env({"CLAUDE_CODE_USE_VERTEX": "1"})

    assert settings.provider.use_vertex is True


def test_invalid_provider_flag_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="CLAUDE_USE_VERTEX"):
        Settings.from_env({"CLAUDE_USE_VERTEX": "maybe"})


def test_oidc_prefers_v2_token() -> None:
    settings = Settings.from_env({"CI_JOB_JWT": "v1", "CI_JOB_JWT_V2": "v2"})

    assert settings.provider.oidc_token == "v2"
