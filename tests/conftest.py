"""Shared test fixtures."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

from claude_gitlab.config import PathSettings, Settings

_FAKE_CLAUDE = """
import json
import os
import sys
import time

mode = os.environ.get("FAKE_CLAUDE_MODE", "ok")
if mode == "sleep":
    time.sleep(60)

prompt = sys.stdin.read()
print(json.dumps({"type": "system", "args": sys.argv[1:]}))
print(json.dumps({"type": "result", "prompt": prompt, "my_var": os.environ.get("MY_VAR", "")}))
if mode == "plain":
    print("plain text line")
sys.stdout.flush()
if mode == "progress":
    sys.stdout.buffer.write(b"progress 10%\\rprogress 20%\\n")
    sys.stdout.buffer.flush()
sys.exit(int(os.environ.get("FAKE_CLAUDE_EXIT", "0")))
"""

PROVIDER_VARIABLES = (
    "CLAUDE_USE_BEDROCK",
    "CLAUDE_CODE_USE_BEDROCK",
    "CLAUDE_USE_VERTEX",
    "CLAUDE_CODE_USE_VERTEX",
    "ANTHROPIC_API_KEY",
    "CLAUDE_CODE_OAUTH_TOKEN",
    "CLAUDE_PROMPT",
    "CLAUDE_PROMPT_FILE",
    "CLAUDE_SETTINGS",
    "CLAUDE_MAX_TURNS",
    "CLAUDE_TIMEOUT_MINUTES",
    "CLAUDE_ENV",
    "GITLAB_CI_MODE",
    "GITLAB_ENV",
    "RUNNER_TEMP",
    "CI_JOB_JWT",
    "CI_JOB_JWT_V2",
)


def write_fake_claude(path: Path) -> Path:
    implementation = path.parent / f"{path.name}_impl.py"
    implementation.write_text(_FAKE_CLAUDE.strip() + "\n", "utf-8")
    path.write_text(
        f'#!/usr/bin/env sh\nexec "{sys.executable}" "{implementation}" "$@"\n',
        "utf-8",
    )
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


@pytest.fixture()
def fake_claude(tmp_path: Path) -> Path:
    """Executable standing in for the Claude CLI; behaviour set via FAKE_CLAUDE_* vars."""

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)
    return write_fake_claude(bin_dir / "claude")


@pytest.fixture()
def run_settings(tmp_path: Path, fake_claude: Path) -> Settings:
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    return Settings(
        claude_executable=str(fake_claude),
        paths=PathSettings.under(project_dir, home_dir=tmp_path / "home"),
    )


@pytest.fixture()
def gitlab_job_env(tmp_path: Path, monkeypatch, fake_claude: Path) -> dict[str, str]:
    """Minimal GitLab job environment applied to os.environ."""

    for name in PROVIDER_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    project_dir = tmp_path / "project"
    project_dir.mkdir(exist_ok=True)
    values = {
        "CI_PROJECT_DIR": str(project_dir),
        "HOME": str(tmp_path / "home"),
        "ANTHROPIC_API_KEY": "sk-test",
        "CLAUDE_CODE_CLI_PATH": str(fake_claude),
        "GITLAB_ENV": str(tmp_path / "gitlab.env"),
    }
    for name, value in values.items():
        monkeypatch.setenv(name, value)
    if os.name == "nt":  # pragma: no cover
        pytest.skip("named pipes require a POSIX runner")
    return values
