from __future__ import annotations

from pathlib import Path

import allure

from claude_gitlab.outputs import GitLabOutput

pytestmark = [
    allure.epic("Job Setup"),
    allure.feature("Job Outputs"),
]


def test_set_output_prints_marker_and_appends_env_file(tmp_path: Path, capsys) -> None:
    env_file = tmp_path / "gitlab.env"
    outputs = GitLabOutput(env_file)

    outputs.set_output("conclusion", "success")
    outputs.set_output("execution_file", "/builds/out.json")

    assert "::set-output name=conclusion::success" in capsys.readouterr().out
    assert env_file.read_text("utf-8") == (
        "conclusion=success\nexecution_file=/builds/out.json\n"
    )


def test_set_output_without_env_file_only_prints(capsys) -> None:
    GitLabOutput().set_output("conclusion", "failure")

    assert capsys.readouterr().out.strip() == "::set-output name=conclusion::failure"


def test_unwritable_env_file_is_ignored(tmp_path: Path, capsys) -> None:
    outputs = GitLabOutput(tmp_path / "missing-dir" / "gitlab.env")

    outputs.set_output("conclusion", "success")

    assert "::set-output name=conclusion::success" in capsys.readouterr().out
