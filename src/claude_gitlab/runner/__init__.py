"""Assistant process orchestration."""

from claude_gitlab.runner.options import PreparedRun, parse_custom_env, prepare_run
from claude_gitlab.runner.orchestrator import (
    TIMEOUT_EXIT_CODE,
    ClaudeRunner,
    ExecutionResult,
    RunState,
)
from claude_gitlab.runner.stream import StreamRelay, format_stream_line

__all__ = [
    "TIMEOUT_EXIT_CODE",
    "ClaudeRunner",
    "ExecutionResult",
    "PreparedRun",
    "RunState",
    "StreamRelay",
    "format_stream_line",
    "parse_custom_env",
    "prepare_run",
]
