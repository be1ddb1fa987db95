"""Run the assistant behind a named pipe with a watchdog timeout.

Pipeline for one run::

    cat <prompt> -> [pump thread] -> FIFO -> cat <FIFO> -> claude stdin
                                                   claude stdout -> relay -> job log

The first of {assistant exit, spawn error, timeout} resolves the run; later
events are ignored. Auxiliary processes and the FIFO are always cleaned up.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import threading
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, TextIO

from claude_gitlab.config import Settings
from claude_gitlab.errors import RunError
from claude_gitlab.outputs import GitLabOutput
from claude_gitlab.runner.options import PreparedRun
from claude_gitlab.runner.stream import StreamRelay

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
SPAWN_ERROR_EXIT_CODE = 1
KILL_GRACE_SECONDS = 5.0
JSON_AGGREGATE_COMMAND = ("jq", "-s", ".")


class RunState(str, Enum):
    """Lifecycle of one orchestrated run."""

    IDLE = "idle"
    PIPE_CREATED = "pipe_created"
    PROMPT_STREAMING = "prompt_streaming"
    ASSISTANT_RUNNING = "assistant_running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CLEANUP = "cleanup"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class ExecutionResult:
    """Outcome of one assistant run."""

    exit_code: int
    output: str
    timed_out: bool = False
    execution_file: Path | None = None

    @property
    def conclusion(self) -> str:
        return "success" if self.exit_code == 0 else "failure"


class _Completion:
    """Single-assignment exit code shared by the relay and watchdog threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self.exit_code = SPAWN_ERROR_EXIT_CODE
        self.timed_out = False

    def resolve(self, exit_code: int, *, timed_out: bool = False) -> bool:
        with self._lock:
            if self._done.is_set():
                return False
            self.exit_code = exit_code
            self.timed_out = timed_out
            self._done.set()
            return True

    def wait(self) -> int:
        self._done.wait()
        return self.exit_code


class ClaudeRunner:
    """Orchestrates one assistant invocation and publishes its outputs."""

    def __init__(
        self,
        settings: Settings,
        outputs: GitLabOutput,
        *,
        sink: TextIO | None = None,
        kill_grace_seconds: float = KILL_GRACE_SECONDS,
    ) -> None:
        self.settings = settings
        self.outputs = outputs
        self.sink = sink
        self.kill_grace_seconds = kill_grace_seconds
        self.state = RunState.IDLE
        self._aux_processes: list[subprocess.Popen[bytes]] = []
        self._pump_thread: threading.Thread | None = None

    def run(self, prepared: PreparedRun) -> ExecutionResult:
        paths = self.settings.paths
        paths.temp_dir.mkdir(parents=True, exist_ok=True)
        self._create_pipe(paths.pipe_path)
        try:
            completion, output = self._execute(prepared, paths.pipe_path)
        finally:
            self._cleanup(paths.pipe_path)
        return self._finish(
            ExecutionResult(
                exit_code=completion.exit_code,
                output=output,
                timed_out=completion.timed_out,
            ),
        )

    def _set_state(self, state: RunState) -> None:
        logger.debug("Run state: %s -> %s", self.state.value, state.value)
        self.state = state

    def _create_pipe(self, pipe_path: Path) -> None:
        with suppress(OSError):
            pipe_path.unlink()
        try:
            os.mkfifo(pipe_path)
        except OSError as error:
            raise RunError(f"Failed to create named pipe {pipe_path}: {error}") from error
        self._set_state(RunState.PIPE_CREATED)

    def _execute(self, prepared: PreparedRun, pipe_path: Path) -> tuple[_Completion, str]:
        _log_run_header(prepared)
        completion = _Completion()
        relay = StreamRelay(self.sink or sys.stdout)

        try:
            self._start_prompt_stream(prepared.prompt_path, pipe_path)
            process = self._spawn_assistant(prepared, pipe_path)
        except OSError as error:
            logger.error("Error spawning Claude process: %s", error)
            completion.resolve(SPAWN_ERROR_EXIT_CODE)
            self._set_state(RunState.COMPLETED)
            return completion, relay.output

        relay_thread = threading.Thread(
            target=_relay_output,
            args=(process, relay, completion),
            name="claude-stdout-relay",
            daemon=True,
        )
        watchdog = threading.Timer(
            prepared.timeout_seconds,
            self._on_timeout,
            args=(process, completion, prepared.timeout_seconds),
        )
        watchdog.daemon = True
        relay_thread.start()
        watchdog.start()

        completion.wait()
        watchdog.cancel()
        if completion.timed_out:
            self._set_state(RunState.TIMED_OUT)
            watchdog.join(self.kill_grace_seconds + 1)
            relay_thread.join(1)
        else:
            self._set_state(RunState.COMPLETED)
            relay_thread.join()
        return completion, relay.output

    def _start_prompt_stream(self, prompt_path: Path, pipe_path: Path) -> None:
        self._set_state(RunState.PROMPT_STREAMING)
        prompt_reader = subprocess.Popen(  # noqa: S603
            ["cat", str(prompt_path)],  # noqa: S607
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
        )
        self._aux_processes.append(prompt_reader)
        self._pump_thread = threading.Thread(
            target=_pump_prompt,
            args=(prompt_reader.stdout, pipe_path),
            name="claude-prompt-pump",
            daemon=True,
        )
        self._pump_thread.start()

    def _spawn_assistant(
        self,
        prepared: PreparedRun,
        pipe_path: Path,
    ) -> subprocess.Popen[bytes]:
        pipe_reader = subprocess.Popen(  # noqa: S603
            ["cat", str(pipe_path)],  # noqa: S607
            stdout=subprocess.PIPE,
        )
        self._aux_processes.append(pipe_reader)

        env = os.environ.copy()
        env.update(prepared.provider_env)
        env.update(prepared.env)

        self._set_state(RunState.ASSISTANT_RUNNING)
        try:
            return subprocess.Popen(  # noqa: S603
                [self.settings.claude_executable, *prepared.claude_args],
                stdin=pipe_reader.stdout,
                stdout=subprocess.PIPE,
                env=env,
            )
        finally:
            # The assistant holds its own copy of the read end.
            if pipe_reader.stdout is not None:
                pipe_reader.stdout.close()

    def _on_timeout(
        self,
        process: subprocess.Popen[bytes],
        completion: _Completion,
        timeout_seconds: float,
    ) -> None:
        if not completion.resolve(TIMEOUT_EXIT_CODE, timed_out=True):
            return
        logger.error("Claude process timed out after %g seconds", timeout_seconds)
        _terminate_process(process, self.kill_grace_seconds)

    def _cleanup(self, pipe_path: Path) -> None:
        self._set_state(RunState.CLEANUP)
        for process in self._aux_processes:
            with suppress(OSError):
                process.terminate()
            with suppress(subprocess.TimeoutExpired):
                process.wait(timeout=1)
        self._aux_processes.clear()
        self._release_pump(pipe_path)
        with suppress(OSError):
            pipe_path.unlink()

    def _release_pump(self, pipe_path: Path) -> None:
        """Join the prompt pump, unblocking it if no reader ever opened the FIFO."""

        pump, self._pump_thread = self._pump_thread, None
        if pump is None or not pump.is_alive():
            return
        try:
            # A non-blocking reader lets a writer stuck in open() proceed.
            reader_fd = os.open(pipe_path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError:
            pump.join(1)
            return
        try:
            pump.join(1)
        finally:
            os.close(reader_fd)
        pump.join(1)
        if pump.is_alive():
            logger.warning("Prompt pump thread did not exit after cleanup")

    def _finish(self, result: ExecutionResult) -> ExecutionResult:
        paths = self.settings.paths
        if result.exit_code == 0:
            self._set_state(RunState.SUCCEEDED)
            try:
                result.execution_file = self._persist_output(result.output)
                logger.info("Log saved to %s", result.execution_file)
            except (OSError, subprocess.CalledProcessError) as error:
                self.outputs.warning(f"Failed to process output for execution metrics: {error}")
            self.outputs.set_output("conclusion", "success")
            self.outputs.set_output("execution_file", str(paths.execution_file))
            return result

        self._set_state(RunState.FAILED)
        self.outputs.error(f"Claude process exited with code {result.exit_code}")
        self.outputs.set_output("conclusion", "failure")
        if result.output:
            try:
                result.execution_file = self._persist_output(result.output)
            except (OSError, subprocess.CalledProcessError) as error:
                logger.debug("Skipping execution file for failed run: %s", error)
            else:
                self.outputs.set_output("execution_file", str(result.execution_file))
        return result

    def _persist_output(self, output: str) -> Path:
        """Write raw output, then aggregate its JSON lines into one array."""

        paths = self.settings.paths
        paths.raw_output_file.parent.mkdir(parents=True, exist_ok=True)
        paths.raw_output_file.write_text(output, "utf-8")

        aggregated = subprocess.run(  # noqa: S603
            [*JSON_AGGREGATE_COMMAND, str(paths.raw_output_file)],
            capture_output=True,
            text=True,
            check=True,
        )
        paths.execution_file.parent.mkdir(parents=True, exist_ok=True)
        paths.execution_file.write_text(aggregated.stdout, "utf-8")
        return paths.execution_file


def _log_run_header(prepared: PreparedRun) -> None:
    try:
        prompt_size = str(prepared.prompt_path.stat().st_size)
    except OSError:
        prompt_size = "unknown"
    logger.info("Prompt file size: %s bytes", prompt_size)
    if prepared.custom_env_keys:
        logger.info("Custom environment variables: %s", ", ".join(prepared.custom_env_keys))
    logger.info("Running Claude with prompt from file: %s", prepared.prompt_path)


def _pump_prompt(source: IO[bytes] | None, pipe_path: Path) -> None:
    if source is None:
        return
    try:
        with pipe_path.open("wb") as pipe:
            shutil.copyfileobj(source, pipe)
    except BrokenPipeError:
        logger.debug("Named pipe reader closed before the prompt was fully written")
    except OSError as error:
        logger.error("Error writing prompt to named pipe: %s", error)
    finally:
        source.close()


def _relay_output(
    process: subprocess.Popen[bytes],
    relay: StreamRelay,
    completion: _Completion,
) -> None:
    if process.stdout is not None:
        try:
            # Binary reads keep lone carriage returns intact.
            for raw_line in iter(process.stdout.readline, b""):
                relay.feed(raw_line.decode("utf-8", "replace"))
        except (OSError, ValueError) as error:
            logger.error("Error reading Claude stdout: %s", error)
    returncode = process.wait()
    completion.resolve(_normalize_returncode(returncode))


def _normalize_returncode(returncode: int) -> int:
    # Popen reports death by signal N as -N; shells report 128 + N.
    if returncode < 0:
        return 128 - returncode
    return returncode


def _terminate_process(process: subprocess.Popen[bytes], grace_seconds: float) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=grace_seconds)
