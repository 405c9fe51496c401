"""Process runner for docker CLI builds.

This module handles:
- Executing external commands with environment overrides
- Streaming merged stdout/stderr to a caller-supplied sink
- Enforcing timeouts and observing cancellation
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, cast

from localbuild.errors import BuildCancelledError, BuildExecutionError

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1


@dataclass
class CommandResult:
    """Result of a command execution.

    Attributes:
        exit_code: Process exit code.
        command: The command that was executed.
        started_at: Start time.
        finished_at: Finish time.
    """

    exit_code: int
    command: str
    started_at: datetime
    finished_at: datetime

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


def _pump(stream: IO[str], out: IO[str] | None) -> None:
    for line in stream:
        if out is not None:
            out.write(line)
    stream.close()


def _stop(proc: subprocess.Popen[str]) -> None:
    proc.terminate()
    try:
        proc.wait(timeout=5)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


def run_command(
    cmd: list[str],
    out: IO[str] | None = None,
    env_override: dict[str, str] | None = None,
    cwd: Path | None = None,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
) -> CommandResult:
    """Run a command, streaming its output to out.

    Args:
        cmd: Command as a list of strings.
        out: Sink for merged stdout/stderr (discarded if None).
        env_override: Environment variables added to the current environment.
        cwd: Working directory.
        timeout: Timeout in seconds (None = no timeout).
        cancel: Cancellation token; the process is terminated when set.

    Returns:
        CommandResult with the exit code.

    Raises:
        BuildExecutionError: If the command cannot start or times out.
        BuildCancelledError: If cancelled while running.
    """
    cmd_str = shlex.join(cmd)
    logger.info("Executing: %s", cmd_str)

    env: dict[str, str] | None = None
    if env_override:
        env = dict(os.environ)
        env.update(env_override)
        logger.debug("Environment overrides: %s", ", ".join(sorted(env_override)))

    started_at = datetime.now(timezone.utc)
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )
    except OSError as e:
        raise BuildExecutionError(
            f"failed to execute {cmd[0]}: {e}", code="execution_error"
        ) from e

    # stdout is always a pipe here
    stdout = cast(IO[str], proc.stdout)
    pump = threading.Thread(target=_pump, args=(stdout, out), daemon=True)
    pump.start()

    deadline = None if timeout is None else time.monotonic() + timeout
    while True:
        try:
            exit_code = proc.wait(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            pass
        if cancel is not None and cancel.is_set():
            logger.warning("Cancelling: %s", cmd_str)
            _stop(proc)
            pump.join()
            raise BuildCancelledError(f"{cmd[0]} cancelled")
        if deadline is not None and time.monotonic() >= deadline:
            logger.error("Command timed out after %s seconds: %s", timeout, cmd_str)
            _stop(proc)
            pump.join()
            raise BuildExecutionError(
                f"timed out after {timeout} seconds",
                exit_code=-1,
                code="build_timeout",
            )

    pump.join()
    finished_at = datetime.now(timezone.utc)

    if exit_code != 0:
        logger.error("Command failed with exit code %d: %s", exit_code, cmd_str)

    return CommandResult(
        exit_code=exit_code,
        command=cmd_str,
        started_at=started_at,
        finished_at=finished_at,
    )


__all__ = ["CommandResult", "run_command"]
