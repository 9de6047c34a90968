"""Subprocess helpers shared by the git and docker wrappers.

All external commands go through ``run_command`` so logging and error
translation happen in one place. Commands block until they exit and
their status is checked immediately.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

logger = logging.getLogger(__name__)

# Pass as ``stdout`` to send a child's output to our stderr
STDERR_FD = 2


class CommandError(Exception):
    """Raised when an external command fails or cannot be started."""

    def __init__(
        self,
        command: list[str],
        exit_code: int | None,
        stderr: str = "",
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        if exit_code is None:
            detail = "could not be started"
        elif exit_code < 0:
            detail = "timed out"
        else:
            detail = f"exited with code {exit_code}"
        message = f"{shlex.join(command)} {detail}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


@dataclass
class CommandResult:
    """Result of a completed command.

    stdout and stderr are empty when output was not captured.
    """

    command: list[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""


def run_command(
    cmd: list[str],
    cwd: Path | None = None,
    capture: bool = False,
    timeout: float | None = None,
    stdout: int | IO[str] | None = None,
) -> CommandResult:
    """Run a command and fail on a non-zero exit.

    Args:
        cmd: Command as list of strings.
        cwd: Working directory.
        capture: Capture stdout/stderr instead of inheriting the terminal.
        timeout: Timeout in seconds (None = no timeout).
        stdout: Where uncaptured stdout goes (file descriptor or file
            object). None inherits ours. Ignored when capturing.

    Returns:
        CommandResult for the successful command.

    Raises:
        CommandError: If the command fails, times out, or cannot start.
    """
    logger.info("Running: %s", shlex.join(cmd))
    if capture:
        streams: dict[str, Any] = {"capture_output": True}
    else:
        streams = {"stdout": stdout}
    try:
        completed = subprocess.run(
            cmd,
            cwd=cwd,
            text=True,
            timeout=timeout,
            check=False,
            **streams,
        )
    except subprocess.TimeoutExpired as e:
        raise CommandError(cmd, exit_code=-1) from e
    except OSError as e:
        raise CommandError(cmd, exit_code=None, stderr=str(e)) from e

    stdout = completed.stdout or ""
    stderr = completed.stderr or ""
    if completed.returncode != 0:
        if stderr:
            logger.debug("stderr: %s", stderr)
        raise CommandError(cmd, exit_code=completed.returncode, stderr=stderr)

    return CommandResult(
        command=cmd,
        exit_code=completed.returncode,
        stdout=stdout,
        stderr=stderr,
    )


def command_succeeds(cmd: list[str], cwd: Path | None = None) -> bool:
    """Return True if the command exits 0, discarding its output."""
    logger.debug("Probing: %s", shlex.join(cmd))
    try:
        completed = subprocess.run(
            cmd,
            cwd=cwd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return False
    return completed.returncode == 0


__all__ = [
    "STDERR_FD",
    "CommandError",
    "CommandResult",
    "command_succeeds",
    "run_command",
]
