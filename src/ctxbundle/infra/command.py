"""Subprocess command runner with logging."""

from __future__ import annotations

import os
import subprocess
import threading
import time
from pathlib import Path

import structlog

from ctxbundle.exceptions import CommandError, OperationCancelled


class CommandRunner:
    """Runs subprocess commands with consistent logging.

    All subprocess calls in ctxbundle should go through this class to ensure
    consistent logging, timeouts and cancellation.

    Example:
        >>> runner = CommandRunner()
        >>> returncode, stdout, _ = runner.run_capture(["echo", "hello"])
        >>> stdout.strip()
        'hello'
    """

    def __init__(
        self,
        poll_interval: float = 0.1,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        """Initialize the command runner.

        Args:
            poll_interval: Seconds between cancellation checks while a command runs.
            logger: Logger to report to (defaults to the module logger).
        """
        self.poll_interval = poll_interval
        self._log = logger if logger is not None else structlog.get_logger()

    def run_capture(
        self,
        command: list[str],
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
        check: bool = False,
        env: dict[str, str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> tuple[int, str, str]:
        """Run a command and capture stdout/stderr in memory.

        Args:
            command: Command and arguments to run.
            cwd: Working directory for the command.
            timeout: Timeout in seconds.
            check: If True, raise on non-zero exit code.
            env: Environment variables (merged with current env).
            cancel_event: When set, the running process is killed.

        Returns:
            Tuple of (returncode, stdout, stderr).

        Raises:
            CommandError: If command cannot be started or times out, or if check=True and command fails.
            OperationCancelled: If cancel_event is set before the command finishes.
        """
        log = self._log.bind(command=command, cwd=str(cwd) if cwd else None)
        log.debug("Running command (capture mode)")

        if cancel_event is not None and cancel_event.is_set():
            msg = f"Cancelled before start: {' '.join(command)}"
            raise OperationCancelled(msg)

        full_env = os.environ.copy()
        if env:
            full_env.update(env)

        try:
            process = subprocess.Popen(
                command,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=full_env,
            )
        except FileNotFoundError as e:
            log.error("Command not found", command=command[0])
            msg = f"Command not found: {command[0]}"
            raise CommandError(msg, command=command, cwd=cwd) from e
        except OSError as e:
            log.error("Failed to start command", error=str(e))
            msg = f"Failed to start command: {' '.join(command)}"
            raise CommandError(msg, command=command, cwd=cwd) from e

        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            try:
                stdout, stderr = process.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    self._kill(process)
                    log.warning("Command cancelled")
                    msg = f"Command cancelled: {' '.join(command)}"
                    raise OperationCancelled(msg) from None
                if deadline is not None and time.monotonic() >= deadline:
                    self._kill(process)
                    log.error("Command timed out", timeout=timeout)
                    msg = f"Command timed out after {timeout}s: {' '.join(command)}"
                    raise CommandError(msg, command=command, cwd=cwd) from None

        log.debug("Command completed", returncode=process.returncode)

        if check and process.returncode != 0:
            msg = f"Command failed with exit code {process.returncode}: {' '.join(command)}"
            raise CommandError(
                msg,
                command=command,
                returncode=process.returncode,
                cwd=cwd,
            )

        return process.returncode, stdout, stderr

    @staticmethod
    def _kill(process: subprocess.Popen[str]) -> None:
        process.kill()
        process.communicate()

    def run_git(
        self,
        args: list[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> tuple[int, str, str]:
        """Run a git command.

        Terminal credential prompts are disabled so an unreachable remote
        fails instead of blocking on stdin.

        Args:
            args: Git subcommand and arguments.
            cwd: Working directory.
            check: If True, raise on non-zero exit code.
            timeout: Timeout in seconds.
            cancel_event: When set, the running git process is killed.

        Returns:
            Tuple of (returncode, stdout, stderr).
        """
        return self.run_capture(
            ["git", *args],
            cwd=cwd,
            check=check,
            timeout=timeout,
            env={"GIT_TERMINAL_PROMPT": "0"},
            cancel_event=cancel_event,
        )
