"""Command Executor - the single seam through which external processes are run."""

import os
import subprocess
import threading
import time
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from scriptcast.core.exceptions import CommandNotFound, CommandTimeout, PipelineTimeout
from scriptcast.utils.io_utils import JobDeadline

OutputCallback = Callable[[str], None]


class CommandResult(BaseModel):
    """Captured output of a finished external command."""

    stdout: str = Field(default="", description="Captured standard output")
    stderr: str = Field(default="", description="Captured standard error")
    exit_code: int = Field(..., description="Process exit code")

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandExecutor:
    """Interface for running external commands. Tests substitute a fake implementation."""

    def run(
        self,
        args: list[str],
        timeout: Optional[float],
        env: Optional[dict[str, str]] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> CommandResult:
        """
        Run a command to completion.

        Args:
            args: Program and arguments
            timeout: Seconds before the process is killed (None for no limit)
            env: Extra environment variables merged over the current environment
            on_output: Called with each stdout line as it is produced

        Returns:
            CommandResult with captured output and exit code

        Raises:
            CommandNotFound: If the program does not exist
            CommandTimeout: If the timeout expires
            PipelineTimeout: If the job deadline expires while the command runs
        """
        raise NotImplementedError


class SubprocessExecutor(CommandExecutor):
    """Runs commands with subprocess, streaming output and killing on timeout."""

    def __init__(self, logger: Any, deadline: Optional[JobDeadline] = None):
        """
        Initialize subprocess executor.

        Args:
            logger: Logger instance
            deadline: Optional job deadline every timeout is clamped to
        """
        self.logger = logger
        self.deadline = deadline

    def run(
        self,
        args: list[str],
        timeout: Optional[float],
        env: Optional[dict[str, str]] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> CommandResult:
        effective_timeout = self.deadline.clamp(timeout) if self.deadline else timeout
        if self.deadline:
            self.deadline.check(args[0])

        process_env = None
        if env:
            process_env = os.environ.copy()
            process_env.update(env)

        self.logger.debug(f"Running: {' '.join(args[:6])}{' ...' if len(args) > 6 else ''}")
        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                env=process_env,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as e:
            raise CommandNotFound(f"Command not found: {args[0]}") from e

        stdout_lines: list[str] = []
        stderr_lines: list[str] = []

        def read_stdout():
            for line in process.stdout:
                stdout_lines.append(line)
                if on_output:
                    on_output(line.rstrip("\n"))

        def read_stderr():
            for line in process.stderr:
                stderr_lines.append(line)

        readers = [
            threading.Thread(target=read_stdout, daemon=True),
            threading.Thread(target=read_stderr, daemon=True),
        ]
        for reader in readers:
            reader.start()

        try:
            process.wait(timeout=effective_timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
            for reader in readers:
                reader.join(timeout=1.0)
            stderr = "".join(stderr_lines)
            if self.deadline and self.deadline.expired():
                raise PipelineTimeout(
                    f"Job deadline exceeded while running {args[0]}", diagnostics=stderr[-2000:] or None
                )
            raise CommandTimeout(args, effective_timeout or 0.0, stderr)

        for reader in readers:
            reader.join()

        return CommandResult(
            stdout="".join(stdout_lines),
            stderr="".join(stderr_lines),
            exit_code=process.returncode,
        )


class ThrottledProgressLogger:
    """Logs streaming progress lines at most once per interval."""

    def __init__(self, logger: Any, label: str, interval_seconds: float = 2.0, total_seconds: Optional[float] = None):
        self.logger = logger
        self.label = label
        self.interval_seconds = interval_seconds
        self.total_seconds = total_seconds
        self._last_logged: Optional[float] = None

    def __call__(self, line: str) -> None:
        # ffmpeg -progress emits key=value lines; out_time_us marks encoded position
        if not line.startswith("out_time_us=") and not line.startswith("out_time_ms="):
            return
        try:
            position = int(line.split("=", 1)[1]) / 1_000_000
        except ValueError:
            return
        now = time.monotonic()
        if self._last_logged is not None and now - self._last_logged < self.interval_seconds:
            return
        self._last_logged = now
        if self.total_seconds:
            percent = min(100.0, position / self.total_seconds * 100)
            self.logger.info(f"🎬 {self.label}: {position:.1f}s / {self.total_seconds:.1f}s ({percent:.0f}%)")
        else:
            self.logger.info(f"🎬 {self.label}: {position:.1f}s encoded")
