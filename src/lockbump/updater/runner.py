"""Dependency-update command subprocess management.

Executes the update command (``cargo update`` by default) as an async
subprocess with timeout enforcement, output streaming, and structured
result capture. Standard error is merged into standard output so the
captured text matches what the command prints to a terminal.
"""

import asyncio
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger()

READ_CHUNK_SIZE = 64 * 1024


@dataclass
class UpdateResult:
    """Result of a single update-command execution.

    Attributes:
        success: True when the command exited with code 0.
        exit_code: Process exit code (-1 for timeout/OS errors).
        output: Combined stdout/stderr exactly as captured.
        duration_seconds: Wall-clock execution time.
        error: Description of a timeout or launch failure, if any.
    """

    success: bool
    exit_code: int
    output: str
    duration_seconds: float
    error: Optional[str] = None


class UpdateRunner:
    """Runs the dependency-update command once.

    Launches the command as an async subprocess in the repository working
    copy, streams output line-by-line to the debug log and an optional
    callback, enforces a timeout, and returns a structured result. The
    command is never retried.

    Attributes:
        argv: Command and arguments to execute.
        env: Extra environment variables merged over the current environment.
        timeout_seconds: Maximum execution time before the process is killed.
    """

    def __init__(
        self,
        argv: List[str],
        env: Optional[Dict[str, str]] = None,
        timeout_seconds: int = 1800,
    ):
        if not argv:
            raise ValueError("argv cannot be empty")
        self.argv = list(argv)
        self.env = dict(env or {})
        self.timeout_seconds = timeout_seconds

    async def run(
        self,
        workdir: Path,
        line_callback: Optional[Callable[[str], None]] = None,
    ) -> UpdateResult:
        """Execute the update command in a working copy.

        Args:
            workdir: Repository checkout containing the lockfile.
            line_callback: Optional function called with each output line.

        Returns:
            UpdateResult with exit code, captured output, and duration.
        """
        start_time = time.monotonic()
        process = None

        try:
            process = await self._start_process(workdir)
            output = await self._collect_output_with_timeout(
                process, line_callback
            )
            exit_code = process.returncode or 0
        except asyncio.TimeoutError:
            return await self._handle_timeout(process, start_time)
        except OSError as exc:
            return self._handle_os_error(exc, start_time)
        finally:
            if process is not None and process.returncode is None:
                process.kill()
                await process.wait()

        duration = time.monotonic() - start_time
        return self._build_result(exit_code, output, duration)

    def _build_env(self) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(self.env)
        return env

    async def _start_process(self, workdir: Path) -> asyncio.subprocess.Process:
        """Launch the update subprocess.

        Raises:
            OSError: If the executable cannot be found or started.
        """
        logger.info(
            "Starting update command",
            command=" ".join(self.argv),
            workdir=str(workdir),
            timeout=self.timeout_seconds,
        )

        return await asyncio.create_subprocess_exec(
            *self.argv,
            cwd=str(workdir),
            env=self._build_env(),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )

    async def _collect_output_with_timeout(
        self,
        process: asyncio.subprocess.Process,
        line_callback: Optional[Callable[[str], None]],
    ) -> str:
        """Stream and collect process output within the timeout window.

        Raises:
            asyncio.TimeoutError: If the process exceeds the timeout.
        """
        lines: List[str] = []

        async def stream_output():
            async for line in self._read_stream(process.stdout):
                lines.append(line)
                self._emit_line(line, line_callback)
            await process.wait()

        await asyncio.wait_for(stream_output(), timeout=self.timeout_seconds)
        return "".join(lines)

    async def _read_stream(self, stream: Optional[asyncio.StreamReader]):
        """Yield decoded lines from an async stream, terminators included.

        Reads fixed-size chunks and splits on newlines itself, so a single
        line may be longer than the stream reader's buffer limit.
        """
        if stream is None:
            return

        pending = bytearray()
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            pending.extend(chunk)
            start = 0
            while True:
                newline = pending.find(b"\n", start)
                if newline < 0:
                    break
                yield pending[start:newline + 1].decode("utf-8", errors="replace")
                start = newline + 1
            del pending[:start]

        if pending:
            yield pending.decode("utf-8", errors="replace")

    def _emit_line(
        self,
        line: str,
        line_callback: Optional[Callable[[str], None]],
    ) -> None:
        stripped = line.rstrip("\n")
        logger.debug("update output", line=stripped)
        if line_callback is not None:
            line_callback(stripped)

    async def _handle_timeout(
        self,
        process: Optional[asyncio.subprocess.Process],
        start_time: float,
    ) -> UpdateResult:
        """Kill the process and return a timeout failure result."""
        if process is not None:
            process.kill()
            await process.wait()
        duration = time.monotonic() - start_time
        message = f"Update command timed out after {self.timeout_seconds}s"
        logger.error(message, timeout=self.timeout_seconds)
        return UpdateResult(
            success=False,
            exit_code=-1,
            output="",
            duration_seconds=duration,
            error=message,
        )

    def _handle_os_error(self, exc: OSError, start_time: float) -> UpdateResult:
        """Return a failure result for OS-level errors (e.g., missing binary)."""
        duration = time.monotonic() - start_time
        message = f"Failed to start update command: {exc}"
        logger.error(message, command=self.argv[0])
        return UpdateResult(
            success=False,
            exit_code=-1,
            output="",
            duration_seconds=duration,
            error=message,
        )

    def _build_result(
        self,
        exit_code: int,
        output: str,
        duration: float,
    ) -> UpdateResult:
        is_success = exit_code == 0

        if is_success:
            logger.info(
                "Update command completed",
                duration=round(duration, 1),
            )
        else:
            logger.error(
                "Update command failed",
                exit_code=exit_code,
                duration=round(duration, 1),
            )

        return UpdateResult(
            success=is_success,
            exit_code=exit_code,
            output=output,
            duration_seconds=duration,
        )
