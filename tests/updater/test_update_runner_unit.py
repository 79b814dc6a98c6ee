"""Unit tests for the update-command runner.

Tests subprocess invocation, combined output capture, exit code handling,
timeout enforcement, and launch failures for UpdateRunner.
"""

import asyncio
import sys
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lockbump.updater.runner import UpdateRunner


def run_async(coro):
    return asyncio.run(coro)


@pytest.fixture
def runner():
    return UpdateRunner(
        argv=["cargo", "+1.86.0", "update"],
        env={"RUSTC_BOOTSTRAP": "1"},
        timeout_seconds=60,
    )


def _make_mock_process(returncode: int = 0, chunks: Optional[List[bytes]] = None):
    """Build a mock subprocess with a readable combined output stream."""
    process = AsyncMock()
    process.returncode = returncode
    process.kill = MagicMock()

    reader = AsyncMock()
    reader.read = AsyncMock(side_effect=list(chunks or []) + [b""])
    process.stdout = reader
    process.stderr = None
    process.wait = AsyncMock()
    return process


class TestInvocation:

    def test_command_runs_in_workdir_with_merged_stderr(self, runner, tmp_path):
        process = _make_mock_process()
        with patch("asyncio.create_subprocess_exec", return_value=process) as spawn:
            run_async(runner.run(tmp_path))

        args, kwargs = spawn.call_args
        assert list(args) == ["cargo", "+1.86.0", "update"]
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["stderr"] == asyncio.subprocess.STDOUT
        assert kwargs["stdout"] == asyncio.subprocess.PIPE

    def test_extra_env_merged_over_process_env(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("LOCKBUMP_TEST_MARKER", "present")
        process = _make_mock_process()
        with patch("asyncio.create_subprocess_exec", return_value=process) as spawn:
            run_async(runner.run(tmp_path))

        env = spawn.call_args.kwargs["env"]
        assert env["RUSTC_BOOTSTRAP"] == "1"
        assert env["LOCKBUMP_TEST_MARKER"] == "present"

    def test_empty_argv_rejected(self):
        with pytest.raises(ValueError):
            UpdateRunner(argv=[])


class TestOutputCapture:

    def test_output_captured_verbatim(self, runner, tmp_path):
        process = _make_mock_process(
            chunks=[
                b"    Updating crates.io index\n",
                b"     Locking 2 packages to latest compatible versions\n",
                b"    Updating serde v1.0.200 -> v1.0.210\n",
            ]
        )
        with patch("asyncio.create_subprocess_exec", return_value=process):
            result = run_async(runner.run(tmp_path))

        assert result.success is True
        assert result.output == (
            "    Updating crates.io index\n"
            "     Locking 2 packages to latest compatible versions\n"
            "    Updating serde v1.0.200 -> v1.0.210\n"
        )

    def test_line_callback_receives_stripped_lines(self, runner, tmp_path):
        seen = []
        process = _make_mock_process(chunks=[b"one\n", b"two\n"])
        with patch("asyncio.create_subprocess_exec", return_value=process):
            run_async(runner.run(tmp_path, line_callback=seen.append))

        assert seen == ["one", "two"]

    def test_invalid_utf8_replaced(self, runner, tmp_path):
        process = _make_mock_process(chunks=[b"bad \xff byte\n"])
        with patch("asyncio.create_subprocess_exec", return_value=process):
            result = run_async(runner.run(tmp_path))

        assert result.output == "bad � byte\n"

    def test_lines_split_across_chunks(self, runner, tmp_path):
        seen = []
        process = _make_mock_process(
            chunks=[b"    Updat", b"ing serde\n    Lock", b"ing 1\ntail"]
        )
        with patch("asyncio.create_subprocess_exec", return_value=process):
            result = run_async(runner.run(tmp_path, line_callback=seen.append))

        assert result.output == "    Updating serde\n    Locking 1\ntail"
        assert seen == ["    Updating serde", "    Locking 1", "tail"]

    def test_line_longer_than_stream_limit(self, runner, tmp_path):
        long_line = b"x" * 200_000 + b"\n"
        chunks = [long_line[i:i + 65536] for i in range(0, len(long_line), 65536)]
        process = _make_mock_process(chunks=chunks)
        with patch("asyncio.create_subprocess_exec", return_value=process):
            result = run_async(runner.run(tmp_path))

        assert result.success is True
        assert result.output == long_line.decode()

    def test_real_process_with_long_line(self, tmp_path):
        long_runner = UpdateRunner(
            argv=[sys.executable, "-c", "print('x' * 200000)"], timeout_seconds=60
        )

        result = run_async(long_runner.run(tmp_path))

        assert result.success is True
        assert result.output.rstrip("\r\n") == "x" * 200000

    def test_callback_error_kills_process(self, runner, tmp_path):
        process = _make_mock_process(chunks=[b"one\n"])
        process.returncode = None

        def explode(line):
            raise RuntimeError("callback failed")

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(RuntimeError, match="callback failed"):
                run_async(runner.run(tmp_path, line_callback=explode))

        process.kill.assert_called_once()
        process.wait.assert_awaited()


class TestExitCodes:

    def test_nonzero_exit_is_failure(self, runner, tmp_path):
        process = _make_mock_process(
            returncode=101,
            chunks=[b"error: failed to select a version\n"],
        )
        with patch("asyncio.create_subprocess_exec", return_value=process):
            result = run_async(runner.run(tmp_path))

        assert result.success is False
        assert result.exit_code == 101
        assert "failed to select a version" in result.output

    def test_duration_is_recorded(self, runner, tmp_path):
        process = _make_mock_process()
        with patch("asyncio.create_subprocess_exec", return_value=process):
            result = run_async(runner.run(tmp_path))

        assert result.duration_seconds >= 0


class TestFailuresToRun:

    def test_timeout_kills_process(self, tmp_path):
        short_runner = UpdateRunner(argv=["cargo", "update"], timeout_seconds=0.05)
        process = AsyncMock()
        process.kill = MagicMock()
        process.wait = AsyncMock()

        async def hang(size):
            await asyncio.sleep(10)
            return b""

        reader = AsyncMock()
        reader.read = hang
        process.stdout = reader

        with patch("asyncio.create_subprocess_exec", return_value=process):
            result = run_async(short_runner.run(tmp_path))

        assert result.success is False
        assert result.exit_code == -1
        assert "timed out" in result.error
        process.kill.assert_called_once()

    def test_missing_executable_is_failure(self, runner, tmp_path):
        with patch(
            "asyncio.create_subprocess_exec",
            side_effect=FileNotFoundError("cargo"),
        ):
            result = run_async(runner.run(tmp_path))

        assert result.success is False
        assert result.exit_code == -1
        assert "Failed to start" in result.error
