"""Pytest configuration and shared fixtures for all tests."""

import shutil
import subprocess
from pathlib import Path

import pytest

INITIAL_LOCKFILE = (
    "# This file is automatically @generated by Cargo.\n"
    "version = 3\n"
    "\n"
    "[[package]]\n"
    'name = "serde"\n'
    'version = "1.0.200"\n'
)


def run_git(cwd: Path, *args: str) -> str:
    """Run git synchronously for test setup and assertions."""
    completed = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


@pytest.fixture
def git_available():
    if shutil.which("git") is None:
        pytest.skip("git executable not available")


@pytest.fixture
def remote_and_checkout(tmp_path, git_available):
    """A bare "origin" remote and a checkout of its main branch.

    The checkout holds a committed Cargo.lock on main, which is pushed to
    the remote.
    """
    remote = tmp_path / "origin.git"
    checkout = tmp_path / "checkout"
    run_git(tmp_path, "init", "--bare", "--initial-branch=main", str(remote))
    run_git(tmp_path, "init", "--initial-branch=main", str(checkout))
    run_git(checkout, "config", "user.name", "Test Author")
    run_git(checkout, "config", "user.email", "author@example.com")
    run_git(checkout, "config", "commit.gpgsign", "false")
    (checkout / "Cargo.lock").write_text(INITIAL_LOCKFILE)
    run_git(checkout, "add", "Cargo.lock")
    run_git(checkout, "commit", "-m", "initial")
    run_git(checkout, "remote", "add", "origin", str(remote))
    run_git(checkout, "push", "origin", "main")
    return remote, checkout


@pytest.fixture
def git():
    """The synchronous git helper, for assertions against repositories."""
    return run_git
