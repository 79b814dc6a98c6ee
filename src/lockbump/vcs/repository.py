"""Git operations for committing and publishing the lockfile branch.

Runs git as an async subprocess inside a working copy. Every command that
exits non-zero raises GitCommandError with the argv, exit code, and
stderr, so callers see exactly which step of the commit/push sequence
failed.
"""

import asyncio
import re
from pathlib import Path
from typing import List, Optional, Sequence

import structlog

from lockbump.errors import LockbumpError

logger = structlog.get_logger()

GIT_COMMAND_TIMEOUT_SECONDS = 300

# https://host/owner/repo(.git), ssh://git@host/owner/repo(.git), git@host:owner/repo(.git)
REMOTE_SLUG_PATTERN = re.compile(
    r"(?:[:/])(?P<owner>[^/:]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"
)


class GitCommandError(LockbumpError):
    """Raised when a git command fails.

    Attributes:
        argv: Full command line that was run.
        exit_code: Process exit code (-1 for timeout/OS errors).
        stderr: Captured standard error.
    """

    def __init__(self, argv: Sequence[str], exit_code: int, stderr: str):
        self.argv = list(argv)
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(
            f"{' '.join(self.argv)} failed with exit code {exit_code}: {stderr}",
            context={"command": " ".join(self.argv), "exit_code": exit_code},
        )


class NothingToCommitError(GitCommandError):
    """Raised when a commit is requested with nothing staged."""

    def __init__(self, argv: Sequence[str]):
        super().__init__(argv, 1, "nothing staged to commit")


def parse_remote_slug(url: str) -> Optional[str]:
    """Extract "owner/repo" from a git remote URL.

    Returns:
        The slug, or None when the URL does not look like owner/repo.
    """
    match = REMOTE_SLUG_PATTERN.search(url.strip())
    if match is None:
        return None
    return f"{match.group('owner')}/{match.group('repo')}"


class GitRepository:
    """A git working copy driven through the git CLI.

    Attributes:
        path: Root of the working copy.
        git_path: Path or name of the git executable.
        timeout_seconds: Maximum time allowed for any single command.
    """

    def __init__(
        self,
        path: Path,
        git_path: str = "git",
        timeout_seconds: int = GIT_COMMAND_TIMEOUT_SECONDS,
    ):
        self.path = Path(path)
        self.git_path = git_path
        self.timeout_seconds = timeout_seconds

    async def configure_identity(self, name: str, email: str) -> None:
        """Set the committer identity in the repository-local config."""
        await self._git("config", "user.name", name)
        await self._git("config", "user.email", email)

    async def switch_force_create(self, branch: str) -> None:
        """Create the branch at HEAD, resetting it if it already exists."""
        await self._git("switch", "--force-create", branch)

    async def add(self, *paths: str) -> None:
        await self._git("add", "--", *paths)

    async def has_staged_changes(self) -> bool:
        """Return True when the index differs from HEAD."""
        argv, exit_code, _, stderr = await self._run("diff", "--cached", "--quiet")
        if exit_code == 0:
            return False
        if exit_code == 1:
            return True
        raise GitCommandError(argv, exit_code, stderr)

    async def commit(self, message_file: Path, no_verify: bool = True) -> str:
        """Commit the staged changes with a message read from a file.

        Returns:
            SHA of the new commit.

        Raises:
            NothingToCommitError: If nothing is staged.
            GitCommandError: If git commit fails.
        """
        args = ["commit"]
        if no_verify:
            args.append("--no-verify")
        args.append(f"--file={message_file}")

        if not await self.has_staged_changes():
            raise NothingToCommitError([self.git_path, *args])

        await self._git(*args)
        sha = await self.head_sha()
        logger.info("Created commit", sha=sha)
        return sha

    async def head_sha(self) -> str:
        return (await self._git("rev-parse", "HEAD")).strip()

    async def push(
        self,
        remote: str,
        branch: str,
        force: bool = True,
        no_verify: bool = True,
        set_upstream: bool = True,
    ) -> None:
        """Push a branch to a remote, overwriting it when force is set."""
        args = ["push"]
        if no_verify:
            args.append("--no-verify")
        if force:
            args.append("--force")
        if set_upstream:
            args.append("--set-upstream")
        args.extend([remote, branch])

        await self._git(*args)
        logger.info("Pushed branch", remote=remote, branch=branch, force=force)

    async def remote_url(self, remote: str) -> str:
        return (await self._git("remote", "get-url", remote)).strip()

    async def remote_repository_slug(self, remote: str) -> Optional[str]:
        """Return "owner/repo" for a remote, or None if it cannot be parsed."""
        return parse_remote_slug(await self.remote_url(remote))

    async def _git(self, *args: str) -> str:
        """Run a git command and return its stdout.

        Raises:
            GitCommandError: If the command exits non-zero.
        """
        argv, exit_code, stdout, stderr = await self._run(*args)
        if exit_code != 0:
            logger.error(
                "git command failed",
                command=" ".join(argv),
                exit_code=exit_code,
                stderr=stderr[:500],
            )
            raise GitCommandError(argv, exit_code, stderr)
        return stdout

    async def _run(self, *args: str):
        argv: List[str] = [self.git_path, *args]
        logger.debug("Running git", command=" ".join(argv), cwd=str(self.path))

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(self.path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise GitCommandError(
                argv, -1, f"timed out after {self.timeout_seconds}s"
            ) from exc
        except OSError as exc:
            raise GitCommandError(argv, -1, f"failed to execute git: {exc}") from exc

        return (
            argv,
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace").strip(),
        )
