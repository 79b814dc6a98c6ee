"""gh CLI backend for pull request lookup, edit, and creation.

Drives the GitHub CLI as an async subprocess. Bodies are passed on stdin
(``--body-file -``) so no temporary files are needed. The token, when
given, is exported as GH_TOKEN for the child process only.
"""

import asyncio
import json
import os
from typing import Dict, List, Optional

import structlog

from lockbump.github.host import PullRequestHostError
from lockbump.github.models import PRCreateRequest, PullRequest, PullRequestState

logger = structlog.get_logger()

GH_COMMAND_TIMEOUT_SECONDS = 120
GH_VIEW_FIELDS = "number,url,state,title,headRefName"
NO_PULL_REQUEST_MARKER = "no pull requests found"


class GhCommandError(PullRequestHostError):
    """Raised when a gh command fails.

    Attributes:
        argv: Full command line that was run.
        exit_code: Process exit code (-1 for timeout/OS errors).
        stderr: Captured standard error.
    """

    def __init__(self, argv: List[str], exit_code: int, stderr: str):
        self.argv = list(argv)
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(
            f"gh {' '.join(self.argv[1:3])} failed with exit code {exit_code}: {stderr}",
            context={"exit_code": exit_code},
        )


class GhCliClient:
    """PullRequestHost implementation backed by the gh CLI.

    Attributes:
        repository: Repository slug, "owner/repo".
        gh_path: Path or name of the gh executable.
        token: Optional token exported as GH_TOKEN.
        timeout_seconds: Maximum time allowed for a single gh command.
    """

    def __init__(
        self,
        repository: str,
        gh_path: str = "gh",
        token: Optional[str] = None,
        timeout_seconds: int = GH_COMMAND_TIMEOUT_SECONDS,
    ):
        self.repository = repository
        self.gh_path = gh_path
        self.token = token
        self.timeout_seconds = timeout_seconds

    async def find_pull_request(self, branch: str) -> Optional[PullRequest]:
        """Return the most recent pull request whose head is the branch."""
        logger.info("Looking up pull request", repository=self.repository, branch=branch)

        argv = self._argv(
            "pr", "view", branch, "--repo", self.repository, "--json", GH_VIEW_FIELDS
        )
        exit_code, stdout, stderr = await self._run(argv)
        if exit_code != 0:
            if NO_PULL_REQUEST_MARKER in stderr.lower():
                logger.info("No pull request for branch", branch=branch)
                return None
            raise GhCommandError(argv, exit_code, stderr)

        pull_request = self._parse_pull_request(argv, stdout)

        logger.info(
            "Found pull request",
            pr_number=pull_request.number,
            state=pull_request.state.value,
        )
        return pull_request

    async def edit_pull_request(self, number: int, title: str, body: str) -> PullRequest:
        """Replace a pull request's title and body, then re-read it."""
        logger.info("Editing pull request", repository=self.repository, pr_number=number)

        argv = self._argv(
            "pr", "edit", str(number),
            "--repo", self.repository,
            "--title", title,
            "--body-file", "-",
        )
        await self._checked(argv, stdin=body)

        view_argv = self._argv(
            "pr", "view", str(number),
            "--repo", self.repository,
            "--json", GH_VIEW_FIELDS,
        )
        stdout = await self._checked(view_argv)
        return self._parse_pull_request(view_argv, stdout)

    async def create_pull_request(self, request: PRCreateRequest) -> PullRequest:
        """Open a pull request with its labels in a single gh call."""
        logger.info(
            "Creating pull request",
            repository=self.repository,
            title=request.title,
            head=request.head_branch,
            base=request.base_branch,
        )

        argv = self._argv(
            "pr", "create",
            "--repo", self.repository,
            "--title", request.title,
            "--body-file", "-",
            "--head", request.head_branch,
        )
        if request.base_branch:
            argv.extend(["--base", request.base_branch])
        for label in request.labels:
            argv.extend(["--label", label])

        stdout = await self._checked(argv, stdin=request.body)
        url = stdout.strip().splitlines()[-1] if stdout.strip() else ""
        number = self._number_from_url(url)

        logger.info("Pull request created", pr_number=number, pr_url=url)
        return PullRequest(
            number=number,
            url=url,
            head_branch=request.head_branch,
            title=request.title,
            state=PullRequestState.OPEN,
        )

    async def close(self) -> None:
        return None

    def _argv(self, *args: str) -> List[str]:
        return [self.gh_path, *args]

    @staticmethod
    def _parse_pull_request(argv: List[str], stdout: str) -> PullRequest:
        try:
            return PullRequest.from_gh_json(json.loads(stdout))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise GhCommandError(argv, 0, f"unparseable output: {exc!r}") from exc

    @staticmethod
    def _number_from_url(url: str) -> int:
        tail = url.rstrip("/").rsplit("/", 1)[-1]
        try:
            return int(tail)
        except ValueError:
            return 0

    def _build_env(self) -> Dict[str, str]:
        env = dict(os.environ)
        if self.token:
            env["GH_TOKEN"] = self.token
        # Keep gh from prompting or paging in non-interactive runs
        env.setdefault("GH_PROMPT_DISABLED", "1")
        env.setdefault("GH_PAGER", "cat")
        return env

    async def _checked(self, argv: List[str], stdin: Optional[str] = None) -> str:
        exit_code, stdout, stderr = await self._run(argv, stdin)
        if exit_code != 0:
            logger.error(
                "gh command failed",
                command=" ".join(argv[:3]),
                exit_code=exit_code,
                stderr=stderr[:500],
            )
            raise GhCommandError(argv, exit_code, stderr)
        return stdout

    async def _run(self, argv: List[str], stdin: Optional[str] = None):
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                env=self._build_env(),
                stdin=asyncio.subprocess.PIPE if stdin is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await asyncio.wait_for(
                process.communicate(
                    stdin.encode("utf-8") if stdin is not None else None
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise GhCommandError(
                argv, -1, f"timed out after {self.timeout_seconds}s"
            ) from exc
        except OSError as exc:
            raise GhCommandError(argv, -1, f"failed to execute gh: {exc}") from exc

        return (
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace").strip(),
        )
