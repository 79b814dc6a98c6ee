"""Protocol for the code-hosting operations the publisher needs."""

from typing import Optional, Protocol

from lockbump.errors import LockbumpError
from lockbump.github.models import PRCreateRequest, PullRequest


class PullRequestHostError(LockbumpError):
    """Raised when a code-hosting operation fails."""


class PullRequestHost(Protocol):
    """Pull request lookup, edit, and creation for one repository."""

    async def find_pull_request(self, branch: str) -> Optional[PullRequest]:
        """Return the most recent pull request whose head is the branch.

        Returns None when the branch has never had a pull request.
        """
        ...

    async def edit_pull_request(
        self, number: int, title: str, body: str
    ) -> PullRequest:
        """Replace a pull request's title and body."""
        ...

    async def create_pull_request(self, request: PRCreateRequest) -> PullRequest:
        """Open a pull request and apply the requested labels."""
        ...

    async def close(self) -> None:
        """Release any resources held by the backend."""
        ...
