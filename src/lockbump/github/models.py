"""Pull request data models shared by the code-hosting backends."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PullRequestState(str, Enum):
    """Lifecycle state of a pull request.

    Only OPEN leads to an in-place edit; every other state, like an absent
    PR, makes the publisher create a new one.
    """

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    MERGED = "MERGED"


class PullRequest(BaseModel):
    """A pull request as seen by the publisher.

    Attributes:
        number: Pull request number.
        url: Browser URL of the pull request.
        head_branch: Source branch.
        title: Current title.
        state: Lifecycle state.
    """

    number: int
    url: str
    head_branch: str
    title: str = ""
    state: PullRequestState

    @property
    def is_open(self) -> bool:
        return self.state == PullRequestState.OPEN

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "PullRequest":
        """Build from a REST API pull request object.

        The REST API reports merged PRs as "closed" with merged_at set.
        """
        if data.get("merged_at"):
            state = PullRequestState.MERGED
        else:
            state = PullRequestState(str(data.get("state", "")).upper())
        return cls(
            number=data["number"],
            url=data.get("html_url", ""),
            head_branch=data.get("head", {}).get("ref", ""),
            title=data.get("title", ""),
            state=state,
        )

    @classmethod
    def from_gh_json(cls, data: Dict[str, Any]) -> "PullRequest":
        """Build from ``gh pr view --json`` output."""
        return cls(
            number=data["number"],
            url=data.get("url", ""),
            head_branch=data.get("headRefName", ""),
            title=data.get("title", ""),
            state=PullRequestState(str(data.get("state", "")).upper()),
        )


class PRCreateRequest(BaseModel):
    """Request to open a pull request.

    Attributes:
        title: Pull request title.
        body: Markdown body.
        head_branch: Branch containing the changes.
        base_branch: Target branch; None means the repository default.
        labels: Labels applied after creation.
    """

    title: str
    body: str
    head_branch: str
    base_branch: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
