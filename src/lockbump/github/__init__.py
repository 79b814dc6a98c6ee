"""Code-hosting backends for pull request interactions.

This package provides two implementations of the PullRequestHost protocol:
- GitHubClient: async GitHub REST API client over httpx
- GhCliClient: the gh command line tool driven as a subprocess

Both support finding the pull request for a branch, editing it in place,
and creating a labelled pull request.
"""

from lockbump.github.client import GitHubAPIError, GitHubClient, RateLimitError
from lockbump.github.gh_cli import GhCliClient, GhCommandError
from lockbump.github.host import PullRequestHost, PullRequestHostError
from lockbump.github.models import PRCreateRequest, PullRequest, PullRequestState

__all__ = [
    "GhCliClient",
    "GhCommandError",
    "GitHubAPIError",
    "GitHubClient",
    "PRCreateRequest",
    "PullRequest",
    "PullRequestHost",
    "PullRequestHostError",
    "PullRequestState",
    "RateLimitError",
]
