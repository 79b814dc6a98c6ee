"""Git working-copy operations used by the PR Publisher."""

from lockbump.vcs.repository import (
    GitCommandError,
    GitRepository,
    NothingToCommitError,
    parse_remote_slug,
)

__all__ = [
    "GitCommandError",
    "GitRepository",
    "NothingToCommitError",
    "parse_remote_slug",
]
