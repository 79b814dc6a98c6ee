"""PR Publisher stage.

This package turns the Updater's artifacts into a pull request:
- Commit message and PR body construction from the update log
- Lockfile commit on a fixed branch with the automation identity
- Force-push of that branch
- Edit of the open pull request, or creation of a new labelled one
"""

from lockbump.publisher.messages import build_commit_message, build_pr_body
from lockbump.publisher.stage import (
    PRPublisher,
    PublishAction,
    PublisherConfig,
    PublishResult,
)

__all__ = [
    "PRPublisher",
    "PublishAction",
    "PublishResult",
    "PublisherConfig",
    "build_commit_message",
    "build_pr_body",
]
