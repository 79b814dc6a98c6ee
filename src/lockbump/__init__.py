"""Scheduled dependency lockfile refresh with pull request publishing.

This package implements a two-stage pipeline:
- Updater: runs the dependency-update command and publishes the lockfile
  and the filtered command log as artifacts
- PR Publisher: commits the lockfile on a fixed branch, force-pushes it,
  and edits the open pull request for that branch or creates a new one
"""

__version__ = "1.0.0"
