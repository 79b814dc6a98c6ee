"""Updater stage.

This package refreshes the dependency lockfile:
- Pinned toolchain installation
- Update-command subprocess with combined output capture and timeout
- Noise-line filtering of the captured output
- Upload of the lockfile and update log as artifacts
"""

from lockbump.updater.log_filter import filter_noise_lines
from lockbump.updater.runner import UpdateResult, UpdateRunner
from lockbump.updater.stage import (
    UpdateCommandError,
    UpdaterConfig,
    UpdaterOutcome,
    UpdaterStage,
)
from lockbump.updater.toolchain import ToolchainInstaller, ToolchainInstallError

__all__ = [
    "ToolchainInstallError",
    "ToolchainInstaller",
    "UpdateCommandError",
    "UpdateResult",
    "UpdateRunner",
    "UpdaterConfig",
    "UpdaterOutcome",
    "UpdaterStage",
    "filter_noise_lines",
]
