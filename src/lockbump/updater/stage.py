"""Updater stage: refresh the lockfile and publish it with the update log.

Runs the dependency-update command once against a working copy, filters
the known noise line from its output, writes the log file, and uploads
both the lockfile and the log as artifacts, replacing those of any earlier
run. Any failure is fatal; nothing is uploaded unless the command
succeeded.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import structlog

from lockbump.artifacts.models import ArtifactManifest
from lockbump.artifacts.store import ArtifactError, ArtifactNotFoundError, ArtifactStore
from lockbump.errors import LockbumpError
from lockbump.updater.log_filter import filter_noise_lines
from lockbump.updater.runner import UpdateResult, UpdateRunner
from lockbump.updater.toolchain import ToolchainInstaller

logger = structlog.get_logger()


class UpdateCommandError(LockbumpError):
    """Raised when the update command fails, times out, or cannot start."""

    def __init__(self, result: UpdateResult):
        self.result = result
        detail = result.error or f"exit code {result.exit_code}"
        super().__init__(
            f"Update command failed: {detail}",
            context={"exit_code": result.exit_code},
        )


@dataclass
class UpdaterConfig:
    """Settings the Updater stage needs.

    Attributes:
        lockfile_path: Lockfile location relative to the working copy.
        log_filename: Name of the written log file.
        lockfile_artifact: Artifact name for the lockfile.
        log_artifact: Artifact name for the log.
        noise_substring: Output lines containing this are dropped.
        retention_days: Retention for both artifacts.
        toolchain_version: Toolchain to install first, if any.
    """

    lockfile_path: str = "Cargo.lock"
    log_filename: str = "cargo_update.log"
    lockfile_artifact: str = "Cargo-lock"
    log_artifact: str = "cargo-updates"
    noise_substring: str = "crates.io index"
    retention_days: int = 1
    toolchain_version: Optional[str] = None


@dataclass
class UpdaterOutcome:
    """Result of a successful Updater stage.

    Attributes:
        result: Raw update-command result.
        log_text: Filtered log, as written to the log artifact.
        dropped_lines: Number of noise lines removed.
        log_path: Path of the written log file.
        lockfile_manifest: Manifest of the uploaded lockfile artifact.
        log_manifest: Manifest of the uploaded log artifact.
    """

    result: UpdateResult
    log_text: str
    dropped_lines: int
    log_path: Path
    lockfile_manifest: ArtifactManifest
    log_manifest: ArtifactManifest


class UpdaterStage:
    """Runs the update command and publishes its outputs as artifacts."""

    def __init__(
        self,
        config: UpdaterConfig,
        runner: UpdateRunner,
        store: ArtifactStore,
        toolchain_installer: Optional[ToolchainInstaller] = None,
    ):
        self.config = config
        self.runner = runner
        self.store = store
        self.toolchain_installer = toolchain_installer

    async def execute(self, workdir: Path) -> UpdaterOutcome:
        """Refresh the lockfile in a working copy and upload the artifacts.

        Args:
            workdir: Repository checkout containing the lockfile.

        Returns:
            UpdaterOutcome describing the log and uploaded artifacts.

        Raises:
            ToolchainInstallError: If the pinned toolchain cannot be installed.
            UpdateCommandError: If the update command does not succeed.
            ArtifactError: If an artifact cannot be uploaded.
        """
        workdir = Path(workdir)

        if self.toolchain_installer is not None and self.config.toolchain_version:
            await self.toolchain_installer.install(self.config.toolchain_version)

        result = await self.runner.run(workdir)
        if not result.success:
            raise UpdateCommandError(result)

        log_text, dropped_lines = filter_noise_lines(
            result.output, self.config.noise_substring
        )
        logger.info(
            "Filtered update output",
            dropped_lines=dropped_lines,
            log_bytes=len(log_text.encode("utf-8")),
        )

        log_path = workdir / self.config.log_filename
        log_path.write_text(log_text, encoding="utf-8")
        lockfile_manifest, log_manifest = self._upload_artifacts(
            workdir / self.config.lockfile_path, log_path
        )

        return UpdaterOutcome(
            result=result,
            log_text=log_text,
            dropped_lines=dropped_lines,
            log_path=log_path,
            lockfile_manifest=lockfile_manifest,
            log_manifest=log_manifest,
        )

    def _upload_artifacts(
        self, lockfile_path: Path, log_path: Path
    ) -> Tuple[ArtifactManifest, ArtifactManifest]:
        """Upload the lockfile and the log as one set.

        Artifacts from an earlier run with the same names are replaced. If
        the log upload fails, both names are cleared so the store never holds
        one without the other.
        """
        for name, path in (
            (self.config.lockfile_artifact, lockfile_path),
            (self.config.log_artifact, log_path),
        ):
            if not path.is_file():
                raise ArtifactNotFoundError(
                    name, f"source file {path} does not exist"
                )

        lockfile_manifest = self.store.upload(
            self.config.lockfile_artifact,
            lockfile_path,
            self.config.retention_days,
            replace=True,
        )
        try:
            log_manifest = self.store.upload(
                self.config.log_artifact,
                log_path,
                self.config.retention_days,
                replace=True,
            )
        except (ArtifactError, OSError):
            self.store.delete(self.config.lockfile_artifact)
            self.store.delete(self.config.log_artifact)
            raise
        return lockfile_manifest, log_manifest
