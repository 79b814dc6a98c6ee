"""File-based artifact handoff between pipeline stages.

An artifact is a single file published by one stage and consumed by a
later one, possibly on another machine sharing the directory. Each
artifact lives in its own directory under the store root:

    <root>/<name>/<filename>
    <root>/<name>/manifest.json

Uploads are immutable unless the producing stage replaces its own
artifact. Expired artifacts are rejected on download and removed by
prune_expired().
"""

import hashlib
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

import structlog
from pydantic import ValidationError

from lockbump.artifacts.models import ArtifactManifest
from lockbump.errors import LockbumpError

logger = structlog.get_logger()

MANIFEST_FILENAME = "manifest.json"
HASH_CHUNK_SIZE = 64 * 1024


class ArtifactError(LockbumpError):
    """Base class for artifact store failures."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(message, context={"artifact": name})


class ArtifactExistsError(ArtifactError):
    """Raised when uploading over an unexpired artifact."""

    def __init__(self, name: str):
        super().__init__(name, f"Artifact {name!r} already exists")


class ArtifactNotFoundError(ArtifactError):
    """Raised when an artifact or its manifest is missing or unreadable."""

    def __init__(self, name: str, detail: str = "not found"):
        super().__init__(name, f"Artifact {name!r} {detail}")


class ArtifactExpiredError(ArtifactError):
    """Raised when an artifact's retention window has passed."""

    def __init__(self, name: str, expires_at: datetime):
        self.expires_at = expires_at
        super().__init__(
            name, f"Artifact {name!r} expired at {expires_at.isoformat()}"
        )


class ArtifactIntegrityError(ArtifactError):
    """Raised when a stored file no longer matches its recorded digest."""

    def __init__(self, name: str):
        super().__init__(name, f"Artifact {name!r} failed digest verification")


def _sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArtifactStore:
    """Stores named, time-limited files under a root directory.

    Attributes:
        root: Directory holding one sub-directory per artifact.
        clock: Returns the current UTC time; replaceable in tests.
    """

    def __init__(self, root: Path, clock: Callable[[], datetime] = _utcnow):
        self.root = Path(root)
        self.clock = clock

    def upload(
        self,
        name: str,
        path: Path,
        retention_days: int,
        replace: bool = False,
    ) -> ArtifactManifest:
        """Publish a file as a named artifact.

        An expired artifact of the same name is always replaced. An
        unexpired one is only overwritten when ``replace`` is set, which
        the producing stage uses to supersede its own previous run.

        Args:
            name: Artifact name.
            path: File to publish.
            retention_days: Days the artifact stays downloadable.
            replace: Overwrite an unexpired artifact of the same name.

        Returns:
            The manifest written for the artifact.

        Raises:
            ArtifactExistsError: If an unexpired artifact has this name and
                replace is not set.
            ArtifactNotFoundError: If the source file does not exist.
        """
        source = Path(path)
        if not source.is_file():
            raise ArtifactNotFoundError(
                name, f"source file {source} does not exist"
            )

        artifact_dir = self._artifact_dir(name)
        if replace:
            if artifact_dir.exists():
                self._remove_artifact(artifact_dir)
        else:
            existing = self._load_manifest_if_present(name)
            if existing is not None:
                if not existing.is_expired(self.clock()):
                    raise ArtifactExistsError(name)
                self._remove_artifact(artifact_dir)

        artifact_dir.mkdir(parents=True, exist_ok=True)
        target = artifact_dir / source.name
        shutil.copyfile(source, target)

        manifest = ArtifactManifest(
            name=name,
            filename=source.name,
            created_at=self.clock(),
            retention_days=retention_days,
            size_bytes=target.stat().st_size,
            sha256=_sha256_file(target),
        )
        (artifact_dir / MANIFEST_FILENAME).write_text(
            manifest.model_dump_json(indent=2)
        )

        logger.info(
            "Uploaded artifact",
            artifact=name,
            filename=manifest.filename,
            size_bytes=manifest.size_bytes,
            retention_days=retention_days,
        )
        return manifest

    def download(self, name: str, destination_dir: Path) -> Path:
        """Copy an artifact's file into a directory.

        The file keeps its uploaded name and replaces any file already at
        the destination.

        Returns:
            Path of the written file.

        Raises:
            ArtifactNotFoundError: If the artifact does not exist.
            ArtifactExpiredError: If the retention window has passed.
            ArtifactIntegrityError: If the stored file was modified.
        """
        manifest, stored = self._verified(name)
        destination = Path(destination_dir)
        destination.mkdir(parents=True, exist_ok=True)
        target = destination / manifest.filename
        shutil.copyfile(stored, target)

        logger.info(
            "Downloaded artifact",
            artifact=name,
            target=str(target),
        )
        return target

    def read_text(self, name: str) -> str:
        """Return a text artifact's contents after the same checks as download."""
        _, stored = self._verified(name)
        return stored.read_text(encoding="utf-8")

    def get_manifest(self, name: str) -> ArtifactManifest:
        """Return the manifest of an existing artifact.

        Raises:
            ArtifactNotFoundError: If the artifact does not exist.
        """
        manifest = self._load_manifest_if_present(name)
        if manifest is None:
            raise ArtifactNotFoundError(name)
        return manifest

    def list_artifacts(self) -> List[ArtifactManifest]:
        """Return manifests of all readable artifacts, sorted by name."""
        if not self.root.exists():
            return []
        manifests = []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir():
                continue
            try:
                manifest = self._load_manifest_if_present(entry.name)
            except ArtifactNotFoundError as exc:
                logger.warning(
                    "Skipping unreadable artifact",
                    artifact=entry.name,
                    error=exc.message,
                )
                continue
            if manifest is not None:
                manifests.append(manifest)
        return manifests

    def delete(self, name: str) -> bool:
        """Remove an artifact if present.

        Returns:
            True if an artifact was removed.
        """
        artifact_dir = self._artifact_dir(name)
        if not artifact_dir.is_dir():
            return False
        self._remove_artifact(artifact_dir)
        return True

    def prune_expired(self) -> int:
        """Remove artifacts whose retention window has passed.

        Returns:
            Number of artifacts removed.
        """
        now = self.clock()
        removed_count = 0
        for manifest in self.list_artifacts():
            if manifest.is_expired(now):
                self._remove_artifact(self._artifact_dir(manifest.name))
                removed_count += 1

        logger.info("Artifact cleanup complete", removed_count=removed_count)
        return removed_count

    def _artifact_dir(self, name: str) -> Path:
        return self.root / name

    def _verified(self, name: str):
        manifest = self.get_manifest(name)
        if manifest.is_expired(self.clock()):
            raise ArtifactExpiredError(name, manifest.expires_at)

        stored = self._artifact_dir(name) / manifest.filename
        if not stored.is_file():
            raise ArtifactNotFoundError(name, "file is missing")
        if _sha256_file(stored) != manifest.sha256:
            raise ArtifactIntegrityError(name)
        return manifest, stored

    def _load_manifest_if_present(self, name: str) -> Optional[ArtifactManifest]:
        manifest_path = self._artifact_dir(name) / MANIFEST_FILENAME
        if not manifest_path.is_file():
            return None
        try:
            return ArtifactManifest.model_validate_json(manifest_path.read_text())
        except ValidationError as exc:
            raise ArtifactNotFoundError(
                name, f"has an unreadable manifest: {exc}"
            ) from exc

    def _remove_artifact(self, artifact_dir: Path) -> None:
        shutil.rmtree(artifact_dir)
        logger.info("Removed artifact", artifact=artifact_dir.name)
