"""Named, time-limited file handoff between pipeline stages.

The Updater uploads the refreshed lockfile and the filtered update log;
the PR Publisher downloads them. Artifacts are immutable once uploaded and
expire after their retention window.
"""

from lockbump.artifacts.models import ArtifactManifest
from lockbump.artifacts.store import (
    ArtifactError,
    ArtifactExistsError,
    ArtifactExpiredError,
    ArtifactIntegrityError,
    ArtifactNotFoundError,
    ArtifactStore,
)

__all__ = [
    "ArtifactError",
    "ArtifactExistsError",
    "ArtifactExpiredError",
    "ArtifactIntegrityError",
    "ArtifactManifest",
    "ArtifactNotFoundError",
    "ArtifactStore",
]
