"""Data models for stage-to-stage artifacts."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field


class ArtifactManifest(BaseModel):
    """Metadata stored next to an uploaded artifact file.

    Attributes:
        name: Artifact name, unique within a store.
        filename: Name of the stored file; restored on download.
        created_at: Upload time (UTC).
        retention_days: Days the artifact stays downloadable.
        size_bytes: Size of the stored file.
        sha256: Hex digest of the stored file.
    """

    name: str
    filename: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    retention_days: int = Field(ge=1)
    size_bytes: int = Field(ge=0)
    sha256: str

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(days=self.retention_days)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the retention window has passed."""
        current = now or datetime.now(timezone.utc)
        return current >= self.expires_at
