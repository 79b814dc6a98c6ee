"""Pipeline orchestrator connecting the Updater and the PR Publisher.

Drives a lockfile refresh through both stages in order:
update → artifacts → commit/push → pull request edit or create.

The Publisher starts only after the Updater succeeds. Each stage records
metrics; a failure is logged with its context, counted, and re-raised so
the caller sees the pipeline fail. Nothing is retried.
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog

from lockbump.errors import LockbumpError
from lockbump.metrics import PipelineMetrics
from lockbump.publisher.stage import PRPublisher, PublishResult
from lockbump.updater.stage import UpdaterOutcome, UpdaterStage
from lockbump.vcs.repository import GitRepository

logger = structlog.get_logger()

UPDATE_STAGE = "update"
PUBLISH_STAGE = "publish"


@dataclass
class PipelineRun:
    """Summary of a full pipeline run.

    Attributes:
        update: Outcome of the Updater stage.
        publish: Outcome of the PR Publisher stage.
        duration_seconds: Wall-clock time of both stages.
    """

    update: UpdaterOutcome
    publish: PublishResult
    duration_seconds: float


class LockfileUpdatePipeline:
    """Runs the Updater and PR Publisher stages.

    Attributes:
        updater: Updater stage; required for run_update().
        publisher: PR Publisher stage; required for run_publish().
        metrics: Metrics recorder shared by both stages.
    """

    def __init__(
        self,
        updater: Optional[UpdaterStage] = None,
        publisher: Optional[PRPublisher] = None,
        metrics: Optional[PipelineMetrics] = None,
    ):
        self.updater = updater
        self.publisher = publisher
        self.metrics = metrics or PipelineMetrics()

    async def run(self, workdir: Path) -> PipelineRun:
        """Run both stages against one working copy.

        Raises:
            LockbumpError: From whichever stage failed. The Publisher never
                runs after an Updater failure.
        """
        start_time = time.monotonic()
        logger.info("Starting lockfile update pipeline", workdir=str(workdir))

        update = await self.run_update(workdir)
        publish = await self.run_publish(GitRepository(Path(workdir)))

        duration = time.monotonic() - start_time
        logger.info(
            "Lockfile update pipeline completed",
            duration=round(duration, 1),
            action=publish.action.value,
            pr_url=publish.pull_request.url,
        )
        return PipelineRun(update=update, publish=publish, duration_seconds=duration)

    async def run_update(self, workdir: Path) -> UpdaterOutcome:
        """Run the Updater stage with metrics and error logging."""
        if self.updater is None:
            raise ValueError("pipeline has no updater stage")

        start_time = time.monotonic()
        try:
            outcome = await self.updater.execute(Path(workdir))
        except LockbumpError as exc:
            self._record_failure(UPDATE_STAGE, exc)
            raise

        self.metrics.record_stage_success(UPDATE_STAGE, time.monotonic() - start_time)
        self.metrics.record_noise_lines_dropped(outcome.dropped_lines)
        return outcome

    async def run_publish(self, repository: GitRepository) -> PublishResult:
        """Run the PR Publisher stage with metrics and error logging."""
        if self.publisher is None:
            raise ValueError("pipeline has no publisher stage")

        start_time = time.monotonic()
        try:
            result = await self.publisher.publish(repository)
        except LockbumpError as exc:
            self._record_failure(PUBLISH_STAGE, exc)
            raise

        self.metrics.record_stage_success(PUBLISH_STAGE, time.monotonic() - start_time)
        self.metrics.record_pull_request(result.action.value)
        return result

    def _record_failure(self, stage: str, exc: LockbumpError) -> None:
        logger.error(
            "Pipeline stage failed",
            stage=stage,
            error_type=type(exc).__name__,
            error=exc.message,
            **exc.context,
        )
        self.metrics.record_stage_failure(stage, type(exc).__name__)
