"""Command line entry point for scheduled lockfile updates.

Subcommands map onto the pipeline stages so CI can run them as separate
jobs sharing an artifact directory, or together in one process:

- update: refresh the lockfile and upload the lockfile and log artifacts
- publish: commit the lockfile artifact and open or edit the pull request
- run: update, then publish
- prune-artifacts: remove artifacts past their retention window

Exit code 0 means success and 1 means the pipeline failed.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer
from pydantic import ValidationError

from lockbump.artifacts.store import ArtifactStore
from lockbump.config import LockbumpSettings, get_settings
from lockbump.errors import LockbumpError
from lockbump.github.client import GitHubClient
from lockbump.github.gh_cli import GhCliClient
from lockbump.github.host import PullRequestHost
from lockbump.metrics import PipelineMetrics
from lockbump.orchestrator import LockfileUpdatePipeline
from lockbump.publisher.stage import PRPublisher, PublisherConfig
from lockbump.updater.runner import UpdateRunner
from lockbump.updater.stage import UpdaterConfig, UpdaterStage
from lockbump.updater.toolchain import ToolchainInstaller
from lockbump.vcs.repository import GitRepository

logger = structlog.get_logger()

app = typer.Typer(help="Refresh a dependency lockfile and publish it as a pull request")

WORKDIR_OPTION = typer.Option(
    Path("."),
    "--workdir",
    "-C",
    help="Repository checkout containing the lockfile.",
    exists=True,
    file_okay=False,
)
ARTIFACTS_DIR_OPTION = typer.Option(
    None,
    "--artifacts-dir",
    help="Artifact directory; defaults to LOCKBUMP_ARTIFACTS_DIR under the workdir.",
    file_okay=False,
)


def configure_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Configure structlog on top of stdlib logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if log_format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: LockbumpSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info(
        "Pipeline configuration",
        update_command=" ".join(settings.update_argv()),
        toolchain_version=settings.toolchain_version,
        lockfile_path=settings.lockfile_path,
        artifacts_dir=settings.artifacts_dir,
        branch=settings.branch,
        remote=settings.remote,
        base_branch=settings.base_branch,
        pr_backend=settings.pr_backend,
        github_repository=settings.github_repository or None,
        github_base_url=settings.github_base_url,
        github_token=_redact_secret(settings.github_token),
        pushgateway_url=settings.pushgateway_url,
    )


def _load_settings() -> LockbumpSettings:
    try:
        settings = get_settings()
    except ValidationError as exc:
        configure_logging()
        logger.error("Invalid configuration", errors=exc.errors(include_url=False))
        raise typer.Exit(code=2)

    configure_logging(settings.log_level, settings.log_format)
    _log_configuration(settings)
    return settings


def build_store(
    settings: LockbumpSettings, workdir: Path, artifacts_dir: Optional[Path]
) -> ArtifactStore:
    root = artifacts_dir if artifacts_dir is not None else workdir / settings.artifacts_dir
    return ArtifactStore(root)


def build_updater(settings: LockbumpSettings, store: ArtifactStore) -> UpdaterStage:
    """Wire the Updater stage from settings."""
    config = UpdaterConfig(
        lockfile_path=settings.lockfile_path,
        log_filename=settings.log_filename,
        lockfile_artifact=settings.lockfile_artifact,
        log_artifact=settings.log_artifact,
        noise_substring=settings.noise_substring,
        retention_days=settings.artifact_retention_days,
        toolchain_version=settings.toolchain_version,
    )
    runner = UpdateRunner(
        argv=settings.update_argv(),
        env=settings.update_env,
        timeout_seconds=settings.update_timeout_seconds,
    )
    installer = ToolchainInstaller() if settings.install_toolchain else None
    return UpdaterStage(
        config=config,
        runner=runner,
        store=store,
        toolchain_installer=installer,
    )


async def build_host(
    settings: LockbumpSettings, repository: GitRepository
) -> PullRequestHost:
    """Create the configured code-hosting backend.

    Raises:
        LockbumpError: If the repository slug or a required token is missing.
    """
    slug = settings.github_repository
    if not slug:
        slug = await repository.remote_repository_slug(settings.remote)
    if not slug:
        raise LockbumpError(
            "Cannot determine the GitHub repository; set LOCKBUMP_GITHUB_REPOSITORY",
            context={"remote": settings.remote},
        )

    if settings.pr_backend == "gh":
        return GhCliClient(
            repository=slug,
            gh_path=settings.gh_cli_path,
            token=settings.github_token or None,
        )

    if not settings.github_token:
        raise LockbumpError(
            "A GitHub token is required for the api backend; set GITHUB_TOKEN",
            context={"repository": slug},
        )
    return GitHubClient(
        token=settings.github_token,
        repository=slug,
        base_url=settings.github_base_url,
        timeout=settings.github_timeout_seconds,
    )


def build_publisher(
    settings: LockbumpSettings, store: ArtifactStore, host: PullRequestHost
) -> PRPublisher:
    """Wire the PR Publisher stage from settings."""
    config = PublisherConfig(
        lockfile_path=settings.lockfile_path,
        lockfile_artifact=settings.lockfile_artifact,
        log_artifact=settings.log_artifact,
        branch=settings.branch,
        remote=settings.remote,
        base_branch=settings.base_branch,
        pr_title=settings.pr_title,
        pr_body_preamble=settings.pr_body_preamble,
        commit_message_preamble=settings.commit_message_preamble,
        pr_label=settings.pr_label,
        bot_name=settings.bot_name,
        bot_email=settings.bot_email,
    )
    return PRPublisher(config=config, store=store, host=host)


async def _update(settings: LockbumpSettings, workdir: Path, store: ArtifactStore) -> None:
    metrics = PipelineMetrics()
    pipeline = LockfileUpdatePipeline(
        updater=build_updater(settings, store), metrics=metrics
    )
    try:
        await pipeline.run_update(workdir)
    finally:
        metrics.push(settings.pushgateway_url)


async def _publish(settings: LockbumpSettings, workdir: Path, store: ArtifactStore) -> None:
    metrics = PipelineMetrics()
    repository = GitRepository(workdir)
    host = await build_host(settings, repository)
    pipeline = LockfileUpdatePipeline(
        publisher=build_publisher(settings, store, host), metrics=metrics
    )
    try:
        await pipeline.run_publish(repository)
    finally:
        await host.close()
        metrics.push(settings.pushgateway_url)


async def _run(settings: LockbumpSettings, workdir: Path, store: ArtifactStore) -> None:
    metrics = PipelineMetrics()
    host = await build_host(settings, GitRepository(workdir))
    pipeline = LockfileUpdatePipeline(
        updater=build_updater(settings, store),
        publisher=build_publisher(settings, store, host),
        metrics=metrics,
    )
    try:
        await pipeline.run(workdir)
    finally:
        await host.close()
        metrics.push(settings.pushgateway_url)


def _execute(coro) -> None:
    """Run a stage coroutine, mapping pipeline failures to exit code 1."""
    try:
        asyncio.run(coro)
    except LockbumpError as exc:
        logger.error("Pipeline failed", error=exc.message, exc_info=True, **exc.context)
        raise typer.Exit(code=1)


@app.command()
def update(
    workdir: Path = WORKDIR_OPTION,
    artifacts_dir: Optional[Path] = ARTIFACTS_DIR_OPTION,
) -> None:
    """Run the dependency update and upload the lockfile and log artifacts."""
    settings = _load_settings()
    workdir = workdir.resolve()
    _execute(_update(settings, workdir, build_store(settings, workdir, artifacts_dir)))


@app.command()
def publish(
    workdir: Path = WORKDIR_OPTION,
    artifacts_dir: Optional[Path] = ARTIFACTS_DIR_OPTION,
) -> None:
    """Commit the lockfile artifact and open or edit the pull request."""
    settings = _load_settings()
    workdir = workdir.resolve()
    _execute(_publish(settings, workdir, build_store(settings, workdir, artifacts_dir)))


@app.command()
def run(
    workdir: Path = WORKDIR_OPTION,
    artifacts_dir: Optional[Path] = ARTIFACTS_DIR_OPTION,
) -> None:
    """Run the update and, if it succeeds, publish the pull request."""
    settings = _load_settings()
    workdir = workdir.resolve()
    _execute(_run(settings, workdir, build_store(settings, workdir, artifacts_dir)))


@app.command("prune-artifacts")
def prune_artifacts(
    workdir: Path = WORKDIR_OPTION,
    artifacts_dir: Optional[Path] = ARTIFACTS_DIR_OPTION,
) -> None:
    """Remove artifacts past their retention window."""
    settings = _load_settings()
    store = build_store(settings, workdir.resolve(), artifacts_dir)
    removed = store.prune_expired()
    typer.echo(f"removed {removed} expired artifact(s)")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
