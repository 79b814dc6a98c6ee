"""PR Publisher stage: commit the refreshed lockfile and open or edit the PR.

Downloads the lockfile and update log artifacts, builds the commit message
and pull request body, commits on a fixed branch with the automation
identity, force-pushes it, and then either edits the open pull request
for that branch or creates a new one.

Only the lookup-and-edit step may fail without failing the stage; its
failure, like a missing or non-open pull request, falls through to
creating a new pull request. A closed-but-unmerged pull request is not
reopened, so a new one is created alongside it.
"""

import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import structlog

from lockbump.artifacts.store import ArtifactStore
from lockbump.github.host import PullRequestHost, PullRequestHostError
from lockbump.github.models import PRCreateRequest, PullRequest
from lockbump.publisher.messages import build_commit_message, build_pr_body
from lockbump.vcs.repository import GitRepository

logger = structlog.get_logger()

COMMIT_MESSAGE_FILENAME = "commit.txt"


class PublishAction(str, Enum):
    """What the publisher did with the pull request."""

    EDITED = "edited"
    CREATED = "created"


@dataclass
class PublisherConfig:
    """Settings the PR Publisher stage needs.

    Attributes:
        lockfile_path: Lockfile location relative to the repository root.
        lockfile_artifact: Artifact name of the lockfile.
        log_artifact: Artifact name of the update log.
        branch: Fixed branch the lockfile commit is pushed to.
        remote: Remote to push to.
        base_branch: Pull request target; None means the default branch.
        pr_title: Fixed pull request title.
        pr_body_preamble: Text placed before the fenced log.
        commit_message_preamble: Text placed before the log in the commit.
        pr_label: Label applied to newly created pull requests.
        bot_name: Automation identity name.
        bot_email: Automation identity email.
    """

    lockfile_path: str = "Cargo.lock"
    lockfile_artifact: str = "Cargo-lock"
    log_artifact: str = "cargo-updates"
    branch: str = "cargo_update"
    remote: str = "origin"
    base_branch: Optional[str] = None
    pr_title: str = "Weekly `cargo update`"
    pr_body_preamble: str = ""
    commit_message_preamble: str = "cargo update\n\n"
    pr_label: str = "no changelog"
    bot_name: str = "github-actions[bot]"
    bot_email: str = "github-actions[bot]@users.noreply.github.com"


@dataclass
class PublishResult:
    """Result of a successful publish.

    Attributes:
        branch: Branch that was force-pushed.
        commit_sha: SHA of the lockfile commit.
        action: Whether an existing pull request was edited or a new one created.
        pull_request: The edited or created pull request.
    """

    branch: str
    commit_sha: str
    action: PublishAction
    pull_request: PullRequest


class PRPublisher:
    """Publishes the refreshed lockfile as a pull request."""

    def __init__(
        self,
        config: PublisherConfig,
        store: ArtifactStore,
        host: PullRequestHost,
    ):
        self.config = config
        self.store = store
        self.host = host

    async def publish(self, repository: GitRepository) -> PublishResult:
        """Commit the lockfile artifact and open or refresh the pull request.

        Args:
            repository: Checkout of the repository at the default branch tip.

        Returns:
            PublishResult describing the commit and pull request.

        Raises:
            ArtifactError: If an artifact cannot be downloaded.
            GitCommandError: If committing or pushing fails.
            PullRequestHostError: If creating the pull request fails.
        """
        lockfile_dir = (repository.path / self.config.lockfile_path).parent
        self.store.download(self.config.lockfile_artifact, lockfile_dir)
        log_text = self.store.read_text(self.config.log_artifact)

        commit_message = build_commit_message(
            self.config.commit_message_preamble, log_text
        )
        body = build_pr_body(self.config.pr_body_preamble, log_text)

        commit_sha = await self._commit_and_push(repository, commit_message)

        pull_request = await self._edit_open_pull_request(body)
        if pull_request is not None:
            action = PublishAction.EDITED
        else:
            pull_request = await self._create_pull_request(body)
            action = PublishAction.CREATED

        logger.info(
            "Published lockfile update",
            branch=self.config.branch,
            commit_sha=commit_sha,
            action=action.value,
            pr_number=pull_request.number,
            pr_url=pull_request.url,
        )
        return PublishResult(
            branch=self.config.branch,
            commit_sha=commit_sha,
            action=action,
            pull_request=pull_request,
        )

    async def _commit_and_push(
        self, repository: GitRepository, commit_message: str
    ) -> str:
        await repository.configure_identity(
            self.config.bot_name, self.config.bot_email
        )
        await repository.switch_force_create(self.config.branch)
        await repository.add(self.config.lockfile_path)

        with tempfile.TemporaryDirectory(prefix="lockbump-") as tmp_dir:
            message_file = Path(tmp_dir) / COMMIT_MESSAGE_FILENAME
            message_file.write_text(commit_message, encoding="utf-8")
            commit_sha = await repository.commit(message_file, no_verify=True)

        await repository.push(
            self.config.remote,
            self.config.branch,
            force=True,
            no_verify=True,
            set_upstream=True,
        )
        return commit_sha

    async def _edit_open_pull_request(self, body: str) -> Optional[PullRequest]:
        """Edit the open pull request for the branch, if there is one.

        Returns:
            The edited pull request, or None when there is no open pull
            request or the lookup/edit failed.
        """
        try:
            existing = await self.host.find_pull_request(self.config.branch)
            if existing is None:
                logger.info("No existing pull request", branch=self.config.branch)
                return None
            if not existing.is_open:
                logger.info(
                    "Existing pull request is not open",
                    pr_number=existing.number,
                    state=existing.state.value,
                )
                return None
            return await self.host.edit_pull_request(
                existing.number, self.config.pr_title, body
            )
        except PullRequestHostError as exc:
            logger.warning(
                "Could not edit existing pull request, opening a new one",
                error=exc.message,
                **exc.context,
            )
            return None

    async def _create_pull_request(self, body: str) -> PullRequest:
        request = PRCreateRequest(
            title=self.config.pr_title,
            body=body,
            head_branch=self.config.branch,
            base_branch=self.config.base_branch,
            labels=[self.config.pr_label] if self.config.pr_label else [],
        )
        return await self.host.create_pull_request(request)
