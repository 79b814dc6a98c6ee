"""Publisher tests against real git repositories.

Uses a bare repository as the "origin" remote to check force-push
semantics: after each run the remote branch is exactly one commit on top
of main, whatever it held before.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from lockbump.artifacts.store import ArtifactStore
from lockbump.github.models import PullRequest, PullRequestState
from lockbump.publisher.stage import PRPublisher, PublisherConfig
from lockbump.vcs.repository import GitRepository, NothingToCommitError

UPDATED_LOCKFILE = "version = 3\n\n[[package]]\nname = \"serde\"\nversion = \"1.0.210\"\n"
LOG = "    Updating serde v1.0.200 -> v1.0.210\n"


def run_async(coro):
    return asyncio.run(coro)


def _host():
    host = MagicMock()
    host.find_pull_request = AsyncMock(return_value=None)
    host.create_pull_request = AsyncMock(
        return_value=PullRequest(
            number=1,
            url="https://github.com/acme/widgets/pull/1",
            head_branch="cargo_update",
            state=PullRequestState.OPEN,
        )
    )
    return host


def _store(tmp_path, name: str, lockfile: str = UPDATED_LOCKFILE):
    staging = tmp_path / f"staging-{name}"
    staging.mkdir()
    (staging / "Cargo.lock").write_text(lockfile)
    (staging / "cargo_update.log").write_text(LOG)
    store = ArtifactStore(tmp_path / f"artifacts-{name}")
    store.upload("Cargo-lock", staging / "Cargo.lock", retention_days=1)
    store.upload("cargo-updates", staging / "cargo_update.log", retention_days=1)
    return store


def test_branch_is_one_commit_on_main(tmp_path, remote_and_checkout, git):
    remote, checkout = remote_and_checkout
    publisher = PRPublisher(PublisherConfig(), _store(tmp_path, "a"), _host())

    result = run_async(publisher.publish(GitRepository(checkout)))

    main_sha = git(remote, "rev-parse", "main").strip()
    branch_sha = git(remote, "rev-parse", "cargo_update").strip()
    assert branch_sha == result.commit_sha
    assert git(remote, "rev-parse", "cargo_update^").strip() == main_sha
    assert git(remote, "show", "cargo_update:Cargo.lock") == UPDATED_LOCKFILE


def test_commit_attributed_to_bot_with_log_message(tmp_path, remote_and_checkout, git):
    remote, checkout = remote_and_checkout
    publisher = PRPublisher(PublisherConfig(), _store(tmp_path, "a"), _host())

    run_async(publisher.publish(GitRepository(checkout)))

    author = git(remote, "log", "-1", "--format=%an <%ae>", "cargo_update").strip()
    assert author == "github-actions[bot] <github-actions[bot]@users.noreply.github.com>"
    message = git(remote, "log", "-1", "--format=%B", "cargo_update")
    assert message.startswith("cargo update\n\n")
    assert LOG.strip() in message


def test_prior_branch_content_is_overwritten(tmp_path, remote_and_checkout, git):
    remote, checkout = remote_and_checkout
    git(checkout, "switch", "-c", "cargo_update")
    (checkout / "stray.txt").write_text("left over from an old run\n")
    git(checkout, "add", "stray.txt")
    git(checkout, "commit", "-m", "old run")
    git(checkout, "push", "origin", "cargo_update")
    git(checkout, "switch", "main")

    publisher = PRPublisher(PublisherConfig(), _store(tmp_path, "a"), _host())
    run_async(publisher.publish(GitRepository(checkout)))

    main_sha = git(remote, "rev-parse", "main").strip()
    assert git(remote, "rev-parse", "cargo_update^").strip() == main_sha
    files = git(remote, "ls-tree", "--name-only", "cargo_update").split()
    assert "stray.txt" not in files


def test_identical_inputs_give_identical_tree(tmp_path, remote_and_checkout, git):
    remote, checkout = remote_and_checkout

    run_async(
        PRPublisher(PublisherConfig(), _store(tmp_path, "a"), _host()).publish(
            GitRepository(checkout)
        )
    )
    first_tree = git(remote, "rev-parse", "cargo_update^{tree}").strip()

    git(checkout, "switch", "main")
    run_async(
        PRPublisher(PublisherConfig(), _store(tmp_path, "b"), _host()).publish(
            GitRepository(checkout)
        )
    )
    second_tree = git(remote, "rev-parse", "cargo_update^{tree}").strip()

    assert first_tree == second_tree
    main_sha = git(remote, "rev-parse", "main").strip()
    assert git(remote, "rev-parse", "cargo_update^").strip() == main_sha


def test_unchanged_lockfile_fails_before_push(tmp_path, remote_and_checkout, git):
    remote, checkout = remote_and_checkout
    unchanged = (checkout / "Cargo.lock").read_text()
    host = _host()
    publisher = PRPublisher(
        PublisherConfig(), _store(tmp_path, "a", lockfile=unchanged), host
    )

    with pytest.raises(NothingToCommitError):
        run_async(publisher.publish(GitRepository(checkout)))

    assert "cargo_update" not in git(remote, "branch", "--list")
    host.create_pull_request.assert_not_called()
