"""Tests for the synchronize decision engine."""

import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ha_git_pull import sync
from ha_git_pull.config import Config, GitConfig, SyncMode
from ha_git_pull.exceptions import (
    CheckoutFailed,
    FetchFailed,
    GitCommandError,
    PullFailed,
    RemoteMismatch,
    ResetFailed,
)

REMOTE = "git@host:a/b.git"


@pytest.fixture
def repo(mocker: MagicMock) -> MagicMock:
    """Mocks an existing local repository tracking REMOTE on branch main."""
    mocker.patch("ha_git_pull.sync.is_repository", return_value=True)
    repo = mocker.patch("ha_git_pull.sync.GitRepo").return_value
    repo.remote_url.return_value = REMOTE
    repo.current_branch.return_value = "main"
    repo.head.side_effect = ["old_sha", "new_sha"]
    return repo


def make_config(**git: object) -> Config:
    return Config(repository=REMOTE, git=GitConfig(**git))


def test_remote_mismatch_is_rejected(tmp_path: Path, repo: MagicMock) -> None:
    """Verifies that a repository tracking another remote fails before fetching."""
    config = Config(repository="git@host:a/c.git")

    with pytest.raises(RemoteMismatch) as exc_info:
        sync.synchronize(tmp_path, config)

    assert exc_info.value.fatal
    repo.fetch.assert_not_called()


def test_missing_repository_is_recloned(tmp_path: Path, mocker: MagicMock) -> None:
    """Verifies the reclone path returns a result with identical commits."""
    mocker.patch("ha_git_pull.sync.is_repository", return_value=False)
    mock_reclone = mocker.patch(
        "ha_git_pull.sync.backup.backup_and_reclone", return_value="fresh_sha"
    )
    mock_repo = mocker.patch("ha_git_pull.sync.GitRepo").return_value
    mock_repo.current_branch.return_value = "main"

    result = sync.synchronize(tmp_path, make_config())

    mock_reclone.assert_called_once_with(tmp_path, REMOTE)
    assert result == sync.SyncResult("fresh_sha", "fresh_sha", "main", recloned=True)
    assert not result.changed


def test_pull_mode_flow(tmp_path: Path, repo: MagicMock) -> None:
    """Verifies fetch then pull on the current branch, and the commit pair."""
    result = sync.synchronize(tmp_path, make_config())

    repo.fetch.assert_called_once_with("origin")
    repo.prune_remote.assert_not_called()
    repo.checkout.assert_not_called()
    repo.pull.assert_called_once_with("origin", "main")
    repo.reset_hard.assert_not_called()
    assert result == sync.SyncResult("old_sha", "new_sha", "main")
    assert result.changed


def test_reset_mode_targets_remote_branch(tmp_path: Path, repo: MagicMock) -> None:
    """Verifies that reset mode hard-resets to <remote>/<branch>."""
    config = make_config(remote="upstream", command=SyncMode.RESET)
    repo.remote_url.return_value = REMOTE

    sync.synchronize(tmp_path, config)

    repo.fetch.assert_called_once_with("upstream")
    repo.remote_url.assert_called_once_with("upstream")
    repo.reset_hard.assert_called_once_with("upstream/main")
    repo.pull.assert_not_called()


def test_prune_when_configured(tmp_path: Path, repo: MagicMock) -> None:
    """Verifies that stale remote-tracking refs are pruned after the fetch."""
    sync.synchronize(tmp_path, make_config(prune=True))

    repo.prune_remote.assert_called_once_with("origin")


def test_branch_switch(tmp_path: Path, repo: MagicMock) -> None:
    """Verifies checkout of a differing branch and pulling that branch."""
    repo.current_branch.side_effect = ["main", "dev"]

    result = sync.synchronize(tmp_path, make_config(branch="dev"))

    repo.checkout.assert_called_once_with("dev")
    repo.pull.assert_called_once_with("origin", "dev")
    assert result.current_branch == "dev"


def test_same_branch_is_not_checked_out(tmp_path: Path, repo: MagicMock) -> None:
    """Verifies that configuring the current branch does not trigger a checkout."""
    sync.synchronize(tmp_path, make_config(branch="main"))

    repo.checkout.assert_not_called()


@pytest.mark.parametrize(
    ("method", "git", "expected"),
    [
        ("fetch", {}, FetchFailed),
        ("prune_remote", {"prune": True}, FetchFailed),
        ("checkout", {"branch": "dev"}, CheckoutFailed),
        ("pull", {}, PullFailed),
        ("reset_hard", {"command": SyncMode.RESET}, ResetFailed),
    ],
)
def test_git_failures_map_to_sync_errors(
    tmp_path: Path,
    repo: MagicMock,
    method: str,
    git: dict,
    expected: type[Exception],
) -> None:
    """Verifies that each failing step raises its own non-fatal error kind."""
    getattr(repo, method).side_effect = GitCommandError("Git error: boom")

    with pytest.raises(expected, match="boom") as exc_info:
        sync.synchronize(tmp_path, make_config(**git))

    assert not exc_info.value.fatal


def _git(cwd: Path, *args: str) -> str:
    res = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return res.stdout.strip()


@pytest.fixture
def cloned_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> tuple[Path, Path]:
    """Creates an upstream repository with one commit and a clone of it."""
    for var in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(var, "Test")
    for var in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(var, "test@example.com")

    upstream = tmp_path / "upstream"
    upstream.mkdir()
    _git(upstream, "init", "-q", "-b", "main")
    (upstream / "configuration.yaml").write_text("homeassistant:\n")
    _git(upstream, "add", ".")
    _git(upstream, "commit", "-q", "-m", "initial")

    work = tmp_path / "config"
    _git(tmp_path, "clone", "-q", str(upstream), str(work))
    return upstream, work


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
@pytest.mark.parametrize("mode", [SyncMode.PULL, SyncMode.RESET])
def test_synchronize_against_real_repository(
    cloned_repo: tuple[Path, Path], mode: SyncMode
) -> None:
    """Verifies a real pull/reset picks up a new upstream commit, then is idempotent."""
    upstream, work = cloned_repo
    config = Config(repository=str(upstream), git=GitConfig(command=mode))
    before = _git(work, "rev-parse", "HEAD")

    (upstream / "automations.yaml").write_text("[]\n")
    _git(upstream, "add", ".")
    _git(upstream, "commit", "-q", "-m", "add automations")
    upstream_head = _git(upstream, "rev-parse", "HEAD")

    first = sync.synchronize(work, config)
    second = sync.synchronize(work, config)

    assert first.previous_commit == before
    assert first.new_commit == upstream_head
    assert (work / "automations.yaml").exists()
    assert second.new_commit == first.new_commit
    assert not second.changed
