"""Tests for the Command Line Interface (CLI) module."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ha_git_pull import cli
from ha_git_pull.config import Config, DeploymentConfig, GitConfig
from ha_git_pull.git_wrapper import RepositoryState


def test_show_status_not_a_repository(
    capsys: pytest.CaptureFixture, mocker: MagicMock
) -> None:
    """Verifies the reclone hint when the work tree has no repository."""
    mocker.patch("ha_git_pull.cli.is_repository", return_value=False)

    cli.show_status(Config(repository="git@host:a/b.git"), Path("/config"))

    captured = capsys.readouterr()
    assert "not a git repository" in captured.out
    assert "git@host:a/b.git" in captured.out


def test_show_status_warns_on_mismatch(
    tmp_path: Path, capsys: pytest.CaptureFixture, mocker: MagicMock
) -> None:
    """Verifies that a mismatched remote and pending branch switch are shown."""
    mocker.patch("ha_git_pull.cli.is_repository", return_value=True)
    repo = mocker.patch("ha_git_pull.cli.GitRepo").return_value
    repo.state.return_value = RepositoryState("0123456789abcdef", "main", "git@host:a/c.git")
    config = Config(repository="git@host:a/b.git", git=GitConfig(branch="dev"))

    cli.show_status(config, tmp_path)

    captured = capsys.readouterr()
    assert "0123456789ab" in captured.out
    assert "Remote does not match" in captured.out
    assert "switches to branch dev" in captured.out


def test_show_config_masks_password(capsys: pytest.CaptureFixture) -> None:
    config = Config(
        repository="https://example.com/ha.git",
        deployment=DeploymentConfig(user="bot", password="hunter2"),
    )

    cli.show_config(config)

    captured = capsys.readouterr()
    assert "hunter2" not in captured.out
    assert "********" in captured.out


@pytest.mark.parametrize(
    ("argv", "expected_once"),
    [(["ha-git-pull"], False), (["ha-git-pull", "run"], False), (["ha-git-pull", "once"], True)],
)
def test_main_dispatches_to_daemon(
    mocker: MagicMock, argv: list[str], expected_once: bool
) -> None:
    mocker.patch.object(sys, "argv", argv)
    mock_main = mocker.patch("ha_git_pull.cli.daemon.main", return_value=0)

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 0
    assert mock_main.call_args.kwargs.get("once", False) is expected_once
