import logging
from dataclasses import dataclass
from pathlib import Path

from . import backup
from .config import Config, SyncMode
from .constants import APP_NAME
from .exceptions import (
    CheckoutFailed,
    FetchFailed,
    GitCommandError,
    PullFailed,
    RemoteMismatch,
    ResetFailed,
)
from .git_wrapper import GitRepo, is_repository

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class SyncResult:
    """The outcome of one synchronize call.

    Attributes:
        previous_commit (str): HEAD before synchronizing.
        new_commit (str): HEAD after synchronizing.
        current_branch (str): The branch checked out afterwards.
        recloned (bool): Whether the work tree was replaced by a fresh clone.
    """

    previous_commit: str
    new_commit: str
    current_branch: str
    recloned: bool = False

    @property
    def changed(self) -> bool:
        return self.previous_commit != self.new_commit


def _reclone(work_tree: Path, config: Config) -> SyncResult:
    logger.warning("Git repository doesn't exist")
    commit = backup.backup_and_reclone(work_tree, config.repository)
    branch = GitRepo(work_tree).current_branch()
    return SyncResult(commit, commit, branch, recloned=True)


def synchronize(work_tree: Path, config: Config) -> SyncResult:
    """Brings the work tree in line with the configured remote branch.

    A missing repository is recloned. An existing one is fetched, optionally
    pruned, switched to the configured branch, and then pulled or hard-reset
    depending on `config.git.command`.

    Args:
        work_tree (Path): The directory tracked as a git repository.
        config (Config): The application configuration.

    Returns:
        SyncResult: HEAD before and after, and the current branch.

    Raises:
        RemoteMismatch: If the remote URL differs from `config.repository`.
        FetchFailed: If fetching or pruning fails.
        CheckoutFailed: If switching branches fails.
        PullFailed: If `git pull` fails.
        ResetFailed: If `git reset --hard` fails.
        RecloneFailed: If recloning a missing repository fails.
    """
    if not is_repository(work_tree):
        return _reclone(work_tree, config)

    logger.info("Local git repository exists")
    repo = GitRepo(work_tree)
    remote = config.git.remote

    current_url = repo.remote_url(remote)
    if current_url != config.repository:
        raise RemoteMismatch(
            f"Git remote '{remote}' is {current_url!r}, expected {config.repository!r}"
        )
    logger.info(f"Git origin is correctly set to {config.repository}")

    previous_commit = repo.head()

    logger.info("Start git fetch...")
    try:
        repo.fetch(remote)
    except GitCommandError as e:
        raise FetchFailed(f"Git fetch failed: {e}") from e

    if config.git.prune:
        logger.info("Start git prune...")
        try:
            repo.prune_remote(remote)
        except GitCommandError as e:
            raise FetchFailed(f"Git prune failed: {e}") from e

    branch = repo.current_branch()
    wanted = config.git.branch
    if not wanted or wanted == branch:
        logger.info(f"Staying on currently checked out branch: {branch}...")
    else:
        logger.info(f"Switching branches - start git checkout of branch {wanted}...")
        try:
            repo.checkout(wanted)
        except GitCommandError as e:
            raise CheckoutFailed(f"Git checkout failed: {e}") from e
        branch = repo.current_branch()

    if config.git.command is SyncMode.PULL:
        logger.info("Start git pull...")
        try:
            repo.pull(remote, branch)
        except GitCommandError as e:
            raise PullFailed(f"Git pull failed: {e}") from e
    else:
        logger.info("Start git reset...")
        try:
            repo.reset_hard(f"{remote}/{branch}")
        except GitCommandError as e:
            raise ResetFailed(f"Git reset failed: {e}") from e

    return SyncResult(previous_commit, repo.head(), branch)
