import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME
from .exceptions import GitCommandError

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class RepositoryState:
    """A snapshot of a working tree's position.

    Attributes:
        commit (str): The full SHA-1 of HEAD.
        branch (str): The checked-out branch ('HEAD' when detached).
        remote_url (str | None): The URL configured for the inspected remote.
    """

    commit: str
    branch: str
    remote_url: str | None


def run_git(
    args: list[str],
    cwd: Path | None = None,
    capture: bool = True,
    input: str | None = None,
) -> str:
    """Executes a git command, optionally outside any repository.

    Args:
        args (list[str]): Arguments to pass to the git command.
        cwd (Path | None, optional): Directory to run in. Defaults to None.
        capture (bool, optional): Whether to capture and return stdout.
                                  Defaults to True.
        input (str | None, optional): Text fed to the command's stdin.

    Returns:
        str: The stripped stdout if capture is True, otherwise an empty string.

    Raises:
        GitCommandError: If the git command returns a non-zero exit code.
    """
    try:
        res = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=capture,
            text=True,
            check=True,
            input=input,
        )
        return res.stdout.strip() if capture else ""
    except subprocess.CalledProcessError as e:
        raise GitCommandError(f"Git error: {(e.stderr or '').strip() or e}") from e


def is_repository(path: Path) -> bool:
    """Reports whether `path` is inside a git working tree.

    Args:
        path (Path): The directory to probe.

    Returns:
        bool: True if `git rev-parse --is-inside-work-tree` succeeds there.
    """
    if not path.is_dir():
        return False
    try:
        return run_git(["rev-parse", "--is-inside-work-tree"], cwd=path) == "true"
    except (GitCommandError, OSError) as e:
        logger.debug(f"{path} is not a git work tree: {e}")
        return False


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    Each method maps onto one git invocation; failures surface as
    `GitCommandError` so callers can translate them into sync errors.

    Attributes:
        path (Path): The file system path to the working tree.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the working tree.

        Raises:
            ValueError: If the specified path is not a git working tree.
        """
        self.path = path
        if not is_repository(self.path):
            raise ValueError(f"Not a git repository: {self.path}")

    @classmethod
    def clone(cls, url: str, path: Path) -> "GitRepo":
        """Clones `url` into `path` and wraps the result.

        Args:
            url (str): The remote repository URL.
            path (Path): The (empty) destination directory.

        Returns:
            GitRepo: The freshly cloned repository.
        """
        run_git(["clone", url, str(path)], capture=False)
        return cls(path)

    def _run(self, args: list[str], capture: bool = True) -> str:
        """Executes a Git command within the repository context."""
        return run_git(args, cwd=self.path, capture=capture)

    def head(self) -> str:
        """Resolves HEAD to its full SHA-1 hash."""
        return self._run(["rev-parse", "HEAD"])

    def current_branch(self) -> str:
        """Retrieves the checked-out branch name ('HEAD' when detached)."""
        return self._run(["rev-parse", "--symbolic-full-name", "--abbrev-ref", "HEAD"])

    def remote_url(self, remote: str) -> str | None:
        """Returns the first URL configured for a remote.

        Args:
            remote (str): The remote name (e.g., 'origin').

        Returns:
            str | None: The URL, or None if the remote is not configured.
        """
        try:
            output = self._run(["remote", "get-url", "--all", remote])
        except GitCommandError as e:
            logger.debug(f"No URL for remote '{remote}': {e}")
            return None
        return output.splitlines()[0] if output else None

    def state(self, remote: str) -> RepositoryState:
        """Reports the current commit, branch and remote URL."""
        return RepositoryState(
            commit=self.head(),
            branch=self.current_branch(),
            remote_url=self.remote_url(remote),
        )

    def fetch(self, remote: str) -> None:
        """Downloads objects and refs from `remote`."""
        self._run(["fetch", remote], capture=False)

    def prune_remote(self, remote: str) -> None:
        """Deletes remote-tracking refs whose branches no longer exist upstream."""
        self._run(["remote", "prune", remote], capture=False)

    def checkout(self, branch: str) -> None:
        """Checks out a branch, creating it from its remote twin if needed."""
        self._run(["checkout", branch], capture=False)

    def pull(self, remote: str, branch: str) -> None:
        """Fetches `remote/branch` and merges it into the current branch."""
        self._run(["pull", remote, branch], capture=False)

    def reset_hard(self, target: str) -> None:
        """Moves the current branch and working tree to `target`, discarding changes."""
        self._run(["reset", "--hard", target], capture=False)

    def changed_files(self, old: str, new: str) -> set[str]:
        """Lists paths that differ between two commits.

        Args:
            old (str): The base commit.
            new (str): The target commit.

        Returns:
            set[str]: Paths reported by `git diff --name-only old new`.
        """
        output = self._run(["diff", "--name-only", old, new])
        return {line for line in output.splitlines() if line}
