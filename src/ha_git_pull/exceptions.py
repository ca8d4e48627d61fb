"""Exception hierarchy for ha-git-pull."""


class GitPullError(Exception):
    """Base exception for all ha-git-pull errors."""


class GitCommandError(GitPullError):
    """A git subprocess exited with a non-zero status."""


class SyncError(GitPullError):
    """The synchronize step failed for this iteration."""

    fatal = False


class RemoteMismatch(SyncError):
    """The local repository tracks a different remote URL than configured."""

    fatal = True


class FetchFailed(SyncError):
    """Fetching (or pruning) the remote failed."""


class CheckoutFailed(SyncError):
    """Switching to the configured branch failed."""


class PullFailed(SyncError):
    """`git pull` failed."""


class ResetFailed(SyncError):
    """`git reset --hard` to the remote branch failed."""


class RecloneFailed(SyncError):
    """Backing up, clearing, or cloning the work tree failed."""


class ConfigInvalid(GitPullError):
    """Home-Assistant rejected the synchronized configuration."""


class AuthSetupFailed(GitPullError):
    """Installing the SSH key or git credentials failed."""


class ServiceError(GitPullError):
    """A Home-Assistant CLI call (e.g. restart) failed."""
