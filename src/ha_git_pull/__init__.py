"""ha-git-pull: keep a Home-Assistant configuration directory in sync with git.

This package provides the command-line interface, the polling loop, and the
synchronize and restart-policy logic that decide when Home-Assistant needs to
pick up a new configuration.
"""

from . import (
    auth,
    backup,
    cli,
    config,
    constants,
    daemon,
    exceptions,
    git_wrapper,
    homeassistant,
    restart,
    sync,
)

__all__ = [
    "auth",
    "backup",
    "cli",
    "config",
    "constants",
    "daemon",
    "exceptions",
    "git_wrapper",
    "homeassistant",
    "restart",
    "sync",
]
