import os
from pathlib import Path

"""Global constants and filesystem layout for ha-git-pull.

This module defines the paths used inside the Home-Assistant add-on container,
application identifiers, and the defaults shared by the configuration layer.
"""

# --- Identity ---
APP_NAME = "ha-git-pull"
"""str: The human-readable application name (also the logger name)."""

# --- Paths ---
OPTIONS_FILE = Path(os.environ.get("HA_GIT_PULL_CONFIG", "/data/options.json"))
"""Path: The add-on options file written by the Supervisor."""

WORK_TREE = Path("/config")
"""Path: The Home-Assistant configuration directory kept in sync."""

BACKUP_ROOT = Path("/tmp")
"""Path: Parent directory for pre-reclone backups."""

BACKUP_PREFIX = "config-"
"""str: Prefix of backup directories (suffixed with a timestamp)."""

CREDENTIALS_FILE = Path("/tmp/git-credentials")
"""Path: The file used by git's credential store helper."""

SSH_DIR = Path.home() / ".ssh"
"""Path: Where the deployment key and ssh client config are written."""

# --- Git / Logic Constants ---
DEFAULT_REMOTE = "origin"
"""str: Remote name used when none is configured."""

DEFAULT_INTERVAL = 300
"""int: Seconds between iterations when repeat is active."""

SECRETS_FILE = "secrets.yaml"
"""str: Restored from the backup after a reclone (never committed upstream)."""

YAML_SUFFIXES = (".yaml", ".yml")
"""tuple[str, ...]: Files the fresh clone owns; not restored from a backup."""

HA_COMMAND = ["ha", "--no-progress"]
"""list[str]: Base invocation of the Home-Assistant CLI."""
