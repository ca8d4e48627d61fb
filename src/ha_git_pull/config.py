import json
import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from .constants import APP_NAME, DEFAULT_INTERVAL, DEFAULT_REMOTE, OPTIONS_FILE

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30m') to seconds.

    Bare digit strings (as the add-on UI stores them) are taken as seconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid time format '{value}'")
    if isinstance(value, int):
        seconds = value
    else:
        match = re.match(
            r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)?s?$", str(value).strip().lower()
        )
        if not match:
            raise ValueError(f"Invalid time format '{value}'")
        num, unit = float(match.group(1)), match.group(2) or "s"
        multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
        seconds = int(num * multiplier[unit])
    if seconds <= 0:
        raise ValueError(f"Interval must be positive, got '{value}'")
    return seconds


class SyncMode(str, Enum):
    """How the local branch is reconciled with its remote counterpart."""

    PULL = "pull"
    RESET = "reset"


@dataclass(frozen=True)
class GitConfig:
    """Remote and reconciliation settings.

    Attributes:
        remote (str): Name of the git remote to fetch from.
        branch (str | None): Branch to check out. None stays on the current branch.
        command (SyncMode): Pull (merge) or reset (discard local divergence).
        prune (bool): Whether stale remote-tracking refs are pruned after fetching.
    """

    remote: str = DEFAULT_REMOTE
    branch: str | None = None
    command: SyncMode = SyncMode.PULL
    prune: bool = False


@dataclass(frozen=True)
class DeploymentConfig:
    """Credentials used to reach the remote.

    Attributes:
        key (tuple[str, ...]): Lines of the private SSH deployment key.
        key_protocol (str): Key type, used for the ``id_<protocol>`` filename.
        user (str): Username for HTTPS remotes.
        password (str): Password or token for HTTPS remotes.
    """

    key: tuple[str, ...] = ()
    key_protocol: str = "rsa"
    user: str = ""
    password: str = ""


@dataclass(frozen=True)
class RestartConfig:
    """Home-Assistant restart behaviour.

    Attributes:
        auto (bool): Restart automatically when a valid change lands.
        ignore (tuple[str, ...]): Files or directories whose changes never
            trigger a restart.
    """

    auto: bool = False
    ignore: tuple[str, ...] = ()


@dataclass(frozen=True)
class RepeatConfig:
    """Polling loop settings.

    Attributes:
        active (bool): Keep running after the first iteration.
        interval (int): Seconds to wait between iterations.
    """

    active: bool = False
    interval: int = DEFAULT_INTERVAL


@dataclass(frozen=True)
class LoggingConfig:
    """Log output settings.

    Attributes:
        level (str): Root level for the application logger.
        file (str | None): Optional log file, rotated at ``max_size``.
        max_size (int): Max bytes for the log file before rotation.
    """

    level: str = "INFO"
    file: str | None = None
    max_size: int = 5 * 1024 * 1024


# Flat add-on option keys mapped onto (section, field).
_OPTION_KEYS: dict[str, tuple[str | None, str]] = {
    "repository": (None, "repository"),
    "git_remote": ("git", "remote"),
    "git_branch": ("git", "branch"),
    "git_command": ("git", "command"),
    "git_prune": ("git", "prune"),
    "deployment_key": ("deployment", "key"),
    "deployment_key_protocol": ("deployment", "key_protocol"),
    "deployment_user": ("deployment", "user"),
    "deployment_password": ("deployment", "password"),
    "auto_restart": ("restart", "auto"),
    "restart_ignore": ("restart", "ignore"),
    "log_level": ("logging", "level"),
}


@dataclass(frozen=True)
class Config:
    """Global configuration aggregator.

    Attributes:
        repository (str): URL of the remote repository.
        git (GitConfig): Remote and reconciliation settings.
        deployment (DeploymentConfig): SSH key and HTTPS credentials.
        restart (RestartConfig): Restart behaviour.
        repeat (RepeatConfig): Polling loop settings.
        logging (LoggingConfig): Log output settings.
    """

    repository: str = ""
    git: GitConfig = field(default_factory=GitConfig)
    deployment: DeploymentConfig = field(default_factory=DeploymentConfig)
    restart: RestartConfig = field(default_factory=RestartConfig)
    repeat: RepeatConfig = field(default_factory=RepeatConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from an add-on options file or a TOML file.

        Args:
            path (Path | None): The file to read. Defaults to OPTIONS_FILE.

        Returns:
            Config: The populated configuration. Defaults are used for anything
                    missing, unreadable or invalid.
        """
        path = path or OPTIONS_FILE
        instance = cls()
        if not path.exists():
            logger.warning(f"Config file {path} not found. Using defaults.")
            return instance

        try:
            if path.suffix == ".toml":
                with open(path, "rb") as f:
                    data = tomllib.load(f)
            else:
                options = json.loads(path.read_text())
                if not isinstance(options, dict):
                    logger.error(
                        f"Config syntax error in {path}: expected an object, "
                        f"got {type(options).__name__}. Using defaults."
                    )
                    return instance
                data = cls._sections_from_options(options)
        except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Config syntax error in {path}: {e}")
            return instance
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return instance

        return instance._merge(data)

    @staticmethod
    def _sections_from_options(options: dict[str, Any]) -> dict[str, Any]:
        """Translates flat add-on options into the sectioned layout."""
        data: dict[str, Any] = {}
        for key, value in options.items():
            if key == "repeat" and isinstance(value, dict):
                data["repeat"] = dict(value)
                continue
            if key not in _OPTION_KEYS:
                # Leave it in place so the unknown-key warning fires.
                data[key] = value
                continue
            section, name = _OPTION_KEYS[key]
            if section is None:
                data[name] = value
            else:
                data.setdefault(section, {})[name] = value
        return data

    def _merge(self, data: dict[str, Any]) -> "Config":
        """Returns a copy of this config with the parsed file data applied."""
        sections = {
            "git": self.git,
            "deployment": self.deployment,
            "restart": self.restart,
            "repeat": self.repeat,
            "logging": self.logging,
        }
        updates: dict[str, Any] = {}

        for key, value in data.items():
            if key == "repository":
                updates["repository"] = str(value or "")
            elif key in sections and isinstance(value, dict):
                updates[key] = self._update_dataclass(key, sections[key], value)
            else:
                logger.warning(f"Unknown config key '{key}'. Ignoring.")

        return replace(self, **updates)

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing typed values."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                filtered_updates[k] = _coerce(k, v)
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)


def _coerce(key: str, value: Any) -> Any:
    """Parses a single option value into the type its field expects."""
    if key == "command":
        try:
            return SyncMode(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Git command is not set correctly ('{value}'). "
                "Should be either 'reset' or 'pull'"
            ) from None
    if key == "interval":
        return parse_time(value)
    if key == "max_size":
        return parse_size(value)
    if key in ("branch", "file"):
        if value is None:
            return None
        return str(value).strip() or None
    if key == "level":
        return str(value).strip().upper()
    if key in ("remote", "key_protocol"):
        if not value or not str(value).strip():
            raise ValueError("must not be empty")
        return str(value).strip()
    if key in ("user", "password"):
        return "" if value is None else str(value)
    if key in ("key", "ignore"):
        if isinstance(value, str):
            value = value.splitlines() if key == "key" else value.split()
        return tuple(str(v) for v in value if str(v).strip())
    if key in ("prune", "auto", "active"):
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)
    return value
