"""Decides whether a configuration change warrants a Home-Assistant restart."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


class EntryKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class IgnoreEntry:
    """One classified restart-ignore entry.

    Attributes:
        path (str): The entry as configured, without a trailing slash.
        kind (EntryKind): Whether it matches exactly or as a directory prefix.
    """

    path: str
    kind: EntryKind

    @classmethod
    def classify(cls, raw: str, work_tree: Path | None = None) -> "IgnoreEntry":
        """Builds an entry, deciding once whether it names a directory.

        An entry is a directory if it ends with '/', or if it names an existing
        directory under `work_tree` right now.
        """
        path = raw.strip().removeprefix("./")
        if path.endswith("/"):
            return cls(path.rstrip("/"), EntryKind.DIRECTORY)
        if work_tree is not None and (work_tree / path).is_dir():
            return cls(path, EntryKind.DIRECTORY)
        return cls(path, EntryKind.FILE)

    def matches(self, changed_file: str) -> bool:
        if self.kind is EntryKind.DIRECTORY:
            return changed_file.startswith(f"{self.path}/")
        return changed_file == self.path


class RestartPolicy:
    """An ignore list classified into exact-file and directory-prefix entries.

    Classification touches the filesystem only here, at construction; matching
    afterwards is purely string based.
    """

    def __init__(self, ignore: Iterable[str] = (), work_tree: Path | None = None):
        self.entries = tuple(
            IgnoreEntry.classify(raw, work_tree) for raw in ignore if raw.strip()
        )

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __repr__(self) -> str:
        return f"RestartPolicy({[e.path for e in self.entries]!r})"

    def is_ignored(self, changed_file: str) -> bool:
        return any(entry.matches(changed_file) for entry in self.entries)

    def restart_required_files(self, changed_files: Iterable[str]) -> list[str]:
        """Returns every changed file that no entry ignores, in sorted order."""
        return [f for f in sorted(changed_files) if not self.is_ignored(f)]


def should_restart(
    previous_commit: str,
    new_commit: str,
    changed_files: Iterable[str],
    ignore_list: RestartPolicy | Sequence[str],
    auto_restart: bool,
) -> bool:
    """Decides whether Home-Assistant must be restarted after a sync.

    Args:
        previous_commit (str): HEAD before the sync.
        new_commit (str): HEAD after the sync.
        changed_files (Iterable[str]): Paths changed between the two commits.
        ignore_list (RestartPolicy | Sequence[str]): Entries exempt from
            triggering a restart. Plain strings are classified without a work
            tree, so only entries ending in '/' count as directories.
        auto_restart (bool): Whether automatic restarts are enabled.

    Returns:
        bool: True if at least one changed file is not ignored.
    """
    if previous_commit == new_commit:
        return False
    if not auto_restart:
        return False

    policy = (
        ignore_list
        if isinstance(ignore_list, RestartPolicy)
        else RestartPolicy(ignore_list)
    )
    if not policy:
        return True

    # Every offending file is logged, not just the first.
    required = policy.restart_required_files(changed_files)
    for changed_file in required:
        logger.info(f"Detected restart-required file: {changed_file}")
    return bool(required)
