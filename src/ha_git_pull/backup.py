"""Backup-and-reclone of the work tree.

The three steps (backup, clear, clone) are not atomic: a crash between them
leaves the work tree empty or half-cloned. The backup directory is kept so an
operator can recover by hand.
"""

import datetime
import logging
import shutil
from pathlib import Path

from .constants import APP_NAME, BACKUP_PREFIX, BACKUP_ROOT, SECRETS_FILE, YAML_SUFFIXES
from .exceptions import GitCommandError, RecloneFailed
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)


def create_backup(path: Path, backup_root: Path = BACKUP_ROOT) -> Path:
    """Copies the contents of `path` into a timestamped backup directory.

    Args:
        path (Path): The directory to back up.
        backup_root (Path, optional): Parent of the backup directory.

    Returns:
        Path: The created backup directory.

    Raises:
        RecloneFailed: If the directory cannot be created or populated.
    """
    timestamp = datetime.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    backup = backup_root / f"{BACKUP_PREFIX}{timestamp}"
    logger.info(f"Backup configuration to {backup}")

    try:
        backup.mkdir(parents=True)
    except OSError as e:
        raise RecloneFailed(f"Creation of backup directory failed: {e}") from e

    try:
        for entry in path.iterdir():
            target = backup / entry.name
            if entry.is_dir() and not entry.is_symlink():
                shutil.copytree(entry, target, symlinks=True)
            else:
                shutil.copy2(entry, target, follow_symlinks=False)
    except OSError as e:
        raise RecloneFailed(f"Copy files to backup directory failed: {e}") from e

    return backup


def clear_directory(path: Path) -> None:
    """Removes everything inside `path`, dotfiles included, keeping `path` itself.

    Raises:
        RecloneFailed: If any entry cannot be removed.
    """
    try:
        for entry in path.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
    except OSError as e:
        raise RecloneFailed(f"Clearing {path} failed: {e}") from e


def restore_local_files(backup: Path, path: Path) -> list[str]:
    """Copies back files the fresh clone does not provide.

    Only top-level files are considered: the secrets file, and anything that is
    not YAML. Files already present in the clone are never overwritten.

    Args:
        backup (Path): The backup directory.
        path (Path): The freshly cloned work tree.

    Returns:
        list[str]: Names of the restored files.
    """
    restored = []
    for entry in sorted(backup.iterdir()):
        if not entry.is_file():
            continue
        if entry.name != SECRETS_FILE and entry.suffix in YAML_SUFFIXES:
            continue
        target = path / entry.name
        if target.exists():
            continue
        try:
            shutil.copy2(entry, target)
            restored.append(entry.name)
        except OSError as e:
            logger.warning(f"Could not restore {entry.name} from backup: {e}")
    return restored


def backup_and_reclone(
    path: Path, remote_url: str, backup_root: Path = BACKUP_ROOT
) -> str:
    """Replaces the contents of `path` with a fresh clone of `remote_url`.

    Steps:
    1. Copies the current contents into a timestamped backup.
    2. Clears `path`.
    3. Clones the remote into `path`.
    4. Restores local-only files (secrets, non-YAML) from the backup.

    Args:
        path (Path): The work tree.
        remote_url (str): The repository to clone.
        backup_root (Path, optional): Parent of the backup directory.

    Returns:
        str: The HEAD commit of the fresh clone.

    Raises:
        RecloneFailed: If any of the first three steps fails.
    """
    path.mkdir(parents=True, exist_ok=True)
    backup = create_backup(path, backup_root)
    clear_directory(path)

    logger.info("Start git clone")
    try:
        repo = GitRepo.clone(remote_url, path)
        commit = repo.head()
    except (GitCommandError, ValueError) as e:
        raise RecloneFailed(f"Git clone failed: {e}") from e

    if restored := restore_local_files(backup, path):
        logger.info(f"Restored from backup: {', '.join(restored)}")

    return commit
