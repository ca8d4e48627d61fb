import logging
import os
import subprocess
from pathlib import Path
from urllib.parse import urlsplit

from .config import Config
from .constants import APP_NAME, CREDENTIALS_FILE, SSH_DIR
from .exceptions import AuthSetupFailed, GitCommandError
from .git_wrapper import run_git

logger = logging.getLogger(APP_NAME)


def get_ssh_target(repository: str) -> str | None:
    """Extracts the `user@host` part of an scp-style or ssh:// remote URL.

    Args:
        repository (str): The remote URL (e.g., 'git@github.com:user/repo.git').

    Returns:
        str | None: The ssh target, or None for non-ssh URLs.
    """
    if "://" in repository:
        parts = urlsplit(repository)
        if parts.scheme != "ssh" or not parts.hostname:
            return None
        return f"{parts.username}@{parts.hostname}" if parts.username else parts.hostname
    if ":" in repository:
        return repository.split(":", 1)[0]
    return None


def has_ssh_access(target: str) -> bool:
    """Probes the remote host non-interactively with the current ssh setup.

    GitHub refuses shell access and exits non-zero even when the key is
    accepted, so its greeting also counts as success.
    """
    try:
        res = subprocess.run(
            ["ssh", "-T", "-o", "StrictHostKeyChecking=no", "-o", "BatchMode=yes", target],
            capture_output=True,
            text=True,
        )
    except OSError as e:
        logger.debug(f"ssh probe for {target} failed to start: {e}")
        return False

    if res.returncode == 0:
        return True
    output = f"{res.stdout}{res.stderr}"
    return "@github.com" in target and "You've successfully authenticated" in output


def install_ssh_key(key: tuple[str, ...], protocol: str, ssh_dir: Path = SSH_DIR) -> Path:
    """Writes the deployment key and a permissive ssh client config.

    Args:
        key (tuple[str, ...]): The private key, one line per element.
        protocol (str): Key type, used for the `id_<protocol>` filename.
        ssh_dir (Path, optional): Target directory. Defaults to ~/.ssh.

    Returns:
        Path: The written key file.

    Raises:
        AuthSetupFailed: If the files cannot be written.
    """
    logger.info("Start adding SSH key")
    config_file = ssh_dir / "config"
    key_file = ssh_dir / f"id_{protocol}"
    try:
        ssh_dir.mkdir(parents=True, exist_ok=True)
        config_file.write_text("Host *\n    StrictHostKeyChecking no\n")

        logger.info(f"Setup deployment_key on id_{protocol}")
        key_file.unlink(missing_ok=True)
        fd = os.open(key_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write("".join(f"{line}\n" for line in key))

        os.chmod(config_file, 0o600)
        os.chmod(key_file, 0o600)
    except OSError as e:
        raise AuthSetupFailed(f"Could not install SSH key: {e}") from e
    return key_file


def check_ssh_key(config: Config, ssh_dir: Path = SSH_DIR) -> None:
    """Installs the deployment key unless ssh access already works."""
    if not config.deployment.key:
        return

    logger.info("Check SSH connection")
    target = get_ssh_target(config.repository)
    if target is None:
        logger.warning(
            f"Deployment key set but {config.repository} is not an ssh URL. Skipping."
        )
        return

    if has_ssh_access(target):
        logger.info(f"Valid SSH connection for {target}")
        return

    logger.warning(f"No valid SSH connection for {target}")
    install_ssh_key(config.deployment.key, config.deployment.key_protocol, ssh_dir)


def credential_input(repository: str, user: str, password: str) -> str:
    """Formats the stdin block understood by `git credential approve`.

    Raises:
        AuthSetupFailed: If the repository URL has no scheme or host.
    """
    parts = urlsplit(repository)
    if not parts.scheme or not parts.hostname:
        raise AuthSetupFailed(
            f"Cannot store credentials for {repository}: not a protocol://host URL"
        )
    host = parts.hostname if parts.port is None else f"{parts.hostname}:{parts.port}"
    return (
        f"protocol={parts.scheme}\n"
        f"host={host}\n"
        f"username={user}\n"
        f"password={password}\n"
        "\n"
    )


def setup_user_password(
    config: Config, work_tree: Path, credentials_file: Path = CREDENTIALS_FILE
) -> None:
    """Stores HTTPS credentials in git's file-based credential store."""
    user = config.deployment.user
    if not user:
        return

    logger.info(f"setting up credential.helper for user: {user}")
    data = credential_input(config.repository, user, config.deployment.password)
    cwd = work_tree if work_tree.is_dir() else None
    try:
        run_git(
            ["config", "--system", "credential.helper", f"store --file={credentials_file}"],
            cwd=cwd,
        )
        logger.info(f"Saving git credentials to {credentials_file}")
        run_git(["credential", "approve"], cwd=cwd, input=data)
    except (GitCommandError, OSError) as e:
        raise AuthSetupFailed(f"Could not store git credentials: {e}") from e


def ensure_auth(config: Config, work_tree: Path) -> None:
    """Makes sure git can authenticate against the configured remote.

    Raises:
        AuthSetupFailed: If the key or credentials cannot be installed.
    """
    check_ssh_key(config)
    setup_user_password(config, work_tree)
