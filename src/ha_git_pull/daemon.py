import logging
import signal
import sys
import threading
from dataclasses import replace
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import FrameType

from rich.console import Console

from . import auth, homeassistant, restart, sync
from .config import Config
from .constants import APP_NAME, WORK_TREE
from .exceptions import AuthSetupFailed, ConfigInvalid, ServiceError, SyncError
from .git_wrapper import GitRepo
from .sync import SyncResult

logger = logging.getLogger(APP_NAME)

err_console = Console(stderr=True)


def validate_config(
    work_tree: Path,
    config: Config,
    result: SyncResult,
    policy: restart.RestartPolicy,
) -> bool:
    """Checks a synchronized configuration and restarts Home-Assistant if warranted.

    Args:
        work_tree (Path): The synchronized work tree.
        config (Config): The application configuration.
        result (SyncResult): The outcome of the preceding synchronize call.
        policy (restart.RestartPolicy): The ignore list, classified at startup.

    Returns:
        bool: True if a restart was triggered.

    Raises:
        ConfigInvalid: If the new configuration fails the Home-Assistant check.
        ServiceError: If the restart itself fails.
    """
    logger.info("Checking if something has changed...")
    if not result.changed:
        logger.info("Nothing has changed.")
        return False

    logger.info("Something has changed, checking Home-Assistant config...")
    if not homeassistant.check_config():
        raise ConfigInvalid(
            "Configuration updated but it does not pass the config check. "
            "Do not restart until this is fixed!"
        )

    if not config.restart.auto:
        logger.info("Local configuration has changed. Restart required.")
        return False

    repo = GitRepo(work_tree)
    changed_files = repo.changed_files(result.previous_commit, result.new_commit)
    logger.info(f"Changed Files: {' '.join(sorted(changed_files))}")
    if not restart.should_restart(
        result.previous_commit,
        result.new_commit,
        changed_files,
        policy,
        config.restart.auto,
    ):
        logger.info("No Restart Required, only ignored changes detected")
        return False

    homeassistant.restart()
    return True


def run_iteration(
    work_tree: Path, config: Config, policy: restart.RestartPolicy
) -> bool:
    """Runs one Syncing -> Validating pass.

    Non-fatal failures are logged and end the pass early.

    Args:
        work_tree (Path): The directory kept in sync.
        config (Config): The application configuration.
        policy (restart.RestartPolicy): The ignore list, classified at startup.

    Returns:
        bool: True if the pass completed without errors.

    Raises:
        SyncError: Only for fatal sync errors (a mismatched remote).
    """
    try:
        auth.ensure_auth(config, work_tree)
    except AuthSetupFailed as e:
        logger.error(f"Auth setup failed: {e}")
        return False

    try:
        result = sync.synchronize(work_tree, config)
    except SyncError as e:
        if e.fatal:
            raise
        logger.error(str(e))
        return False

    try:
        validate_config(work_tree, config, result, policy)
    except ConfigInvalid as e:
        logger.error(str(e))
        return False
    except ServiceError as e:
        logger.error(f"Home-Assistant restart failed: {e}")
        return False

    return True


def run(
    config: Config,
    work_tree: Path = WORK_TREE,
    stop_event: threading.Event | None = None,
) -> int:
    """The main polling loop.

    Runs one iteration, then repeats every `config.repeat.interval` seconds
    while `config.repeat.active` is set and `stop_event` is clear.

    Args:
        config (Config): The application configuration.
        work_tree (Path, optional): The directory kept in sync.
        stop_event (threading.Event | None, optional): Set to stop the loop
            between iterations or during the sleep.

    Returns:
        int: 0 on a normal stop, 1 on a fatal error.
    """
    stop_event = stop_event or threading.Event()
    # Classified before the first sync so deletions cannot reclassify entries.
    policy = restart.RestartPolicy(config.restart.ignore, work_tree)

    while not stop_event.is_set():
        try:
            run_iteration(work_tree, config, policy)
        except SyncError as e:
            logger.critical(f"{e}. Fix the configuration and restart the add-on.")
            return 1
        except Exception:
            logger.exception("Unexpected error during synchronization")

        if not config.repeat.active:
            break
        if stop_event.wait(config.repeat.interval):
            logger.info("Stop requested, exiting.")
            break

    return 0


def setup_logging(config: Config, interactive: bool = False) -> None:
    """Configures the logging subsystem.

    Args:
        config (Config): Supplies the level and optional rotating log file.
        interactive (bool): If True, logs to stdout instead of stderr.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    logger.setLevel(getattr(logging, config.logging.level, logging.INFO))

    stream_handler = logging.StreamHandler(sys.stdout if interactive else sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if config.logging.file:
        try:
            file_handler = RotatingFileHandler(
                config.logging.file,
                maxBytes=config.logging.max_size,
                backupCount=5,
            )
        except OSError as e:
            logger.warning(
                f"Could not open log file {config.logging.file}: {e}. "
                "Logging to the console only."
            )
            return
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def install_signal_handlers(stop_event: threading.Event) -> None:
    """Makes SIGTERM and SIGINT stop the loop instead of killing it mid-step."""

    def handler(signum: int, _frame: FrameType | None) -> None:
        logger.info(f"Received signal {signum}, stopping after the current step.")
        stop_event.set()

    signal.signal(signal.SIGTERM, handler)
    signal.signal(signal.SIGINT, handler)


def main(
    config_path: Path | None = None,
    work_tree: Path = WORK_TREE,
    once: bool = False,
    interactive: bool = False,
) -> int:
    """Loads configuration, sets up logging and runs the loop.

    Args:
        config_path (Path | None, optional): Options file. Defaults to OPTIONS_FILE.
        work_tree (Path, optional): The directory kept in sync.
        once (bool, optional): Run a single iteration even if repeat is active.
        interactive (bool, optional): Log to stdout.

    Returns:
        int: The process exit status.
    """
    config = Config.load(config_path)
    setup_logging(config, interactive)

    if not config.repository:
        err_console.print("[bold red]FATAL:[/bold red] No repository configured.")
        return 1

    if once and config.repeat.active:
        config = replace(config, repeat=replace(config.repeat, active=False))

    if not work_tree.is_dir():
        logger.error(f"Failed to cd into {work_tree}")
        return 1

    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    return run(config, work_tree, stop_event)


if __name__ == "__main__":
    sys.exit(main())
