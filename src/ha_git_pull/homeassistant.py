import logging
import subprocess

from .constants import APP_NAME, HA_COMMAND
from .exceptions import ServiceError

logger = logging.getLogger(APP_NAME)


def check_config() -> bool:
    """Asks the Supervisor whether the current configuration is valid.

    Returns:
        bool: True if `ha core check` succeeds.
    """
    try:
        res = subprocess.run(
            [*HA_COMMAND, "core", "check"], capture_output=True, text=True
        )
    except OSError as e:
        logger.error(f"Could not run the Home-Assistant CLI: {e}")
        return False

    if res.returncode != 0:
        logger.debug(f"Config check output: {(res.stdout + res.stderr).strip()}")
    return res.returncode == 0


def restart() -> None:
    """Restarts Home-Assistant core.

    Raises:
        ServiceError: If the CLI is missing or reports failure.
    """
    logger.info("Restart Home-Assistant")
    try:
        subprocess.run(
            [*HA_COMMAND, "core", "restart"],
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise ServiceError(f"Restart failed: {(e.stderr or '').strip() or e}") from e
    except OSError as e:
        raise ServiceError(f"Could not run the Home-Assistant CLI: {e}") from e
