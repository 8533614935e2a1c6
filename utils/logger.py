import logging
import sys
from typing import Union

LOGGER_NAME = "spotify_now_playing"
LIBRARY_LOGGER_NAME = "spotify_api"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Custom level between INFO and WARNING for "it worked" messages.
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: Union[int, str] = logging.INFO, *, stream=None) -> logging.Logger:
    """Configure the application logger with a single console handler.

    Calling this more than once replaces the handler instead of stacking
    duplicates, so menus can re-apply a changed log_level.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    # Library modules log under their own names (spotify_api.*); route them too.
    for target in (logger, logging.getLogger(LIBRARY_LOGGER_NAME)):
        for old in list(target.handlers):
            target.removeHandler(old)
        target.addHandler(handler)
        target.setLevel(level)
        target.propagate = False

    return logger


def log_debug(message: str) -> None:
    logger.debug(message)


def log_info(message: str) -> None:
    logger.info(message)


def log_success(message: str) -> None:
    logger.log(SUCCESS, message)


def log_warning(message: str) -> None:
    logger.warning(message)


def log_error(message: str) -> None:
    logger.error(message)
