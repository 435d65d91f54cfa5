"""
Central logging configuration for room_overview.

Installs a colorized console handler on the root logger and suppresses verbose
debug logs from third-party libraries while keeping WARNING/ERROR logs for
diagnostics.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

# HH:MM:SS  LEVEL   logger.name: message
# Only the level is colorized.
LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

# Third-party libraries that generate excessive debug logs
NOISY_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "aiosqlite": logging.WARNING,
}

_TRUTHY = ("1", "true", "yes", "on")

CONSOLE_HANDLER_NAME = "room_overview.console"


def _resolve_level(level_name: Optional[str], debug_mode: bool) -> int:
    env_debug = os.getenv("ROOM_OVERVIEW_DEBUG", "").strip().lower() in _TRUTHY
    env_log_level = os.getenv("ROOM_OVERVIEW_LOG_LEVEL", "").strip().upper()

    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        return getattr(logging, env_log_level)
    if debug_mode or env_debug:
        return logging.DEBUG
    if isinstance(level_name, str):
        level = logging.getLevelName(level_name.upper())
        if isinstance(level, int):
            return level
    return logging.INFO


def configure_logging(level_name: Optional[str] = "INFO", debug_mode: bool = False) -> None:
    """Configure root logging for the process.

    Args:
        level_name: level from the config file (DEBUG, INFO, ...)
        debug_mode: force DEBUG, e.g. from the ``--debug`` flag

    Environment Variables:
        ROOM_OVERVIEW_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        ROOM_OVERVIEW_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    level = _resolve_level(level_name, debug_mode)

    root = logging.getLogger()
    # Only add our handler once; calling again only adjusts levels
    if not any(h.get_name() == CONSOLE_HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.set_name(CONSOLE_HANDLER_NAME)
        handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS))
        root.addHandler(handler)
    root.setLevel(level)

    for logger_name, logger_level in NOISY_LOGGERS.items():
        # Never hide warnings, but do not let DEBUG leak from libraries either
        logging.getLogger(logger_name).setLevel(max(logger_level, level))

    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )
