"""room_overview - mirror room bookings from a remote booking API into SQLite.

The package keeps a local copy of today's and tomorrow's confirmed bookings
per room and serves "what is happening now" views and an ICS export from it.
"""

__version__ = "0.3.0"

import dataclasses
from typing import Any, Optional


def run_server(args: Optional[Any] = None) -> int:
    """Load configuration and run the service (or a single sync with ``--once``).

    Args:
        args: parsed command line namespace with ``config``, ``port``, ``once``
            and ``debug`` attributes

    Returns:
        Process exit code

    Raises:
        ConfigError: the configuration cannot be loaded
        StorageError: the store cannot be initialized
        OSError: the listener cannot bind
    """
    import asyncio
    import logging

    from .config_loader import load_config
    from .logging_setup import configure_logging
    from .server import run_once, start_server

    debug = bool(getattr(args, "debug", False))
    configure_logging("INFO", debug_mode=debug)
    logger = logging.getLogger(__name__)

    config = load_config(getattr(args, "config", None))
    configure_logging(config.log_level, debug_mode=debug)

    port = getattr(args, "port", None)
    if port is not None:
        config = dataclasses.replace(config, server_port=int(port))
        logger.debug("Applied command line port override: %d", config.server_port)

    if getattr(args, "once", False):
        tracker = asyncio.run(run_once(config))
        if tracker.failures:
            logger.warning("Sync finished with %d errors", len(tracker.failures))
            return 1
        return 0

    start_server(config)
    return 0
