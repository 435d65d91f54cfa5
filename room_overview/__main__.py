"""Command-line entry for room_overview."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import NoReturn

from . import run_server
from .exceptions import RoomOverviewError

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for room_overview CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="room_overview",
        description="Room Overview - mirror room bookings and show what is on now",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m room_overview                          # Use $ROOM_OVERVIEW_CONFIG or /etc/room-overview/config.yaml
  python -m room_overview --config config.yaml     # Explicit config file
  python -m room_overview --once                   # Run one sync and exit
        """,
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to the YAML config file",
    )
    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (overrides server_port from the config)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sync cycle and exit",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    return parser


def main() -> NoReturn:
    """Run the room_overview CLI."""
    parser = _create_parser()
    args = parser.parse_args()

    try:
        sys.exit(run_server(args))
    except (RoomOverviewError, OSError) as exc:
        logger.exception("Cannot start room_overview")
        print(f"\nStartup aborted: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
