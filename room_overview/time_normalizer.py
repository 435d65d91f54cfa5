"""UTC normalization for stored and compared timestamps.

SQLite has no timezone-aware column type, so bookings are stored as naive
wall-clock text that is ALWAYS UTC. Two representations exist:

- instants: timezone-aware ``datetime`` objects (any offset, compared absolutely)
- storage text: ``YYYY-MM-DDTHH:MM:SS`` strings without a zone tag, UTC by convention

Only ``to_storage`` produces storage text and only ``from_storage`` turns it
back into an instant. Storage text must never be compared with anything but
other storage text.
"""

from __future__ import annotations

import datetime
import logging
import os

from dateutil import parser as date_parser

from .exceptions import TimeParseError

logger = logging.getLogger(__name__)

STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S"

TEST_TIME_ENV = "ROOM_OVERVIEW_TEST_TIME"


def _require_aware(instant: datetime.datetime) -> None:
    if instant.tzinfo is None or instant.tzinfo.utcoffset(instant) is None:
        raise ValueError(f"Expected a timezone-aware datetime, got naive {instant!r}")


def to_utc(instant: datetime.datetime) -> datetime.datetime:
    """Convert an aware datetime to UTC. Naive datetimes are rejected."""
    _require_aware(instant)
    return instant.astimezone(datetime.timezone.utc)


def to_storage(instant: datetime.datetime) -> str:
    """Format an instant as naive UTC storage text.

    Sub-second precision is dropped.

    Args:
        instant: timezone-aware datetime

    Returns:
        UTC wall-clock text in ``STORAGE_FORMAT``
    """
    return to_utc(instant).strftime(STORAGE_FORMAT)


def from_storage(text: str) -> datetime.datetime:
    """Parse storage text and tag it as UTC.

    Args:
        text: naive UTC text in ``STORAGE_FORMAT``

    Returns:
        timezone-aware datetime in UTC

    Raises:
        ValueError: if the text does not match ``STORAGE_FORMAT``
    """
    naive = datetime.datetime.strptime(text, STORAGE_FORMAT)
    return naive.replace(tzinfo=datetime.timezone.utc)


def parse_remote_timestamp(value: str) -> datetime.datetime:
    """Parse an RFC3339 timestamp from the remote API into a UTC instant.

    The remote does not document its offsets; it has been observed to send
    UTC. Any explicit offset is honored, a missing offset is an error.
    Fractional seconds are truncated.

    Raises:
        TimeParseError: if the value is not an ISO 8601 timestamp with offset
    """
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError, TypeError) as e:
        raise TimeParseError(f"Cannot parse remote timestamp {value!r}: {e}", value=value) from e
    if parsed.tzinfo is None:
        raise TimeParseError(f"Remote timestamp {value!r} has no UTC offset", value=value)
    # storage keeps whole seconds
    return parsed.astimezone(datetime.timezone.utc).replace(microsecond=0)


def start_of_day(instant: datetime.datetime) -> datetime.datetime:
    """Return UTC midnight of the UTC calendar day containing ``instant``."""
    utc = to_utc(instant)
    return utc.replace(hour=0, minute=0, second=0, microsecond=0)


def day_start(day: datetime.date) -> datetime.datetime:
    """Return ``day`` at 00:00:00 UTC."""
    return datetime.datetime.combine(day, datetime.time(0, 0, 0), tzinfo=datetime.timezone.utc)


def day_end(day: datetime.date) -> datetime.datetime:
    """Return ``day`` at 23:59:59 UTC (the last instant representable in storage)."""
    return datetime.datetime.combine(day, datetime.time(23, 59, 59), tzinfo=datetime.timezone.utc)


def now_utc() -> datetime.datetime:
    """Return the current time in UTC.

    Can be overridden for testing via the ROOM_OVERVIEW_TEST_TIME environment
    variable (ISO 8601, e.g. "2021-03-26T08:00:00Z"). A naive override is
    taken as UTC.
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is not None:
                return dt.astimezone(datetime.timezone.utc)
            return dt.replace(tzinfo=datetime.timezone.utc)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.datetime.now(datetime.timezone.utc)
