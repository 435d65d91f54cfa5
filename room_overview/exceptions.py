"""Exception hierarchy for room_overview.

Source errors are raised by the booking API client, storage errors by the
booking store. Both are caught per step inside the sync loop; neither is fatal
there. Only startup failures (config, store initialization, listener bind)
propagate out of the process.
"""

from typing import Optional


class RoomOverviewError(Exception):
    """Base exception for all room_overview errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SourceError(RoomOverviewError):
    """Base exception for failures while fetching bookings from the remote API."""


class TransportError(SourceError):
    """The remote API could not be reached or answered with a non-success status.

    Raised when:
    - the connection fails or times out
    - the response status is not 2xx (``status_code`` is set)
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(SourceError):
    """The remote response could not be decoded as the expected schema."""


class DuplicateBookingError(ProtocolError):
    """The remote returned the same booking id more than once in one fetch."""

    def __init__(self, booking_id: int):
        super().__init__(f"Remote returned booking {booking_id} more than once")
        self.booking_id = booking_id


class TimeParseError(SourceError):
    """A timestamp in the remote response is not a valid RFC3339 instant."""

    def __init__(self, message: str, value: Optional[str] = None):
        super().__init__(message)
        self.value = value


class StorageError(RoomOverviewError):
    """The booking store failed; the engine error is chained as ``__cause__``."""


class ConflictError(StorageError):
    """Insert of a booking id that is already stored."""

    def __init__(self, booking_id: int):
        super().__init__(f"Booking {booking_id} already exists")
        self.booking_id = booking_id


class NotFoundError(StorageError):
    """Update of a booking id that is not stored."""

    def __init__(self, booking_id: int):
        super().__init__(f"Booking {booking_id} does not exist")
        self.booking_id = booking_id


class ConfigError(RoomOverviewError):
    """Configuration file is missing, unreadable or invalid."""
