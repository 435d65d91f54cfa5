"""SQLite persistence for mirrored bookings.

sqlite does not have timezone-aware types, so only naive text is stored.
WE ALWAYS STORE UTC DATETIMES IN SQLITE: every write goes through
``to_storage`` and every read through ``from_storage``.
"""

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import aiosqlite

from .exceptions import ConflictError, NotFoundError, StorageError
from .models import Booking
from .time_normalizer import from_storage, to_storage

logger = logging.getLogger(__name__)

BOOKING_DATABASE_NAME = ".bookings.db"

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS bookings (
        booking_id INTEGER PRIMARY KEY,
        title TEXT NOT NULL,
        resource_id INTEGER NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL
    )
"""

_COLUMNS = "booking_id, title, resource_id, start_time, end_time"


class BookingStore:
    """Repository of bookings keyed by the remote booking id.

    Every operation opens its own connection, so the store can be shared by
    the sync loop and the read path. SQLite serializes concurrent writers;
    each public method is atomic on its own.
    """

    def __init__(self, database_path: Union[Path, str] = BOOKING_DATABASE_NAME, timeout: float = 5.0):
        """Initialize booking store.

        Args:
            database_path: Path to SQLite database file
            timeout: Seconds to wait for a locked database before failing
        """
        self.database_path = (
            Path(database_path) if isinstance(database_path, str) else database_path
        )
        self.timeout = timeout

        logger.debug("Booking store configured: %s", self.database_path)

    @asynccontextmanager
    async def _connection(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection, translating engine errors into StorageError."""
        try:
            async with aiosqlite.connect(str(self.database_path), timeout=self.timeout) as db:
                yield db
        except (aiosqlite.Error, OverflowError) as e:
            # OverflowError: an integer does not fit SQLite INTEGER
            raise StorageError(f"Unable to {operation}. Inner error: {e}") from e

    @staticmethod
    def _to_row(booking: Booking) -> tuple[Any, ...]:
        return (
            booking.booking_id,
            booking.title,
            booking.resource_id,
            to_storage(booking.start_time),
            to_storage(booking.end_time),
        )

    @staticmethod
    def _from_row(row: Iterable[Any]) -> Booking:
        booking_id, title, resource_id, start_text, end_text = row
        try:
            start_time = from_storage(start_text)
            end_time = from_storage(end_text)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Booking {booking_id} has a malformed stored timestamp: {e}") from e
        return Booking(
            booking_id=booking_id,
            title=title,
            resource_id=resource_id,
            start_time=start_time,
            end_time=end_time,
        )

    async def initialize(self) -> None:
        """Create the bookings table if needed.

        Raises:
            StorageError: if the database cannot be opened or migrated
        """
        try:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Unable to create database directory: {e}") from e

        async with self._connection("initialize the booking store") as db:
            # WAL lets the read path query while the sync loop writes
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute(_SCHEMA)
            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_bookings_time ON bookings(start_time, end_time)"
            )
            await db.commit()

        logger.info("Booking store initialized at %s", self.database_path)

    async def query(self, start: datetime, end: datetime) -> list[Booking]:
        """Get all bookings which intersect the interval [start, end].

        Args:
            start: inclusive start instant
            end: inclusive end instant

        Returns:
            Bookings with ``stored.start <= end`` and ``start <= stored.end``
        """
        start_str = to_storage(start)
        end_str = to_storage(end)
        logger.debug("Querying bookings between %s and %s", start_str, end_str)

        async with self._connection("select bookings from the DB") as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM bookings "  # noqa: S608 - constant column list
                "WHERE start_time <= ? AND ? <= end_time "
                "ORDER BY start_time, booking_id",
                (end_str, start_str),
            )
            rows = await cursor.fetchall()

        return [self._from_row(row) for row in rows]

    async def get_all(self) -> list[Booking]:
        """Get every stored booking."""
        async with self._connection("select bookings from the DB") as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM bookings ORDER BY start_time, booking_id"  # noqa: S608
            )
            rows = await cursor.fetchall()

        return [self._from_row(row) for row in rows]

    async def get(self, booking_id: int) -> Optional[Booking]:
        """Get a single booking by id, or None if it is not stored."""
        async with self._connection(f"select booking {booking_id} from the DB") as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM bookings WHERE booking_id = ?",  # noqa: S608
                (booking_id,),
            )
            row = await cursor.fetchone()

        return self._from_row(row) if row is not None else None

    async def insert(self, booking: Booking) -> None:
        """Insert a booking.

        Raises:
            ConflictError: if the booking id is already stored
        """
        await self.insert_many([booking])

    async def insert_many(self, bookings: Iterable[Booking]) -> None:
        """Insert bookings in one transaction. Nothing is inserted on conflict.

        Raises:
            ConflictError: if any booking id is already stored (or repeated)
        """
        bookings = list(bookings)
        if not bookings:
            return

        async with self._connection("insert bookings into the DB") as db:
            for booking in bookings:
                try:
                    await db.execute(
                        f"INSERT INTO bookings ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",  # noqa: S608
                        self._to_row(booking),
                    )
                except aiosqlite.IntegrityError as e:
                    raise ConflictError(booking.booking_id) from e
            await db.commit()

        for booking in bookings:
            logger.info("Inserted new booking: %r", booking)

    async def update(self, booking: Booking) -> None:
        """Replace title, resource and times of a stored booking.

        Raises:
            NotFoundError: if the booking id is not stored
        """
        row = self._to_row(booking)
        async with self._connection(f"update booking {booking.booking_id} in the DB") as db:
            cursor = await db.execute(
                "UPDATE bookings SET title = ?, resource_id = ?, start_time = ?, end_time = ? "
                "WHERE booking_id = ?",
                (*row[1:], booking.booking_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(booking.booking_id)
            await db.commit()

        logger.info("Updated booking %d. Is now: %r", booking.booking_id, booking)

    async def delete(self, booking_id: int) -> None:
        """Delete a booking by id. Deleting an absent id is a no-op."""
        await self.delete_many([booking_id])

    async def delete_many(self, booking_ids: Iterable[int]) -> None:
        """Delete bookings by id in one transaction. Absent ids are ignored."""
        ids = [(booking_id,) for booking_id in booking_ids]
        if not ids:
            return

        async with self._connection("delete bookings from the DB") as db:
            await db.executemany("DELETE FROM bookings WHERE booking_id = ?", ids)
            await db.commit()

        logger.info("Deleted bookings: %s", ", ".join(str(i) for (i,) in ids))

    async def prune(self, before: datetime) -> int:
        """Delete every booking that ended strictly before ``before``.

        Returns:
            Number of bookings removed
        """
        before_str = to_storage(before)
        async with self._connection("prune old bookings from the DB") as db:
            cursor = await db.execute("DELETE FROM bookings WHERE end_time < ?", (before_str,))
            deleted_count = cursor.rowcount
            await db.commit()

        return deleted_count
