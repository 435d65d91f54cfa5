"""Diff remote bookings against stored bookings and apply the difference.

Matching is solely by ``booking_id``. The three output sets are disjoint by
key, so the apply order does not change the final state. Inserts go first so
that nothing disappears transiently when callers pass overlapping windows.

Each store call is independent: if one fails, the earlier ones stay applied.
The remote is the source of truth and the next cycle re-diffs, so a partial
apply heals itself.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from .exceptions import DuplicateBookingError
from .models import Booking
from .store import BookingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingDiff:
    """Changes needed to make the stored window match the remote window."""

    to_insert: list[Booking] = field(default_factory=list)
    to_delete: list[int] = field(default_factory=list)
    to_update: list[Booking] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_insert or self.to_delete or self.to_update)

    def summary(self) -> str:
        return (
            f"{len(self.to_insert)} new, {len(self.to_delete)} removed, "
            f"{len(self.to_update)} changed"
        )


def _index_remote(remote: Iterable[Booking]) -> dict[int, Booking]:
    indexed: dict[int, Booking] = {}
    for booking in remote:
        if booking.booking_id in indexed:
            raise DuplicateBookingError(booking.booking_id)
        indexed[booking.booking_id] = booking
    return indexed


def diff(remote: Iterable[Booking], local: Iterable[Booking]) -> BookingDiff:
    """Compute the three-way diff between a remote and a local booking set.

    Args:
        remote: bookings reported by the remote for the window
        local: bookings stored for the same window

    Returns:
        BookingDiff; remote order is preserved in ``to_insert``/``to_update``

    Raises:
        DuplicateBookingError: the remote set contains a booking id twice
    """
    remote_by_id = _index_remote(remote)
    local_by_id = {booking.booking_id: booking for booking in local}

    to_insert = [b for booking_id, b in remote_by_id.items() if booking_id not in local_by_id]
    to_delete = [booking_id for booking_id in local_by_id if booking_id not in remote_by_id]
    to_update = [
        b
        for booking_id, b in remote_by_id.items()
        if booking_id in local_by_id and local_by_id[booking_id] != b
    ]

    return BookingDiff(to_insert=to_insert, to_delete=to_delete, to_update=to_update)


async def apply(store: BookingStore, changes: BookingDiff) -> None:
    """Apply a diff to the store: inserts, then deletes, then updates.

    Raises:
        StorageError: from the first failing store call; no rollback
    """
    logger.debug("Adding these bookings: %r", changes.to_insert)
    await store.insert_many(changes.to_insert)

    logger.debug("Removing these bookings: %r", changes.to_delete)
    await store.delete_many(changes.to_delete)

    for booking in changes.to_update:
        await store.update(booking)


async def reconcile(
    store: BookingStore,
    remote: list[Booking],
    start: datetime,
    end: datetime,
) -> BookingDiff:
    """Bring the stored window ``[start, end]`` in line with ``remote``.

    The diff is computed before anything is written, so a duplicate remote
    id leaves the store untouched.

    Returns:
        The applied diff
    """
    local = await store.query(start, end)
    logger.debug("In store: %r", local)
    logger.debug("From remote: %r", remote)

    changes = diff(remote, local)
    await apply(store, changes)
    return changes
