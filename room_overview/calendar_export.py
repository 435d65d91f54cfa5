"""ICS export of the mirrored bookings."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Optional

from icalendar import Calendar, Event as ICalEvent

from .config_loader import RoomConfig
from .models import Booking
from .time_normalizer import now_utc

logger = logging.getLogger(__name__)

PRODID = "-//room-overview//bookings//EN"


def booking_uid(booking: Booking) -> str:
    """Stable UID of a booking in the exported calendar."""
    return f"booking-{booking.booking_id}@room-overview"


def build_calendar(
    bookings: Iterable[Booking],
    rooms: Sequence[RoomConfig],
    stamp: Optional[datetime] = None,
) -> Calendar:
    """Build a VCALENDAR with one VEVENT per booking of a configured room.

    Bookings whose resource is not mapped to any room are left out.

    Args:
        bookings: stored bookings
        rooms: configured rooms; the first room of a resource id wins
        stamp: DTSTAMP of every event, defaults to now
    """
    location_by_resource: dict[int, str] = {}
    for room in rooms:
        location_by_resource.setdefault(room.remote_id, room.ics_location())

    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")

    dtstamp = stamp or now_utc()
    skipped = 0
    for booking in bookings:
        location = location_by_resource.get(booking.resource_id)
        if location is None:
            skipped += 1
            continue

        event = ICalEvent()
        event.add("uid", booking_uid(booking))
        event.add("dtstamp", dtstamp)
        event.add("summary", booking.title)
        event.add("dtstart", booking.start_time)
        event.add("dtend", booking.end_time)
        event.add("location", location)
        cal.add_component(event)

    if skipped:
        logger.debug("Left %d bookings of unmapped resources out of the calendar", skipped)
    return cal


def render_calendar(
    bookings: Iterable[Booking],
    rooms: Sequence[RoomConfig],
    stamp: Optional[datetime] = None,
) -> bytes:
    """Serialize the bookings calendar to ICS bytes."""
    return build_calendar(bookings, rooms, stamp).to_ical()
