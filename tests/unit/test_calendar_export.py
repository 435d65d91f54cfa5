"""Unit tests for room_overview.calendar_export."""

from datetime import datetime, timezone

import pytest
from icalendar import Calendar

from room_overview.calendar_export import booking_uid, build_calendar, render_calendar
from room_overview.config_loader import RoomConfig

pytestmark = [pytest.mark.unit, pytest.mark.fast]

ROOMS = (
    RoomConfig(remote_id=1, name="Great Hall", location_hint="Ground floor"),
    RoomConfig(remote_id=2, name="Chapel", location_hint="Building B"),
)
STAMP = datetime(2021, 3, 26, 8, 0, tzinfo=timezone.utc)


def _events(calendar):
    return [c for c in calendar.walk() if c.name == "VEVENT"]


def test_build_calendar_one_event_per_mapped_booking(make_booking):
    """Each booking of a configured room becomes a VEVENT with its room location."""
    bookings = [
        make_booking(booking_id=10, resource_id=1, title="Choir"),
        make_booking(booking_id=11, resource_id=2, title="Prayer"),
    ]

    events = _events(build_calendar(bookings, ROOMS, stamp=STAMP))

    assert [str(e["uid"]) for e in events] == [booking_uid(b) for b in bookings]
    assert [str(e["summary"]) for e in events] == ["Choir", "Prayer"]
    assert [str(e["location"]) for e in events] == [
        "Great Hall - Ground floor",
        "Chapel - Building B",
    ]
    assert events[0].decoded("dtstart") == bookings[0].start_time
    assert events[0].decoded("dtend") == bookings[0].end_time


def test_build_calendar_skips_unmapped_resources(make_booking):
    bookings = [make_booking(booking_id=1, resource_id=1), make_booking(booking_id=2, resource_id=99)]

    events = _events(build_calendar(bookings, ROOMS, stamp=STAMP))

    assert len(events) == 1


def test_render_calendar_round_trips_through_parser(make_booking):
    """The rendered bytes are a valid calendar with UTC times."""
    body = render_calendar([make_booking(booking_id=3)], ROOMS, stamp=STAMP)

    assert body.startswith(b"BEGIN:VCALENDAR")
    assert b"DTSTART:20210326T100000Z" in body
    parsed = Calendar.from_ical(body)
    assert len(_events(parsed)) == 1


def test_empty_calendar_is_valid():
    body = render_calendar([], ROOMS, stamp=STAMP)

    assert b"BEGIN:VCALENDAR" in body
    assert b"VEVENT" not in body
