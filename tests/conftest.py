"""Shared fixtures for the room_overview test suite."""

from collections.abc import AsyncIterator, Callable, Generator
from datetime import datetime, timezone
from typing import Any

import pytest

from room_overview.http_client import close_all_clients
from room_overview.models import Booking
from room_overview.store import BookingStore
from room_overview.time_normalizer import TEST_TIME_ENV


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture
def make_booking() -> Callable[..., Booking]:
    """Factory for bookings with sensible defaults.

    Defaults describe a one-hour booking of resource 1 on 2021-03-26.
    """

    def _make(
        booking_id: int = 1,
        resource_id: int = 1,
        title: str = "Choir rehearsal",
        start_time: datetime = utc(2021, 3, 26, 10),
        end_time: datetime = utc(2021, 3, 26, 11),
    ) -> Booking:
        return Booking(
            booking_id=booking_id,
            resource_id=resource_id,
            title=title,
            start_time=start_time,
            end_time=end_time,
        )

    return _make


@pytest.fixture
async def store(tmp_path: Any) -> BookingStore:
    """Initialized booking store backed by a temporary SQLite file."""
    booking_store = BookingStore(tmp_path / "bookings.db")
    await booking_store.initialize()
    return booking_store


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure the clock override and config env vars never leak between tests."""
    for name in (TEST_TIME_ENV, "ROOM_OVERVIEW_CONFIG", "ROOM_OVERVIEW_DEBUG", "ROOM_OVERVIEW_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close the shared httpx clients after every test."""
    yield
    await close_all_clients()
