"""Unit tests for room_overview.time_normalizer."""

from datetime import date, datetime, timedelta, timezone

import pytest

from room_overview.exceptions import TimeParseError
from room_overview.time_normalizer import (
    TEST_TIME_ENV,
    day_end,
    day_start,
    from_storage,
    now_utc,
    parse_remote_timestamp,
    start_of_day,
    to_storage,
    to_utc,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]

CET = timezone(timedelta(hours=1))


class TestStorageText:
    """Conversion between instants and naive UTC storage text."""

    def test_to_storage_when_utc_then_plain_wall_clock(self):
        """UTC instants are written without zone tag or sub-seconds."""
        instant = datetime(2021, 3, 26, 8, 5, 9, 123456, tzinfo=timezone.utc)

        assert to_storage(instant) == "2021-03-26T08:05:09"

    def test_to_storage_when_offset_then_converted_to_utc(self):
        """Instants in other offsets are stored as their UTC wall clock."""
        instant = datetime(2021, 3, 26, 0, 30, tzinfo=CET)

        assert to_storage(instant) == "2021-03-25T23:30:00"

    def test_to_storage_when_naive_then_rejected(self):
        """A naive datetime is not an instant and cannot be stored."""
        with pytest.raises(ValueError):
            to_storage(datetime(2021, 3, 26, 8, 0))

    def test_from_storage_tags_utc(self):
        """Storage text is read back as an aware UTC datetime."""
        parsed = from_storage("2021-03-26T08:05:09")

        assert parsed == datetime(2021, 3, 26, 8, 5, 9, tzinfo=timezone.utc)
        assert parsed.tzinfo is timezone.utc

    def test_from_storage_when_malformed_then_value_error(self):
        with pytest.raises(ValueError):
            from_storage("26.03.2021 08:05")

    @pytest.mark.parametrize(
        "instant",
        [
            datetime(2021, 3, 26, 8, 5, 9, tzinfo=timezone.utc),
            datetime(2020, 2, 29, 23, 59, 59, tzinfo=timezone.utc),
            datetime(1999, 12, 31, 0, 0, 0, tzinfo=timezone.utc),
        ],
    )
    def test_round_trip_at_second_precision(self, instant):
        """from_storage(to_storage(x)) == x for UTC instants without sub-seconds."""
        assert from_storage(to_storage(instant)) == instant

    def test_round_trip_preserves_instant_for_other_offsets(self):
        """The round trip keeps the absolute instant, not the offset."""
        instant = datetime(2021, 3, 26, 9, 0, tzinfo=CET)

        assert from_storage(to_storage(instant)) == instant


class TestRemoteTimestamps:
    """Parsing of RFC3339 timestamps sent by the booking API."""

    def test_parse_zulu(self):
        assert parse_remote_timestamp("2021-03-26T08:00:00Z") == datetime(
            2021, 3, 26, 8, 0, tzinfo=timezone.utc
        )

    def test_parse_offset_converted_to_utc(self):
        """An explicit offset is honored and converted."""
        parsed = parse_remote_timestamp("2021-03-26T09:00:00+01:00")

        assert parsed == datetime(2021, 3, 26, 8, 0, tzinfo=timezone.utc)
        assert parsed.utcoffset() == timedelta(0)

    def test_parse_truncates_fractional_seconds(self):
        parsed = parse_remote_timestamp("2021-03-26T10:00:00.500Z")

        assert parsed == datetime(2021, 3, 26, 10, 0, tzinfo=timezone.utc)
        assert from_storage(to_storage(parsed)) == parsed

    def test_parse_without_offset_rejected(self):
        """A timestamp without offset is not an instant."""
        with pytest.raises(TimeParseError) as exc_info:
            parse_remote_timestamp("2021-03-26T08:00:00")

        assert exc_info.value.value == "2021-03-26T08:00:00"

    def test_parse_garbage_rejected(self):
        with pytest.raises(TimeParseError):
            parse_remote_timestamp("tomorrow morning")


class TestDayBoundaries:
    """Day boundary helpers used for the sync window and pruning."""

    def test_start_of_day_uses_utc_calendar_day(self):
        """Midnight is taken in UTC, not in the instant's own offset."""
        instant = datetime(2021, 3, 26, 0, 30, tzinfo=CET)  # 2021-03-25T23:30Z

        assert start_of_day(instant) == datetime(2021, 3, 25, tzinfo=timezone.utc)

    def test_day_start_and_end(self):
        assert day_start(date(2021, 3, 26)) == datetime(2021, 3, 26, 0, 0, 0, tzinfo=timezone.utc)
        assert day_end(date(2021, 3, 26)) == datetime(2021, 3, 26, 23, 59, 59, tzinfo=timezone.utc)

    def test_to_utc_rejects_naive(self):
        with pytest.raises(ValueError):
            to_utc(datetime(2021, 3, 26))


class TestNowUtc:
    """The process clock and its test override."""

    def test_now_utc_is_aware(self):
        assert now_utc().tzinfo is not None

    def test_now_utc_honors_override(self, monkeypatch):
        monkeypatch.setenv(TEST_TIME_ENV, "2021-03-26T08:00:00+01:00")

        assert now_utc() == datetime(2021, 3, 26, 7, 0, tzinfo=timezone.utc)

    def test_now_utc_naive_override_taken_as_utc(self, monkeypatch):
        monkeypatch.setenv(TEST_TIME_ENV, "2021-03-26T08:00:00")

        assert now_utc() == datetime(2021, 3, 26, 8, 0, tzinfo=timezone.utc)

    def test_now_utc_ignores_invalid_override(self, monkeypatch):
        """An unparsable override falls back to the real clock."""
        monkeypatch.setenv(TEST_TIME_ENV, "not-a-date")

        assert now_utc().year >= 2024
