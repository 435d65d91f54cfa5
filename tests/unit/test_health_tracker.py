"""Unit tests for room_overview.health_tracker."""

import time

import pytest

from room_overview.exceptions import TransportError
from room_overview.health_tracker import MAX_RECORDED_FAILURES, HealthTracker

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class TestHealthTracker:
    """Tests for HealthTracker class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tracker = HealthTracker(stale_after_seconds=900)

    def test_initial_state(self):
        """Should report degraded until the first successful sync."""
        status = self.tracker.get_health_status("2021-03-26T08:00:00Z")

        assert status.status == "degraded"
        assert status.uptime_seconds >= 0
        assert status.last_sync_success_age_seconds is None
        assert status.last_errors == {}
        assert self.tracker.failures == []

    def test_record_sync_success(self):
        """Should record counts and report ok."""
        self.tracker.record_sync_success(inserted=2, deleted=1, updated=0)

        status = self.tracker.get_health_status("now")

        assert status.status == "ok"
        assert status.last_sync_changes == {"inserted": 2, "deleted": 1, "updated": 0}
        assert status.last_sync_success_age_seconds is not None
        assert status.last_sync_success_age_seconds < 60

    def test_stale_success_is_degraded(self):
        self.tracker.record_sync_success(0, 0, 0)
        self.tracker._last_sync_success = time.time() - 1000

        assert self.tracker.determine_overall_status() == "degraded"

    def test_record_sync_failure_per_step(self):
        """Failures are kept in order and summarized per step."""
        self.tracker.record_sync_failure("fetch", TransportError("HTTP 503", status_code=503))
        self.tracker.record_sync_failure("prune", ValueError("disk"))

        failures = self.tracker.failures
        assert [f.step for f in failures] == ["fetch", "prune"]
        assert failures[0].error_type == "TransportError"
        assert self.tracker.get_health_status("now").last_errors == {
            "fetch": "TransportError: HTTP 503",
            "prune": "ValueError: disk",
        }

    def test_success_clears_sync_errors_but_keeps_history(self):
        self.tracker.record_sync_failure("fetch", TransportError("down"))

        self.tracker.record_sync_success(0, 0, 0)

        assert "fetch" not in self.tracker.get_health_status("now").last_errors
        assert len(self.tracker.failures) == 1

    def test_record_prune_clears_prune_error(self):
        self.tracker.record_sync_failure("prune", ValueError("locked"))

        self.tracker.record_prune(3)

        status = self.tracker.get_health_status("now")
        assert status.last_pruned_count == 3
        assert "prune" not in status.last_errors

    def test_failure_history_is_bounded(self):
        for i in range(MAX_RECORDED_FAILURES + 10):
            self.tracker.record_sync_failure("fetch", TransportError(str(i)))

        failures = self.tracker.failures
        assert len(failures) == MAX_RECORDED_FAILURES
        assert failures[-1].message == str(MAX_RECORDED_FAILURES + 9)

    def test_as_dict_shape(self):
        self.tracker.record_heartbeat()
        self.tracker.record_sync_success(1, 0, 0)

        data = self.tracker.as_dict("2021-03-26T08:00:00Z")

        assert data["status"] == "ok"
        assert data["server_time_iso"] == "2021-03-26T08:00:00Z"
        assert data["sync"]["last_changes"]["inserted"] == 1
        assert data["sync"]["heartbeat_age_s"] is not None
