"""Health tracking for the sync loop.

Errors inside the sync loop are logged and never escalated. The tracker
keeps them observable: the health endpoint reads it, and tests inject their
own tracker into the scheduler to assert on what went wrong.
"""

from __future__ import annotations

import os
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional

# Keep the most recent failures only
MAX_RECORDED_FAILURES = 50


@dataclass(frozen=True)
class SyncFailure:
    """One observed-but-not-escalated error of the sync loop."""

    step: str  # "fetch", "reconcile" or "prune"
    error_type: str
    message: str
    timestamp: float


@dataclass
class HealthStatus:
    """Health status information for the server."""

    status: str  # "ok" or "degraded"
    server_time_iso: str
    uptime_seconds: int
    pid: int
    last_sync_success_age_seconds: Optional[int]
    last_sync_changes: dict[str, int]
    last_pruned_count: Optional[int]
    last_errors: dict[str, str]


class HealthTracker:
    """In-memory health tracking for the sync loop."""

    def __init__(self, stale_after_seconds: int = 900) -> None:
        """Initialize health tracker.

        Args:
            stale_after_seconds: Report "degraded" when the last successful
                sync is older than this
        """
        self.stale_after_seconds = stale_after_seconds
        self._start_time: float = time.time()
        self._last_sync_attempt: Optional[float] = None
        self._last_sync_success: Optional[float] = None
        self._last_sync_changes: dict[str, int] = {}
        self._last_pruned_count: Optional[int] = None
        self._heartbeat: Optional[float] = None
        self._failures: deque[SyncFailure] = deque(maxlen=MAX_RECORDED_FAILURES)
        self._last_errors: dict[str, str] = {}

    def record_sync_attempt(self) -> None:
        """Record that a sync cycle started."""
        self._last_sync_attempt = time.time()

    def record_sync_success(self, inserted: int, deleted: int, updated: int) -> None:
        """Record a successful reconciliation with the applied change counts."""
        self._last_sync_success = time.time()
        self._last_sync_changes = {"inserted": inserted, "deleted": deleted, "updated": updated}
        self._last_errors.pop("fetch", None)
        self._last_errors.pop("reconcile", None)

    def record_prune(self, pruned: int) -> None:
        """Record a successful prune pass."""
        self._last_pruned_count = pruned
        self._last_errors.pop("prune", None)

    def record_sync_failure(self, step: str, error: BaseException) -> None:
        """Record an error that the sync loop logged and moved past."""
        failure = SyncFailure(
            step=step,
            error_type=type(error).__name__,
            message=str(error),
            timestamp=time.time(),
        )
        self._failures.append(failure)
        self._last_errors[step] = f"{failure.error_type}: {failure.message}"

    def record_heartbeat(self) -> None:
        """Record that the sync loop is alive."""
        self._heartbeat = time.time()

    @property
    def failures(self) -> list[SyncFailure]:
        """Recorded failures, oldest first."""
        return list(self._failures)

    def get_uptime_seconds(self) -> int:
        return int(time.time() - self._start_time)

    def get_last_sync_age_seconds(self) -> Optional[int]:
        """Seconds since the last successful sync, or None if there was none."""
        if self._last_sync_success is None:
            return None
        return int(time.time() - self._last_sync_success)

    def get_last_attempt_age_seconds(self) -> Optional[int]:
        if self._last_sync_attempt is None:
            return None
        return int(time.time() - self._last_sync_attempt)

    def get_heartbeat_age_seconds(self) -> Optional[int]:
        if self._heartbeat is None:
            return None
        return int(time.time() - self._heartbeat)

    def determine_overall_status(self) -> str:
        """Return "ok" or "degraded"."""
        age = self.get_last_sync_age_seconds()
        if age is None or age > self.stale_after_seconds:
            return "degraded"
        return "ok"

    def get_health_status(self, current_time_iso: str) -> HealthStatus:
        """Get comprehensive health status.

        Args:
            current_time_iso: Current time in ISO format
        """
        return HealthStatus(
            status=self.determine_overall_status(),
            server_time_iso=current_time_iso,
            uptime_seconds=self.get_uptime_seconds(),
            pid=os.getpid(),
            last_sync_success_age_seconds=self.get_last_sync_age_seconds(),
            last_sync_changes=dict(self._last_sync_changes),
            last_pruned_count=self._last_pruned_count,
            last_errors=dict(self._last_errors),
        )

    def as_dict(self, current_time_iso: str) -> dict[str, Any]:
        """Health status as a JSON-serializable mapping."""
        status = self.get_health_status(current_time_iso)
        return {
            "status": status.status,
            "server_time_iso": status.server_time_iso,
            "uptime_s": status.uptime_seconds,
            "pid": status.pid,
            "sync": {
                "last_attempt_age_s": self.get_last_attempt_age_seconds(),
                "last_success_age_s": status.last_sync_success_age_seconds,
                "last_changes": status.last_sync_changes,
                "last_pruned": status.last_pruned_count,
                "heartbeat_age_s": self.get_heartbeat_age_seconds(),
            },
            "last_errors": status.last_errors,
        }
