"""Periodic synchronization of the remote booking API into the local store.

Every tick runs one cycle: fetch the window, reconcile it against the store,
prune expired bookings. Each step catches and records its own errors so a bad
cycle never stops the loop. Shutdown is only checked between cycles, so an
in-flight cycle always completes.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from enum import Enum
from typing import Callable, Optional

from .exceptions import ProtocolError, SourceError, StorageError
from .health_tracker import HealthTracker
from .reconciler import BookingDiff, reconcile
from .shutdown import ShutdownCoordinator
from .source import BookingSource
from .store import BookingStore
from .time_normalizer import day_end, day_start, now_utc, start_of_day, to_utc

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    """Lifecycle of the sync loop."""

    RUNNING = "running"
    STOPPING = "stopping"


class SyncScheduler:
    """Fixed-interval sync loop: fetch -> reconcile -> prune -> wait."""

    def __init__(
        self,
        store: BookingStore,
        source: BookingSource,
        resource_ids: set[int],
        interval_seconds: float,
        coordinator: ShutdownCoordinator,
        health_tracker: Optional[HealthTracker] = None,
        clock: Callable[[], datetime.datetime] = now_utc,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: local booking store
            source: remote booking source
            resource_ids: remote ids of the rooms to mirror
            interval_seconds: time between the starts of two cycles
            coordinator: shutdown broadcast checked between cycles
            health_tracker: receives every error the loop logs and moves past
            clock: returns the current UTC instant
        """
        self.store = store
        self.source = source
        self.resource_ids = set(resource_ids)
        self.interval_seconds = interval_seconds
        self.coordinator = coordinator
        self.health_tracker = health_tracker or HealthTracker()
        self._clock = clock
        self._state = SchedulerState.RUNNING
        self.cycles_completed = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    def sync_window(
        self, now: Optional[datetime.datetime] = None
    ) -> tuple[datetime.date, datetime.date]:
        """Dates requested from the remote: today and tomorrow (UTC) of ``now``."""
        today = to_utc(now or self._clock()).date()
        return today, today + datetime.timedelta(days=1)

    async def run_cycle(self) -> Optional[BookingDiff]:
        """Run one fetch/reconcile/prune cycle.

        Never raises for source or storage failures; they are logged and
        recorded on the health tracker.

        Returns:
            The applied diff, or None if fetch or reconciliation failed
        """
        self.health_tracker.record_sync_attempt()
        now = self._clock()
        start, end = self.sync_window(now)
        changes: Optional[BookingDiff] = None

        logger.debug("Fetching bookings for %s..%s", start, end)
        try:
            remote = await self.source.fetch(self.resource_ids, start, end)
        except SourceError as e:
            logger.warning("Cannot fetch bookings for %s..%s: %s", start, end, e)
            self.health_tracker.record_sync_failure("fetch", e)
        else:
            try:
                changes = await reconcile(self.store, remote, day_start(start), day_end(end))
            except (ProtocolError, StorageError) as e:
                logger.warning("Cannot reconcile bookings for %s..%s: %s", start, end, e)
                self.health_tracker.record_sync_failure("reconcile", e)
            else:
                if changes.is_empty:
                    logger.debug("Bookings for %s..%s are up to date", start, end)
                else:
                    logger.info("Synchronized bookings for %s..%s: %s", start, end, changes.summary())
                self.health_tracker.record_sync_success(
                    inserted=len(changes.to_insert),
                    deleted=len(changes.to_delete),
                    updated=len(changes.to_update),
                )

        midnight = start_of_day(now)
        try:
            pruned = await self.store.prune(midnight)
        except StorageError as e:
            logger.warning("Cannot prune bookings ending before %s: %s", midnight, e)
            self.health_tracker.record_sync_failure("prune", e)
        else:
            if pruned:
                logger.info("Pruned %d bookings ending before %s", pruned, midnight)
            self.health_tracker.record_prune(pruned)

        self.cycles_completed += 1
        self.health_tracker.record_heartbeat()
        return changes

    async def run(self) -> None:
        """Run cycles until the coordinator signals shutdown.

        The first cycle starts immediately. Ticks are fixed-rate: a slow cycle
        shortens the following wait instead of delaying every later tick.
        """
        loop = asyncio.get_running_loop()
        logger.info("Sync loop starting with interval %s seconds", self.interval_seconds)

        while not self.coordinator.is_shutting_down:
            started = loop.time()
            await self.run_cycle()

            remaining = self.interval_seconds - (loop.time() - started)
            if remaining <= 0:
                logger.warning(
                    "Sync cycle took longer than the %s second interval", self.interval_seconds
                )
            logger.debug("Waiting %.1f seconds until the next sync", max(remaining, 0))
            if await self.coordinator.wait_for(remaining):
                break

        self._state = SchedulerState.STOPPING
        logger.info("Sync loop stopped after %d cycles", self.cycles_completed)
