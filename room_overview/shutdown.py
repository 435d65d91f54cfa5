"""Cooperative shutdown shared by the sync loop, the HTTP listener and signal handling.

The coordinator is a monotone broadcast flag: ``RUNNING`` -> ``SHUTTING_DOWN``,
never back. Any task may trigger it, any number of times; every long-running
task checks it at its own wait points, racing "next piece of work" against
"shutdown happened".
"""

from __future__ import annotations

import asyncio
import logging
import signal
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = tuple(
    sig
    for sig in (
        getattr(signal, "SIGINT", None),
        getattr(signal, "SIGTERM", None),
        getattr(signal, "SIGHUP", None),
    )
    if sig is not None
)


class ShutdownState(str, Enum):
    """State of the process-wide shutdown flag."""

    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


class ShutdownCoordinator:
    """Single-flag, multi-reader shutdown broadcast."""

    def __init__(self) -> None:
        self._state = ShutdownState.RUNNING
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            # created outside a loop; the first waiter captures it
            pass

    @property
    def state(self) -> ShutdownState:
        return self._state

    @property
    def is_shutting_down(self) -> bool:
        return self._state is ShutdownState.SHUTTING_DOWN

    @property
    def reason(self) -> Optional[str]:
        """Reason given by the trigger that performed the transition."""
        return self._reason

    def _remember_loop(self) -> None:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

    def trigger(self, reason: str = "requested") -> bool:
        """Request shutdown.

        Idempotent: only the first call changes state, later calls are no-ops.

        Returns:
            True if this call performed the transition
        """
        if self._state is ShutdownState.SHUTTING_DOWN:
            logger.debug("Shutdown already in progress, ignoring trigger: %s", reason)
            return False

        self._state = ShutdownState.SHUTTING_DOWN
        self._reason = reason
        self._event.set()
        logger.info("Shutdown triggered: %s", reason)
        return True

    def trigger_threadsafe(self, reason: str = "requested") -> None:
        """Request shutdown from a thread that does not run the event loop.

        The loop is known once the coordinator was created inside it or any
        task has waited on it; before that the trigger runs directly.
        """
        if self._loop is None or self._loop.is_closed():
            self.trigger(reason)
            return
        self._loop.call_soon_threadsafe(self.trigger, reason)

    async def wait(self) -> None:
        """Block until shutdown has been triggered."""
        self._remember_loop()
        await self._event.wait()

    async def wait_for(self, timeout: float) -> bool:
        """Wait for shutdown or ``timeout`` seconds, whichever comes first.

        Returns:
            True if shutdown was triggered, False if the timeout elapsed
        """
        self._remember_loop()
        if self.is_shutting_down:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(timeout, 0))
        except asyncio.TimeoutError:
            return False
        return True

    async def run_signal_listener(
        self, signals: tuple[signal.Signals, ...] = SHUTDOWN_SIGNALS
    ) -> None:
        """Translate OS signals into a shutdown; return once shutdown happens.

        The listener also exits when shutdown is triggered by any other task.
        Failing to install a handler triggers shutdown and re-raises, except on
        platforms where the loop has no signal support at all.
        """
        self._remember_loop()
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []

        def _on_signal(sig: signal.Signals) -> None:
            logger.info("Got %s. Shutting down.", sig.name)
            self.trigger(f"received {sig.name}")

        try:
            for sig in signals:
                try:
                    loop.add_signal_handler(sig, _on_signal, sig)
                except NotImplementedError:
                    logger.warning("Signal handlers are not supported on this platform")
                    break
                except (OSError, RuntimeError, ValueError):
                    logger.exception("Failed to install %s listener. Aborting.", sig.name)
                    self.trigger(f"cannot install {sig.name} handler")
                    raise
                installed.append(sig)

            await self.wait()
            logger.debug("Signal listener stopping")
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
