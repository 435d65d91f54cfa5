"""HTTP listener and process orchestration for room_overview.

The process runs three long-lived tasks on one event loop: the sync loop, the
aiohttp listener and the signal listener. All of them end when the shared
ShutdownCoordinator fires. Startup failures (store initialization, binding
the listener) propagate out of ``run()``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Optional

from aiohttp import web

from .calendar_export import render_calendar
from .config_loader import Config
from .exceptions import StorageError
from .health_tracker import HealthTracker
from .http_client import close_all_clients
from .models import Booking
from .scheduler import SyncScheduler
from .shutdown import ShutdownCoordinator
from .source import BookingsApiClient, BookingSource
from .store import BookingStore
from .time_normalizer import day_end, now_utc

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", Config)
STORE_KEY = web.AppKey("store", BookingStore)
HEALTH_KEY = web.AppKey("health_tracker", HealthTracker)
CLOCK_KEY = web.AppKey("clock", Callable[[], datetime])

# Seconds the runner waits for in-flight requests on shutdown
SHUTDOWN_TIMEOUT = 5.0


def _serialize_iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat().replace("+00:00", "Z")


def _booking_to_api_model(booking: Booking) -> dict[str, Any]:
    return {
        "booking_id": booking.booking_id,
        "title": booking.title,
        "start_iso": _serialize_iso(booking.start_time),
        "end_iso": _serialize_iso(booking.end_time),
    }


@web.middleware
async def error_middleware(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    """Turn unknown paths into JSON 404s and store failures into opaque 500s.

    The 500 body carries only an error id; the same id is logged together with
    the traceback.
    """
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return web.json_response({"error": "not found", "path": request.path}, status=404)
    except StorageError:
        error_id = str(uuid.uuid4())
        logger.exception("Error %s while handling %s %s", error_id, request.method, request.path)
        return web.json_response({"error_id": error_id}, status=500)


def build_overview(
    bookings: list[Booking], config: Config, now: datetime
) -> list[dict[str, Any]]:
    """Per-room view: the booking in progress and what follows later today.

    Args:
        bookings: bookings overlapping ``[now, end of today]``
        config: configured rooms
        now: current UTC instant
    """
    rooms = []
    for room in config.rooms:
        own = sorted(
            (b for b in bookings if b.resource_id == room.remote_id),
            key=lambda b: (b.start_time, b.booking_id),
        )
        current = next((b for b in own if b.is_active_at(now)), None)
        upcoming = [b for b in own if b.start_time > now]
        rooms.append(
            {
                "name": room.name,
                "location": room.ics_location(),
                "remote_id": room.remote_id,
                "current": _booking_to_api_model(current) if current else None,
                "upcoming": [_booking_to_api_model(b) for b in upcoming],
            }
        )
    return rooms


async def overview(request: web.Request) -> web.Response:
    """Current and upcoming bookings of each configured room."""
    config = request.app[CONFIG_KEY]
    now = request.app[CLOCK_KEY]()
    bookings = await request.app[STORE_KEY].query(now, day_end(now.date()))
    return web.json_response(
        {"server_time_iso": _serialize_iso(now), "rooms": build_overview(bookings, config, now)}
    )


async def calendar_ics(request: web.Request) -> web.Response:
    """All stored bookings of configured rooms as an ICS calendar."""
    config = request.app[CONFIG_KEY]
    bookings = await request.app[STORE_KEY].get_all()
    body = render_calendar(bookings, config.rooms, stamp=request.app[CLOCK_KEY]())
    return web.Response(body=body, content_type="text/calendar", charset="utf-8")


async def health_check(request: web.Request) -> web.Response:
    """Health check endpoint for monitoring sync status."""
    now_iso = _serialize_iso(request.app[CLOCK_KEY]()) or ""
    health_data = request.app[HEALTH_KEY].as_dict(now_iso)
    http_status = 200 if health_data["status"] == "ok" else 503
    return web.json_response(health_data, status=http_status)


def make_app(
    config: Config,
    store: BookingStore,
    health_tracker: HealthTracker,
    clock: Callable[[], datetime] = now_utc,
) -> web.Application:
    """Create the aiohttp application serving the read path."""
    app = web.Application(middlewares=[error_middleware])
    app[CONFIG_KEY] = config
    app[STORE_KEY] = store
    app[HEALTH_KEY] = health_tracker
    app[CLOCK_KEY] = clock

    app.router.add_get("/", overview)
    app.router.add_get("/calendar.ics", calendar_ics)
    app.router.add_get("/health", health_check)
    return app


async def start_listener(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Set up the runner and bind the TCP site.

    Raises:
        OSError: the address cannot be bound
    """
    runner = web.AppRunner(app, shutdown_timeout=SHUTDOWN_TIMEOUT)
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", host, port)
        await runner.cleanup()
        raise
    logger.info("Server started successfully on %s:%d", host, port)
    return runner


async def serve_until_shutdown(runner: web.AppRunner, coordinator: ShutdownCoordinator) -> None:
    """Keep the listener up until shutdown, then stop it gracefully."""
    try:
        await coordinator.wait()
        logger.debug("Shutting down web server now.")
    finally:
        await runner.cleanup()
        logger.info("Web server stopped")


async def _supervise(
    name: str, coro: Awaitable[None], coordinator: ShutdownCoordinator
) -> None:
    """Run a long-lived task; an unexpected error shuts the whole process down."""
    try:
        await coro
    except Exception:
        logger.exception("Task %s failed", name)
        coordinator.trigger(f"{name} failed")
        raise


def build_source(config: Config) -> BookingsApiClient:
    return BookingsApiClient(
        config.remote.host,
        config.remote.login_token,
        request_timeout=config.remote.request_timeout,
    )


async def run(
    config: Config,
    source: Optional[BookingSource] = None,
    coordinator: Optional[ShutdownCoordinator] = None,
    health_tracker: Optional[HealthTracker] = None,
) -> None:
    """Run the sync loop, the HTTP listener and the signal listener until shutdown.

    Args:
        config: configuration snapshot shared read-only by all tasks
        source: booking source, defaults to the remote booking API client
        coordinator: shutdown broadcast, created if not given
        health_tracker: observation hook for the sync loop, created if not given

    Raises:
        StorageError: the store cannot be initialized
        OSError: the listener cannot bind
    """
    coordinator = coordinator or ShutdownCoordinator()
    health_tracker = health_tracker or HealthTracker(
        stale_after_seconds=3 * config.remote.poll_interval_seconds
    )

    store = BookingStore(config.database_path)
    await store.initialize()

    try:
        app = make_app(config, store, health_tracker)
        runner = await start_listener(app, config.server_bind, config.server_port)

        scheduler = SyncScheduler(
            store=store,
            source=source or build_source(config),
            resource_ids=config.resource_ids(),
            interval_seconds=config.remote.poll_interval_seconds,
            coordinator=coordinator,
            health_tracker=health_tracker,
        )

        tasks = [
            asyncio.create_task(_supervise("sync loop", scheduler.run(), coordinator)),
            asyncio.create_task(
                _supervise("web server", serve_until_shutdown(runner, coordinator), coordinator)
            ),
            asyncio.create_task(
                _supervise("signal listener", coordinator.run_signal_listener(), coordinator)
            ),
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise errors[0]
        logger.info("Shut down: %s", coordinator.reason)
    finally:
        await close_all_clients()
        logger.debug("Shared HTTP clients cleaned up")


async def run_once(config: Config, source: Optional[BookingSource] = None) -> HealthTracker:
    """Run a single sync cycle and return the tracker holding its outcome."""
    health_tracker = HealthTracker()
    store = BookingStore(config.database_path)
    await store.initialize()
    try:
        scheduler = SyncScheduler(
            store=store,
            source=source or build_source(config),
            resource_ids=config.resource_ids(),
            interval_seconds=config.remote.poll_interval_seconds,
            coordinator=ShutdownCoordinator(),
            health_tracker=health_tracker,
        )
        await scheduler.run_cycle()
    finally:
        await close_all_clients()
    return health_tracker


def start_server(config: Config) -> None:
    """Start the asyncio event loop and run until a shutdown signal.

    This function blocks the calling thread. Startup failures propagate.
    """
    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
