"""room_overview.config_loader

Config loader for room_overview.

- Reads a YAML file (PyYAML ``safe_load``).
- Exposes frozen dataclasses ``Config``, ``RemoteConfig`` and ``RoomConfig``
  and a ``load_config()`` helper that accepts an optional path override.
- The resulting snapshot is built once at startup and shared read-only by the
  sync loop and the HTTP listener.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import ConfigError
from .store import BOOKING_DATABASE_NAME

logger = logging.getLogger(__name__)

CONFIG_ENV = "ROOM_OVERVIEW_CONFIG"
DEFAULT_CONFIG_PATH = Path("/etc/room-overview/config.yaml")

MIN_POLL_INTERVAL = 10
MAX_POLL_INTERVAL = 86400


def _coerce_int(data: dict[str, Any], key: str, default: int) -> int:
    raw = data.get(key, default)
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
        return default


def _require(data: dict[str, Any], key: str, section: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise ConfigError(f"Missing required config key `{section}.{key}`")
    return value


@dataclass(frozen=True)
class RemoteConfig:
    """Connection settings of the remote booking API.

    Fields:
        host: host name of the remote (``https://`` is implied)
        login_token: token sent as ``Authorization: Login <token>``
        poll_interval_seconds: seconds between sync cycles (10..86400)
        request_timeout: HTTP timeout for one fetch, in seconds
    """

    host: str
    login_token: str = field(repr=False)
    poll_interval_seconds: int = 300
    request_timeout: float = 30.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteConfig:
        if not isinstance(data, dict):
            raise ConfigError("Config `remote` must be a mapping")

        host = str(_require(data, "host", "remote"))
        login_token = str(_require(data, "login_token", "remote"))

        interval = _coerce_int(data, "poll_interval_seconds", 300)
        if interval < MIN_POLL_INTERVAL:
            logger.warning(
                "poll_interval_seconds %d below minimum; coercing to %d", interval, MIN_POLL_INTERVAL
            )
            interval = MIN_POLL_INTERVAL
        elif interval > MAX_POLL_INTERVAL:
            logger.warning(
                "poll_interval_seconds %d above maximum; coercing to %d", interval, MAX_POLL_INTERVAL
            )
            interval = MAX_POLL_INTERVAL

        raw_timeout = data.get("request_timeout", 30.0)
        try:
            request_timeout = float(raw_timeout)
        except (TypeError, ValueError):
            logger.warning("Config request_timeout=%r is not a number; using 30", raw_timeout)
            request_timeout = 30.0

        return cls(
            host=host,
            login_token=login_token,
            poll_interval_seconds=interval,
            request_timeout=request_timeout,
        )


@dataclass(frozen=True)
class RoomConfig:
    """A physical room and the remote resource it is booked as."""

    remote_id: int
    name: str
    location_hint: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoomConfig:
        if not isinstance(data, dict):
            raise ConfigError(f"Room entry must be a mapping, got {data!r}")
        raw_id = _require(data, "remote_id", "rooms[]")
        try:
            remote_id = int(raw_id)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Room remote_id {raw_id!r} is not an integer") from e
        return cls(
            remote_id=remote_id,
            name=str(_require(data, "name", "rooms[]")),
            location_hint=str(data.get("location_hint") or ""),
        )

    def ics_location(self) -> str:
        """Location text used in the calendar export."""
        return f"{self.name} - {self.location_hint}"


@dataclass(frozen=True)
class Config:
    """Typed configuration for room_overview.

    Fields:
        remote: remote booking API settings
        rooms: rooms mirrored from the remote
        log_level: logging level name
        database_path: SQLite file holding the mirrored bookings
        server_bind: host to bind the HTTP server to
        server_port: port for the HTTP server
    """

    remote: RemoteConfig
    rooms: tuple[RoomConfig, ...] = ()
    log_level: str = "INFO"
    database_path: str = BOOKING_DATABASE_NAME
    server_bind: str = "0.0.0.0"  # nosec: B104 - intentional default; override via config
    server_port: int = 8080

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Raises:
            ConfigError: a required key is missing or has the wrong shape
        """
        if data is None:
            data = {}

        remote_raw = data.get("remote")
        if remote_raw is None:
            raise ConfigError("Missing required config section `remote`")
        remote = RemoteConfig.from_dict(remote_raw)

        rooms_raw = data.get("rooms") or []
        if not isinstance(rooms_raw, (list, tuple)):
            raise ConfigError("Config `rooms` must be a list")
        rooms = tuple(RoomConfig.from_dict(room) for room in rooms_raw)
        if not rooms:
            logger.warning("No rooms configured; nothing will be synchronized")

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        server_bind = data.get("server_bind", "0.0.0.0")  # nosec: B104
        server_bind = str(server_bind) if server_bind is not None else "0.0.0.0"  # nosec: B104

        return cls(
            remote=remote,
            rooms=rooms,
            log_level=log_level,
            database_path=str(data.get("database_path") or BOOKING_DATABASE_NAME),
            server_bind=server_bind,
            server_port=_coerce_int(data, "server_port", 8080),
        )

    def resource_ids(self) -> set[int]:
        """Remote ids of all configured rooms."""
        return {room.remote_id for room in self.rooms}


def resolve_config_path(path: Optional[str] = None) -> Path:
    """Pick the config file: explicit path, then $ROOM_OVERVIEW_CONFIG, then the default."""
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Args:
        path: Optional path to the config file (see ``resolve_config_path``)

    Raises:
        ConfigError: the file is missing, is not valid YAML, or is invalid
    """
    p = resolve_config_path(path)
    logger.debug("Attempting to load config from %s", p)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {p}: {e}") from e

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {p} is not valid YAML: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ConfigError("Config file must contain a mapping at top level")

    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
