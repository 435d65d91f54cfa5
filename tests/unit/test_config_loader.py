"""Unit tests for room_overview.config_loader."""

import dataclasses

import pytest

from room_overview.config_loader import (
    CONFIG_ENV,
    DEFAULT_CONFIG_PATH,
    Config,
    RoomConfig,
    load_config,
    resolve_config_path,
)
from room_overview.exceptions import ConfigError

pytestmark = [pytest.mark.unit, pytest.mark.fast]

VALID_YAML = """
remote:
  host: ct.example.org
  login_token: s3cret
  poll_interval_seconds: 120
rooms:
  - remote_id: 12
    name: Great Hall
    location_hint: Ground floor
  - remote_id: 17
    name: Chapel
server_port: 9090
log_level: debug
"""


def _minimal(**overrides):
    data = {"remote": {"host": "ct.example.org", "login_token": "t"}}
    data.update(overrides)
    return data


class TestFromDict:
    def test_defaults(self):
        cfg = Config.from_dict(_minimal())

        assert cfg.remote.poll_interval_seconds == 300
        assert cfg.remote.request_timeout == 30.0
        assert cfg.rooms == ()
        assert cfg.database_path == ".bookings.db"
        assert cfg.server_port == 8080
        assert cfg.log_level == "INFO"

    @pytest.mark.parametrize(("raw", "expected"), [(1, 10), (10, 10), (600, 600), (10**6, 86400)])
    def test_poll_interval_is_clamped(self, raw, expected):
        cfg = Config.from_dict(
            {"remote": {"host": "h", "login_token": "t", "poll_interval_seconds": raw}}
        )

        assert cfg.remote.poll_interval_seconds == expected

    def test_invalid_int_uses_default(self):
        cfg = Config.from_dict(_minimal(server_port="eighty"))

        assert cfg.server_port == 8080

    @pytest.mark.parametrize("missing", ["host", "login_token"])
    def test_missing_remote_key_raises(self, missing):
        remote = {"host": "h", "login_token": "t"}
        del remote[missing]

        with pytest.raises(ConfigError, match=missing):
            Config.from_dict({"remote": remote})

    def test_missing_remote_section_raises(self):
        with pytest.raises(ConfigError):
            Config.from_dict({})

    def test_room_without_integer_id_raises(self):
        with pytest.raises(ConfigError):
            Config.from_dict(_minimal(rooms=[{"remote_id": "hall", "name": "Hall"}]))

    def test_login_token_not_in_repr(self):
        cfg = Config.from_dict(_minimal())

        assert "login_token" not in repr(cfg.remote)

    def test_config_is_frozen(self):
        cfg = Config.from_dict(_minimal())

        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.server_port = 1  # type: ignore[misc]


class TestRooms:
    def test_resource_ids_are_unique(self):
        cfg = Config.from_dict(
            _minimal(
                rooms=[
                    {"remote_id": 1, "name": "A"},
                    {"remote_id": 2, "name": "B"},
                    {"remote_id": 1, "name": "A again"},
                ]
            )
        )

        assert cfg.resource_ids() == {1, 2}

    def test_ics_location(self):
        room = RoomConfig(remote_id=1, name="Great Hall", location_hint="Ground floor")

        assert room.ics_location() == "Great Hall - Ground floor"


class TestLoadConfig:
    def test_load_config_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(VALID_YAML)

        cfg = load_config(str(path))

        assert cfg.remote.host == "ct.example.org"
        assert cfg.remote.poll_interval_seconds == 120
        assert [r.name for r in cfg.rooms] == ["Great Hall", "Chapel"]
        assert cfg.rooms[1].location_hint == ""
        assert cfg.server_port == 9090
        assert cfg.log_level == "DEBUG"

    def test_load_config_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_load_config_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("remote: [unclosed")

        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_load_config_non_mapping_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_resolve_config_path_precedence(self, monkeypatch, tmp_path):
        assert resolve_config_path() == DEFAULT_CONFIG_PATH

        monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "env.yaml"))
        assert resolve_config_path() == tmp_path / "env.yaml"
        assert resolve_config_path("explicit.yaml").name == "explicit.yaml"
