"""
Configuration Tests
"""

import json

import pytest

from ground_console.config import (
    ConfigError,
    ConsoleConfig,
    load_config,
    save_config,
)
from ground_console.controllers.launch_sequencer import LaunchMode


class TestConsoleConfig:
    """Test defaults and validation."""

    def test_defaults_are_valid(self):
        config = ConsoleConfig()
        config.validate()
        assert config.baudrate == 115200
        assert config.integrity == "crc16"
        assert config.mode == LaunchMode.MOCK

    def test_capabilities_resolved(self):
        """Unknown capabilities read as disabled."""
        config = ConsoleConfig()
        assert not config.has_capability("map_drawing")
        assert not config.has_capability("teleport")

    @pytest.mark.parametrize("field,value", [
        ("baudrate", 0),
        ("console_capacity", -1),
        ("read_timeout", "fast"),
        ("integrity", "md5"),
        ("launch_mode", "auto"),
        ("echo_records", "yes"),
    ])
    def test_invalid_values(self, field, value):
        config = ConsoleConfig()
        setattr(config, field, value)
        with pytest.raises(ConfigError):
            config.validate()

    def test_from_dict_merges_capabilities(self):
        config = ConsoleConfig.from_dict({"capabilities": {"map_drawing": True}})
        assert config.has_capability("map_drawing")
        assert config.has_capability("simulator")

    def test_from_dict_ignores_unknown_keys(self):
        config = ConsoleConfig.from_dict({"version": 1, "colour": "red", "baudrate": 9600})
        assert config.baudrate == 9600


class TestConfigFiles:
    """Test JSON load/save."""

    def test_no_path_gives_defaults(self):
        assert load_config(None) == ConsoleConfig()

    def test_round_trip(self, tmp_path):
        config = ConsoleConfig(baudrate=57600, integrity="xor8", launch_mode="live",
                               echo_records=True)
        path = save_config(config, tmp_path / "console.json")

        assert load_config(path) == config
        assert json.loads(path.read_text())["version"] == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{baudrate: ")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(path)

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_value_in_file(self, tmp_path):
        path = tmp_path / "console.json"
        path.write_text(json.dumps({"console_capacity": 0}))
        with pytest.raises(ConfigError, match="console_capacity"):
            load_config(path)
