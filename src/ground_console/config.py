"""
Console Configuration

Settings shared by the core and the operator window. Loaded from an
optional JSON file, validated, then overridden by command-line flags.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging

from .communication.protocol import DEFAULT_MAX_BUFFER, INTEGRITY_POLICIES
from .communication.transport_base import DEFAULT_BAUDRATE, DEFAULT_READ_TIMEOUT
from .controllers.launch_sequencer import LaunchMode
from .controllers.port_registry import READ_CHUNK_SIZE
from .models.console_log import DEFAULT_CONSOLE_CAPACITY
from .models.telemetry_store import DEFAULT_TRACK_LENGTH

logger = logging.getLogger(__name__)

CONFIG_VERSION = 1

# Optional features, resolved once at startup
DEFAULT_CAPABILITIES: Dict[str, bool] = {
    "map_drawing": False,
    "simulator": True,
}


class ConfigError(Exception):
    """Configuration file could not be read or is invalid."""
    pass


@dataclass
class ConsoleConfig:
    """Runtime settings."""
    baudrate: int = DEFAULT_BAUDRATE
    read_size: int = READ_CHUNK_SIZE
    read_timeout: float = DEFAULT_READ_TIMEOUT
    console_capacity: int = DEFAULT_CONSOLE_CAPACITY
    parser_max_buffer: int = DEFAULT_MAX_BUFFER
    integrity: str = "crc16"
    launch_mode: str = LaunchMode.MOCK.value
    track_length: int = DEFAULT_TRACK_LENGTH
    simulator_rate_hz: float = 10.0
    echo_records: bool = False
    capabilities: Dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_CAPABILITIES))

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigError: On the first invalid value
        """
        positive = {
            "baudrate": self.baudrate,
            "read_size": self.read_size,
            "read_timeout": self.read_timeout,
            "console_capacity": self.console_capacity,
            "parser_max_buffer": self.parser_max_buffer,
            "track_length": self.track_length,
            "simulator_rate_hz": self.simulator_rate_hz,
        }
        for name, value in positive.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"{name} must be a positive number, got {value!r}")

        if self.integrity not in INTEGRITY_POLICIES:
            choices = ", ".join(sorted(INTEGRITY_POLICIES))
            raise ConfigError(f"integrity must be one of {choices}, got {self.integrity!r}")

        modes = [mode.value for mode in LaunchMode]
        if self.launch_mode not in modes:
            raise ConfigError(f"launch_mode must be one of {', '.join(modes)}, got {self.launch_mode!r}")

        if not isinstance(self.echo_records, bool):
            raise ConfigError("echo_records must be true or false")

        for name, enabled in self.capabilities.items():
            if not isinstance(enabled, bool):
                raise ConfigError(f"capability {name} must be true or false")

    @property
    def mode(self) -> LaunchMode:
        return LaunchMode(self.launch_mode)

    def has_capability(self, name: str) -> bool:
        return self.capabilities.get(name, False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsoleConfig":
        """
        Build a config from a parsed JSON object.

        Unknown keys are ignored with a warning; missing keys keep defaults.
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key == "version":
                continue
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            values[key] = value

        capabilities = dict(DEFAULT_CAPABILITIES)
        if "capabilities" in values:
            if not isinstance(values["capabilities"], dict):
                raise ConfigError("capabilities must be an object")
            capabilities.update(values["capabilities"])
        values["capabilities"] = capabilities

        config = cls(**values)
        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["version"] = CONFIG_VERSION
        return data


def load_config(path: Optional[Union[str, Path]] = None) -> ConsoleConfig:
    """
    Load configuration from a JSON file.

    Args:
        path: Config file; None returns the defaults

    Returns:
        Validated ConsoleConfig

    Raises:
        ConfigError: If the file is missing, is not valid JSON or fails validation
    """
    if path is None:
        return ConsoleConfig()

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: line {e.lineno}, column {e.colno}: {e.msg}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")

    try:
        config = ConsoleConfig.from_dict(data)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info(f"Loaded configuration from: {path}")
    return config


def save_config(config: ConsoleConfig, path: Union[str, Path]) -> Path:
    """Validate and write the configuration as JSON."""
    config.validate()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)
    logger.info(f"Saved configuration to: {path}")
    return path
