"""
Configuration management for player communication.

Settings live in a Java-style properties file (``key=value`` lines). The file
is read once at process start into an immutable CommunicationConfig that is
passed explicitly to whatever needs it. Values are parsed when accessed, so
a launch mode only fails on the keys it actually uses.
"""

import os
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Union

CONFIG_ENV_VAR = "PLAYERCOMM_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).with_name("application.properties")

QUEUE_CAPACITY = "queue.capacity"
NETWORK_PORT = "network.port"
NETWORK_HOST = "network.host"
MAX_MESSAGE_COUNT = "message.count.max"


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or a value is invalid."""
    pass


def parse_properties(text: str) -> Dict[str, str]:
    """
    Parse properties text into a dictionary.

    Supports ``key=value`` and ``key: value`` lines, ``#`` and ``!`` comments
    and blank lines. Keys and values are stripped of surrounding whitespace.
    """
    properties = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line[0] in "#!":
            continue

        separators = [i for i in (line.find("="), line.find(":")) if i >= 0]
        if separators:
            split_at = min(separators)
            key, value = line[:split_at], line[split_at + 1:]
        else:
            key, value = line, ""
        properties[key.strip()] = value.strip()
    return properties


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Pick the explicit path, then $PLAYERCOMM_CONFIG, then the packaged default."""
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


class CommunicationConfig:
    """
    Read-only view of the communication settings.

    Raises ConfigError from an accessor when its key is absent or malformed.
    """

    def __init__(self, properties: Mapping[str, str], source: str = "<mapping>"):
        self._properties = MappingProxyType(dict(properties))
        self.source = source

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "CommunicationConfig":
        """
        Load configuration from a properties file.

        Args:
            path: Properties file. Defaults to $PLAYERCOMM_CONFIG, then the
                application.properties shipped with the package.

        Raises:
            ConfigError: If the file cannot be read
        """
        config_path = resolve_config_path(path)
        try:
            text = config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file {config_path}: {e}")
        return cls(parse_properties(text), source=str(config_path))

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> "CommunicationConfig":
        """Build a configuration from in-memory values (stringified)."""
        return cls({key: str(value) for key, value in values.items()})

    def get(self, key: str) -> str:
        """Return the raw value for ``key``."""
        try:
            return self._properties[key]
        except KeyError:
            raise ConfigError(f"Missing configuration key '{key}' in {self.source}")

    def get_int(self, key: str) -> int:
        """Return ``key`` parsed as an integer."""
        value = self.get(key)
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"Configuration key '{key}' is not numeric: {value!r}")

    def _get_positive_int(self, key: str) -> int:
        value = self.get_int(key)
        if value <= 0:
            raise ConfigError(f"Configuration key '{key}' must be positive, got {value}")
        return value

    @property
    def queue_capacity(self) -> int:
        return self._get_positive_int(QUEUE_CAPACITY)

    @property
    def network_port(self) -> int:
        port = self.get_int(NETWORK_PORT)
        if not 1 <= port <= 65535:
            raise ConfigError(f"Configuration key '{NETWORK_PORT}' is not a valid port: {port}")
        return port

    @property
    def network_host(self) -> str:
        host = self.get(NETWORK_HOST)
        if not host:
            raise ConfigError(f"Configuration key '{NETWORK_HOST}' is empty")
        return host

    @property
    def max_message_count(self) -> int:
        return self._get_positive_int(MAX_MESSAGE_COUNT)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._properties)

    def __repr__(self):
        return f"CommunicationConfig(source={self.source!r}, keys={sorted(self._properties)})"
