"""Connection settings for the controller client.

Settings are plain data. They can be built in code or loaded from a YAML
mapping whose keys match the :class:`ClientSettings` field names::

    host: 192.168.125.1
    port: 80
    user: Default User
    password: robotics
    extended_timeout: 15.0
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_PORT = 80
DEFAULT_USER = "Default User"
DEFAULT_PASSWORD = "robotics"

# Seconds.
DEFAULT_TIMEOUT = 0.4
EXTENDED_TIMEOUT = 10.0

DEFAULT_MAX_FRAME_SIZE = 1024


class SettingsError(Exception):
    """Invalid or unreadable client settings."""


@dataclass(frozen=True)
class ClientSettings:
    """Endpoint, credentials and transport limits.

    Attributes:
        host: Controller host name or IP address.
        port: Controller web service port.
        user: Digest user name.
        password: Digest password.
        default_timeout: Timeout for ordinary requests (seconds).
        extended_timeout: Timeout for requests expected to block (seconds).
        receive_timeout: Timeout for one WebSocket frame read (seconds).
        max_frame_size: Largest WebSocket frame accepted (bytes).
        ping_interval: WebSocket keepalive interval, None to disable.
    """

    host: str
    port: int = DEFAULT_PORT
    user: str = DEFAULT_USER
    password: str = DEFAULT_PASSWORD
    default_timeout: float = DEFAULT_TIMEOUT
    extended_timeout: float = EXTENDED_TIMEOUT
    receive_timeout: float = EXTENDED_TIMEOUT
    max_frame_size: int = DEFAULT_MAX_FRAME_SIZE
    ping_interval: float | None = None

    def __post_init__(self) -> None:
        if not self.host:
            raise SettingsError("host must not be empty")
        if not 0 < self.port < 65536:
            raise SettingsError(f"port out of range: {self.port}")
        for name in ("default_timeout", "extended_timeout", "receive_timeout"):
            if getattr(self, name) <= 0:
                raise SettingsError(f"{name} must be positive")
        if self.extended_timeout < self.default_timeout:
            raise SettingsError("extended_timeout must not be shorter than default_timeout")
        if self.max_frame_size <= 0:
            raise SettingsError("max_frame_size must be positive")
        if self.ping_interval is not None and self.ping_interval <= 0:
            raise SettingsError("ping_interval must be positive or None")


def settings_from_mapping(data: dict[str, Any]) -> ClientSettings:
    """Build settings from a mapping, rejecting unknown keys."""
    known = {f.name for f in dataclasses.fields(ClientSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise SettingsError(f"Unknown settings: {', '.join(unknown)}")
    try:
        return ClientSettings(**data)
    except TypeError as err:
        raise SettingsError(str(err)) from err


def load_settings(path: Path) -> ClientSettings:
    """Load settings from a YAML file.

    Raises:
        SettingsError: If the file is missing, is not a mapping or holds
            invalid values.
    """
    if not path.exists():
        raise SettingsError(f"File not found: {path}")
    with path.open() as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise SettingsError(f"Settings file must contain a mapping: {path}")
    return settings_from_mapping(data)
