#!/usr/bin/env python3
"""Agent configuration file.

The configuration lives in a JSON file (by default ~/.clipmirror/config.json)
holding the device identity, the stored access token, the sync cursor and
the tuning values from constants.py. The file contains a credential, so it
is always written with mode 0600 through write_json_atomic().

Three environment variables override stored values at startup:
- CLIPMIRROR_SERVICE_URL: service base URL
- CLIPMIRROR_API_KEY: access token
- CLIPMIRROR_PASSPHRASE: encryption passphrase (never stored)
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from clipmirror.atomic_file import read_json, write_json_atomic
from clipmirror.constants import (
    BACKOFF_UNIT,
    CONNECTED_POLL_INTERVAL,
    DEFAULT_SERVICE_URL,
    DRAIN_INTERVAL,
    ECHO_WINDOW,
    MAX_ATTEMPTS,
    MAX_ITEM_BYTES,
    MONITOR_INTERVAL,
    PAGE_SIZE,
    POLL_INTERVAL,
    QUEUE_MAX_AGE,
    REQUEST_TIMEOUT,
)
from clipmirror.errors import ConfigError
from clipmirror.models import format_timestamp, utcnow
from clipmirror.sync_context import SyncSettings

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".clipmirror"
CONFIG_FILE_NAME = "config.json"
QUEUE_FILE_NAME = "queue.json"
CONFIG_FILE_MODE = 0o600

ENV_SERVICE_URL = "CLIPMIRROR_SERVICE_URL"
ENV_API_KEY = "CLIPMIRROR_API_KEY"
ENV_PASSPHRASE = "CLIPMIRROR_PASSPHRASE"


def default_config_path() -> Path:
    """Return ~/.clipmirror/config.json."""
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


@dataclass(frozen=True)
class AgentConfig:
    """Persistent agent settings.

    An empty queue_path means queue.json next to the config file.
    """

    device_id: str = ""
    device_name: str = ""
    user_id: str = ""
    access_token: str = ""
    last_seq: int = 0
    queue_path: str = ""
    api_url: str = DEFAULT_SERVICE_URL
    max_item_bytes: int = MAX_ITEM_BYTES
    allow_images: bool = True
    push_enabled: bool = True
    poll_interval: float = POLL_INTERVAL
    connected_poll_interval: float = CONNECTED_POLL_INTERVAL
    drain_interval: float = DRAIN_INTERVAL
    monitor_interval: float = MONITOR_INTERVAL
    max_attempts: int = MAX_ATTEMPTS
    backoff_unit: float = BACKOFF_UNIT
    queue_max_age: float = QUEUE_MAX_AGE
    echo_window: float = ECHO_WINDOW
    page_size: int = PAGE_SIZE
    request_timeout: float = REQUEST_TIMEOUT
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> AgentConfig:
        """Build a config from decoded JSON, ignoring unknown keys.

        Raises:
            ConfigError: If data is not an object or a value has the wrong type.
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a JSON object")
        values = {}
        for f in dataclasses.fields(cls):
            if f.name not in data:
                continue
            values[f.name] = _check_type(f.name, data[f.name], f.default)
        unknown = set(data) - set(values)
        if unknown:
            logger.debug("Ignoring unknown configuration keys: %s", ", ".join(sorted(unknown)))
        return cls(**values)

    def resolved_queue_path(self, config_path: str | os.PathLike[str]) -> Path:
        """Return the offline queue location for this config file."""
        if self.queue_path:
            return Path(self.queue_path).expanduser()
        return Path(config_path).parent / QUEUE_FILE_NAME

    def sync_settings(self) -> SyncSettings:
        return SyncSettings(
            poll_interval=self.poll_interval,
            connected_poll_interval=self.connected_poll_interval,
            drain_interval=self.drain_interval,
            max_attempts=self.max_attempts,
            queue_max_age=self.queue_max_age,
            page_size=self.page_size,
            request_timeout=self.request_timeout,
        )


def _check_type(name: str, value: Any, default: Any) -> Any:
    if default is None:
        if value is None or isinstance(value, str):
            return value
    elif isinstance(default, bool):
        if isinstance(value, bool):
            return value
    elif isinstance(default, int):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif isinstance(default, float):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif isinstance(value, type(default)):
        return value
    raise ConfigError(f"Invalid value for {name}: {value!r}")


def load_config(path: str | os.PathLike[str]) -> AgentConfig | None:
    """Read the configuration file.

    Returns:
        The configuration, or None if the file does not exist.

    Raises:
        ConfigError: If the file cannot be read or is invalid.
    """
    try:
        raw = read_json(path)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration {path}: {e}") from e
    except ValueError as e:
        raise ConfigError(f"Configuration {path} is not valid JSON: {e}") from e
    if raw is None:
        return None
    return AgentConfig.from_dict(raw)


def save_config(config: AgentConfig, path: str | os.PathLike[str]) -> AgentConfig:
    """Write the configuration atomically with owner-only permissions.

    Returns:
        The saved configuration with updated_at (and created_at on first
        save) filled in.

    Raises:
        ConfigError: If the file cannot be written.
    """
    now = format_timestamp(utcnow())
    saved = dataclasses.replace(
        config,
        created_at=config.created_at or now,
        updated_at=now,
    )
    try:
        write_json_atomic(path, saved.to_dict(), mode=CONFIG_FILE_MODE)
    except OSError as e:
        raise ConfigError(f"Cannot write configuration {path}: {e}") from e
    return saved


def clear_stored_auth(path: str | os.PathLike[str]) -> bool:
    """Remove the stored access token, user id and sync cursor.

    The device identity and tuning values are kept.

    Returns:
        True if a configuration file existed and was updated.

    Raises:
        ConfigError: If the file cannot be read or written.
    """
    config = load_config(path)
    if config is None:
        return False
    save_config(dataclasses.replace(config, access_token="", user_id="", last_seq=0), path)
    logger.info("Cleared stored authentication in %s", path)
    return True


def apply_env(config: AgentConfig, environ: Mapping[str, str] | None = None) -> AgentConfig:
    """Return config with the service URL and access token overridden from the environment."""
    env = os.environ if environ is None else environ
    changes = {}
    if env.get(ENV_SERVICE_URL):
        changes["api_url"] = env[ENV_SERVICE_URL]
    if env.get(ENV_API_KEY):
        changes["access_token"] = env[ENV_API_KEY]
    return dataclasses.replace(config, **changes) if changes else config


def passphrase_from_env(environ: Mapping[str, str] | None = None) -> str | None:
    env = os.environ if environ is None else environ
    return env.get(ENV_PASSPHRASE) or None
