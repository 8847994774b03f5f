#!/usr/bin/env python3
"""Device identity and cursor persistence.

DeviceStore owns the configuration file at runtime. It creates the device
identity on first run and doubles as the engine's cursor store, saving
last_seq into the same file.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import socket
import sys
import threading
import uuid
from typing import Any

from clipmirror.config import AgentConfig, load_config, save_config

logger = logging.getLogger(__name__)


def device_platform() -> str:
    """Return the platform name reported to the service."""
    return sys.platform


class DeviceStore:
    """Configuration file access for one device.

    Attributes:
        path: Location of the configuration file.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._config: AgentConfig | None = None

    @property
    def config(self) -> AgentConfig:
        """The current configuration, loading or creating it if needed."""
        return self.load_or_create()

    def load_or_create(self) -> AgentConfig:
        """Load the configuration, creating the device identity if missing.

        Raises:
            ConfigError: If the file is invalid or cannot be written.
        """
        with self._lock:
            if self._config is not None:
                return self._config
            config = load_config(self.path)
            created = config is None
            config = config or AgentConfig()
            changes: dict[str, Any] = {}
            if not config.device_id:
                changes["device_id"] = uuid.uuid4().hex
            if not config.device_name:
                changes["device_name"] = socket.gethostname()
            if changes or created:
                config = save_config(dataclasses.replace(config, **changes), self.path)
                logger.info(
                    "Registered device %s (%s) in %s",
                    config.device_id,
                    config.device_name,
                    self.path,
                )
            self._config = config
            return config

    def update(self, **changes: Any) -> AgentConfig:
        """Apply changes to the configuration and save it.

        Raises:
            ConfigError: If the file cannot be written.
            TypeError: If a change names an unknown field.
        """
        current = self.load_or_create()
        with self._lock:
            self._config = save_config(dataclasses.replace(current, **changes), self.path)
            return self._config

    def load_cursor(self) -> int:
        return self.load_or_create().last_seq

    def save_cursor(self, seq: int) -> None:
        self.update(last_seq=seq)
