#!/usr/bin/env python3
"""Platform clipboard capability.

The sync engine never talks to the operating system directly. It only sees
a ClipboardBackend with two blocking methods, read() and write(), and runs
them in worker threads. One backend per platform is chosen at startup by
select_backend().
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import Protocol

from clipmirror.errors import ClipboardUnavailableError
from clipmirror.models import ClipboardContent

logger = logging.getLogger(__name__)


class ClipboardBackend(Protocol):
    """Read and write the platform clipboard.

    Both calls may block and may fail with ClipboardError, or with
    ClipboardUnavailableError when no clipboard mechanism exists.
    """

    name: str

    def read(self) -> ClipboardContent | None:
        """Return the current clipboard value, or None if empty."""

    def write(self, content: ClipboardContent) -> None:
        """Replace the clipboard value."""


class InMemoryClipboard:
    """Process-local clipboard, used by the self test and by tests."""

    name = "memory"

    def __init__(self, initial: ClipboardContent | None = None) -> None:
        self._content = initial
        self._lock = threading.Lock()
        self.writes: list[ClipboardContent] = []

    def read(self) -> ClipboardContent | None:
        with self._lock:
            return self._content

    def write(self, content: ClipboardContent) -> None:
        with self._lock:
            self._content = content
            self.writes.append(content)


def select_backend(platform: str | None = None) -> ClipboardBackend:
    """Pick the clipboard backend for this platform.

    Args:
        platform: Override for sys.platform, mainly for tests.

    Returns:
        A backend ready to use.

    Raises:
        ClipboardUnavailableError: If no supported clipboard tool is found.
    """
    from clipmirror.clipboard_tools import linux_backend, macos_backend

    platform = platform or sys.platform
    if platform.startswith("linux") or platform.startswith("freebsd"):
        backend = linux_backend()
    elif platform == "darwin":
        backend = macos_backend()
    elif platform in ("win32", "cygwin"):
        from clipmirror.clipboard_windows import Win32Clipboard

        backend = Win32Clipboard()
    else:
        raise ClipboardUnavailableError(f"unsupported platform for clipboard access: {platform}")
    logger.debug("Using %s clipboard backend", backend.name)
    return backend
