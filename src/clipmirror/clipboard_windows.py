#!/usr/bin/env python3
"""Windows clipboard backend on the Win32 clipboard API (pywin32).

Text goes through CF_UNICODETEXT, so what is written is read back
unchanged: no code page conversion and no trailing newline. Another
process may hold the clipboard open for a moment, so opening it is retried
briefly before failing with ClipboardError.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import pywintypes
import win32clipboard
import win32con
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from clipmirror.errors import ClipboardError
from clipmirror.models import TYPE_IMAGE, TYPE_TEXT, ClipboardContent

logger = logging.getLogger(__name__)

# Attempts and seconds between attempts to open a clipboard held by
# another process.
OPEN_ATTEMPTS: int = 3
OPEN_RETRY_WAIT: float = 0.05


@retry(
    stop=stop_after_attempt(OPEN_ATTEMPTS),
    wait=wait_fixed(OPEN_RETRY_WAIT),
    retry=retry_if_exception_type(pywintypes.error),
    reraise=True,
)
def open_clipboard() -> None:
    win32clipboard.OpenClipboard()


@contextmanager
def opened_clipboard() -> Iterator[None]:
    """Hold the clipboard open for the duration of the block.

    Raises:
        ClipboardError: If the clipboard stays busy.
    """
    try:
        open_clipboard()
    except pywintypes.error as e:
        raise ClipboardError(f"clipboard is busy: {e}") from e
    try:
        yield
    finally:
        win32clipboard.CloseClipboard()


class Win32Clipboard:
    """Text clipboard access through win32clipboard."""

    name = "win32"

    def read(self) -> ClipboardContent | None:
        """Return the clipboard text, or None when it holds no text."""
        with opened_clipboard():
            if not win32clipboard.IsClipboardFormatAvailable(win32con.CF_UNICODETEXT):
                return None
            try:
                text = win32clipboard.GetClipboardData(win32con.CF_UNICODETEXT)
            except pywintypes.error as e:
                raise ClipboardError(f"failed to read clipboard text: {e}") from e
        if not text:
            return None
        return ClipboardContent(type=TYPE_TEXT, data=text, mime="text/plain")

    def write(self, content: ClipboardContent) -> None:
        """Replace the clipboard with text content.

        Raises:
            ClipboardError: If the clipboard is busy or content is an image.
        """
        if content.type == TYPE_IMAGE:
            raise ClipboardError(f"image clipboard not supported by {self.name}")
        text = content.data if isinstance(content.data, str) else content.data.decode("utf-8")
        with opened_clipboard():
            try:
                win32clipboard.EmptyClipboard()
                win32clipboard.SetClipboardText(text, win32con.CF_UNICODETEXT)
            except pywintypes.error as e:
                raise ClipboardError(f"failed to write clipboard text: {e}") from e
        logger.debug("Wrote %d characters to the Windows clipboard", len(text))
