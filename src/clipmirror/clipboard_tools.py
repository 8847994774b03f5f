#!/usr/bin/env python3
"""Clipboard backends built on command-line clipboard tools.

Linux and macOS get a CommandClipboard configured with the tools they have
(Windows uses the Win32 API, see clipboard_windows):

- Linux: wl-clipboard under Wayland, otherwise xclip or xsel
- macOS: pbpaste / pbcopy

Text is supported everywhere. Image writes are supported where the tool
takes a MIME type (wl-copy, xclip); elsewhere they fail with ClipboardError.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass

from clipmirror.errors import ClipboardError, ClipboardUnavailableError
from clipmirror.models import TYPE_IMAGE, TYPE_TEXT, ClipboardContent

logger = logging.getLogger(__name__)

# Timeout in seconds for a clipboard tool invocation, so an unresponsive
# clipboard owner cannot hang the monitor.
CLIPBOARD_TIMEOUT: float = 2.0

# Placeholder replaced with the MIME type in image write commands.
MIME_PLACEHOLDER = "{mime}"


@dataclass(frozen=True)
class CommandClipboard:
    """Clipboard access through external commands.

    Attributes:
        name: Backend name for logging.
        read_cmd: Command printing the clipboard text on stdout.
        write_cmd: Command reading new clipboard text from stdin.
        image_write_cmd: Command reading image bytes from stdin, with
            "{mime}" standing for the MIME type, or None if unsupported.
    """

    name: str
    read_cmd: tuple[str, ...]
    write_cmd: tuple[str, ...]
    image_write_cmd: tuple[str, ...] | None = None

    def read(self) -> ClipboardContent | None:
        """Return the clipboard text, or None when it is empty."""
        try:
            result = subprocess.run(
                self.read_cmd,
                capture_output=True,
                timeout=CLIPBOARD_TIMEOUT,
                check=False,
            )
        except FileNotFoundError as e:
            raise ClipboardUnavailableError(f"{self.read_cmd[0]} not found") from e
        except subprocess.TimeoutExpired as e:
            raise ClipboardError(f"{self.read_cmd[0]} timed out") from e
        if result.returncode != 0:
            # xclip and wl-paste exit non-zero when the clipboard is empty.
            logger.debug(
                "%s exited with %d: %s",
                self.read_cmd[0],
                result.returncode,
                result.stderr.decode("utf-8", "replace").strip(),
            )
            return None
        if not result.stdout:
            return None
        text = result.stdout.decode("utf-8", "replace")
        return ClipboardContent(type=TYPE_TEXT, data=text, mime="text/plain")

    def write(self, content: ClipboardContent) -> None:
        """Replace the clipboard content.

        Raises:
            ClipboardError: If the tool fails or the content type is unsupported.
        """
        if content.type == TYPE_IMAGE:
            if self.image_write_cmd is None:
                raise ClipboardError(f"image clipboard not supported by {self.name}")
            cmd = tuple(
                part.replace(MIME_PLACEHOLDER, content.mime) for part in self.image_write_cmd
            )
            data = content.data if isinstance(content.data, bytes) else content.data.encode("utf-8")
        else:
            cmd = self.write_cmd
            data = content.data.encode("utf-8") if isinstance(content.data, str) else content.data
        self._run_write(cmd, data)

    def _run_write(self, cmd: tuple[str, ...], data: bytes) -> None:
        try:
            subprocess.run(
                cmd,
                input=data,
                capture_output=True,
                timeout=CLIPBOARD_TIMEOUT,
                check=True,
            )
        except FileNotFoundError as e:
            raise ClipboardUnavailableError(f"{cmd[0]} not found") from e
        except subprocess.TimeoutExpired as e:
            raise ClipboardError(f"{cmd[0]} timed out") from e
        except subprocess.CalledProcessError as e:
            raise ClipboardError(f"{cmd[0]} exited with {e.returncode}") from e


def command_exists(command: str) -> bool:
    """Check if a command exists in PATH."""
    return shutil.which(command) is not None


def linux_backend() -> CommandClipboard:
    """Pick wl-clipboard, xclip or xsel, in that order of preference.

    Raises:
        ClipboardUnavailableError: If none of the tools is installed.
    """
    if os.environ.get("WAYLAND_DISPLAY") and command_exists("wl-paste") and command_exists("wl-copy"):
        return CommandClipboard(
            name="wl-clipboard",
            read_cmd=("wl-paste", "--no-newline"),
            write_cmd=("wl-copy",),
            image_write_cmd=("wl-copy", "--type", MIME_PLACEHOLDER),
        )
    if command_exists("xclip"):
        return CommandClipboard(
            name="xclip",
            read_cmd=("xclip", "-selection", "clipboard", "-out"),
            write_cmd=("xclip", "-selection", "clipboard"),
            image_write_cmd=("xclip", "-selection", "clipboard", "-t", MIME_PLACEHOLDER),
        )
    if command_exists("xsel"):
        return CommandClipboard(
            name="xsel",
            read_cmd=("xsel", "--clipboard", "--output"),
            write_cmd=("xsel", "--clipboard", "--input"),
        )
    raise ClipboardUnavailableError("no clipboard tool found (install xclip, xsel, or wl-clipboard)")


def macos_backend() -> CommandClipboard:
    return CommandClipboard(name="pasteboard", read_cmd=("pbpaste",), write_cmd=("pbcopy",))
