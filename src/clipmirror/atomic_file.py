#!/usr/bin/env python3
"""Crash-safe JSON file persistence.

Writes go to a temporary file in the destination directory, are flushed
and fsynced, and then renamed over the destination with os.replace(). A
crash at any point leaves either the old file or the new one, never a
truncated mix.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def write_json_atomic(path: str | os.PathLike[str], data: Any, mode: int = 0o644) -> None:
    """Atomically replace path with the JSON encoding of data.

    Args:
        path: Destination file. Parent directories are created.
        data: JSON-serializable object.
        mode: Permission bits for the written file.

    Raises:
        OSError: If the file cannot be written or renamed.
        TypeError: If data is not JSON-serializable.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(data, indent=2)

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(temp_name, mode)
        os.replace(temp_name, target)
    except BaseException:
        try:
            os.unlink(temp_name)
        except OSError:
            pass  # Already renamed or never created
        raise


def read_json(path: str | os.PathLike[str]) -> Any | None:
    """Read a JSON file.

    Returns:
        The decoded object, or None if the file is missing or empty.

    Raises:
        OSError: If the file exists but cannot be read.
        ValueError: If the file holds invalid JSON.
    """
    target = Path(path)
    try:
        text = target.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    if not text.strip():
        return None
    return json.loads(text)
