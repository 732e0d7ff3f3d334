"""Helpers for JSON input/output with atomic writes."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any

from ..errors import CacheCorruptedError


def read_json(path: Path) -> dict[str, Any]:
    """Read JSON from *path* and return a dictionary."""

    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError as exc:
        raise CacheCorruptedError(f"JSON file not found: {path}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise CacheCorruptedError(f"Invalid JSON data in {path}") from exc
    if not isinstance(payload, dict):
        raise CacheCorruptedError(f"Expected a JSON object in {path}")
    return payload


def atomic_write_text(path: Path, data: str) -> None:
    """Atomically write *data* into *path*."""

    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    with tmp_path.open("w", encoding="utf-8") as handle:
        handle.write(data)
        handle.flush()
        os.fsync(handle.fileno())
    try:
        tmp_path.replace(path)
    except PermissionError:
        if sys.platform != "win32":
            raise
        # Windows refuses to replace a file another process holds open; retry
        # once after removing the destination.
        path.unlink(missing_ok=True)
        tmp_path.replace(path)


def write_json(path: Path, data: dict[str, Any]) -> None:
    """Write *data* into *path* atomically."""

    payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True)
    atomic_write_text(path, payload)


__all__ = ["atomic_write_text", "read_json", "write_json"]
