"""Key-value stores backing the spatial geocode cache."""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

from ..config import CACHE_FILE_NAME, CACHE_WRITE_LOCK_TIMEOUT_SEC, WORK_DIR_NAME
from ..errors import CacheCorruptedError, LockTimeoutError
from ..utils.jsonio import read_json, write_json
from .lock import FileLock

_LOGGER = logging.getLogger(__name__)

CACHE_DOCUMENT_SCHEMA = "siteloc/geocache@1"


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal persistent mapping used by :class:`~siteloc.cache.SpatialCache`."""

    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any]) -> None: ...

    def keys(self) -> List[str]: ...

    def items(self) -> Iterator[Tuple[str, Dict[str, Any]]]: ...


class MemoryKeyValueStore:
    """In-process store, useful for tests and short-lived sessions."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self._data: Dict[str, Dict[str, Any]] = dict(initial or {})

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._data.get(key)

    def set(self, key: str, value: Dict[str, Any]) -> None:
        self._data[key] = value

    def keys(self) -> List[str]:
        return list(self._data)

    def items(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        return iter(list(self._data.items()))

    def clear(self) -> None:
        self._data.clear()


class JsonFileKeyValueStore:
    """Store entries in a single JSON document written atomically.

    The parsed document is memoised and reloaded only when the file's
    modification time changes, so a radius scan over a few hundred entries
    touches the disk once.
    """

    def __init__(self, path: Path, *, lock_timeout: float = CACHE_WRITE_LOCK_TIMEOUT_SEC) -> None:
        self.path = path
        self.lock_timeout = lock_timeout
        self._snapshot: Optional[Dict[str, Dict[str, Any]]] = None
        self._snapshot_mtime: Optional[int] = None
        self._guard = Lock()

    @classmethod
    def for_directory(cls, root: Path) -> "JsonFileKeyValueStore":
        """Return a store located in the ``.siteloc`` work directory of *root*."""

        return cls(root / WORK_DIR_NAME / CACHE_FILE_NAME)

    def _read_entries(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        mtime = self.path.stat().st_mtime_ns
        if self._snapshot is not None and self._snapshot_mtime == mtime:
            return self._snapshot
        document = read_json(self.path)
        entries = document.get("entries")
        if not isinstance(entries, dict):
            raise CacheCorruptedError(f"Cache document {self.path} has no entries mapping")
        self._snapshot = entries
        self._snapshot_mtime = mtime
        return entries

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._guard:
            return self._read_entries().get(key)

    def keys(self) -> List[str]:
        with self._guard:
            return list(self._read_entries())

    def items(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        with self._guard:
            return iter(list(self._read_entries().items()))

    def set(self, key: str, value: Dict[str, Any]) -> None:
        """Insert or replace *key* and persist the document."""

        with self._guard:
            lock = FileLock(self.path)
            try:
                lock.acquire(timeout=self.lock_timeout)
            except LockTimeoutError:
                _LOGGER.warning("Geocode cache %s is locked; skipping write of %s", self.path, key)
                return
            try:
                try:
                    entries = dict(self._read_entries())
                except CacheCorruptedError as exc:
                    _LOGGER.warning("Discarding unreadable geocode cache: %s", exc)
                    entries = {}
                entries[key] = value
                write_json(self.path, {"schema": CACHE_DOCUMENT_SCHEMA, "entries": entries})
            finally:
                lock.release()
            self._snapshot = None
            self._snapshot_mtime = None

    def clear(self) -> None:
        with self._guard:
            with FileLock(self.path):
                write_json(self.path, {"schema": CACHE_DOCUMENT_SCHEMA, "entries": {}})
            self._snapshot = None
            self._snapshot_mtime = None


__all__ = ["JsonFileKeyValueStore", "KeyValueStore", "MemoryKeyValueStore"]
