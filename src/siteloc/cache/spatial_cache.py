"""Radius-indexed geocode cache shared across capture sessions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from ..config import CACHE_KEY_PRECISION, CACHE_KEY_PREFIX, CACHE_LOOKUP_RADIUS_M
from ..core.geodesy import haversine_m
from ..errors import CacheCorruptedError, InvalidCoordinateError
from ..models.types import CacheEntry, GeoCoordinate
from ..schemas import validate_cache_entry
from .kv_store import KeyValueStore, MemoryKeyValueStore

_LOGGER = logging.getLogger(__name__)


def quantized_key(coordinate: GeoCoordinate, precision: int = CACHE_KEY_PRECISION) -> str:
    """Return the cache key for *coordinate*, rounded to roughly a 1 m grid."""

    lat = f"{coordinate.latitude:.{precision}f}"
    lon = f"{coordinate.longitude:.{precision}f}"
    return f"{CACHE_KEY_PREFIX}{lat}_{lon}"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SpatialCache:
    """Map coordinates to resolved addresses and answer radius queries.

    Lookups scan every stored entry; the cache is expected to hold a few
    hundred properties at most. All access goes through a single lock so a
    write made by one batch is visible to the next batch's lookup even when
    batches run on different threads.
    """

    def __init__(self, backend: Optional[KeyValueStore] = None) -> None:
        self._backend: KeyValueStore = backend if backend is not None else MemoryKeyValueStore()
        self._lock = Lock()

    @property
    def backend(self) -> KeyValueStore:
        return self._backend

    def store(self, coordinate: GeoCoordinate, address: str) -> CacheEntry:
        """Write *address* for *coordinate*, replacing any entry in the same cell."""

        entry = CacheEntry(
            key=quantized_key(coordinate),
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
            address=address,
            written_at=_utc_now_iso(),
        )
        with self._lock:
            self._backend.set(entry.key, entry.to_dict())
        _LOGGER.debug("Cached %r at %s", address, coordinate)
        return entry

    def lookup(
        self, coordinate: GeoCoordinate, max_radius_m: float = CACHE_LOOKUP_RADIUS_M
    ) -> Optional[str]:
        """Return the address of the nearest entry within *max_radius_m*."""

        best: Optional[Tuple[str, float]] = None
        for entry in self.entries():
            distance = haversine_m(coordinate, entry.coordinate)
            if distance > max_radius_m:
                continue
            if best is None or distance < best[1]:
                best = (entry.address, distance)

        if best is None:
            _LOGGER.debug("Cache miss for %s", coordinate)
            return None
        _LOGGER.debug("Cache hit %r (distance %.1fm)", best[0], best[1])
        return best[0]

    def entries(self) -> List[CacheEntry]:
        """Return every valid entry; malformed rows are skipped."""

        with self._lock:
            try:
                rows = list(self._backend.items())
            except (CacheCorruptedError, OSError) as exc:
                _LOGGER.warning("Geocode cache unreadable, treating as empty: %s", exc)
                return []
        return list(_parse_rows(rows))

    def clear(self) -> None:
        with self._lock:
            clear = getattr(self._backend, "clear", None)
            if clear is None:
                raise TypeError(f"{type(self._backend).__name__} does not support clearing")
            clear()

    def __len__(self) -> int:
        return len(self.entries())


def _parse_rows(rows: Iterable[Tuple[str, Any]]) -> Iterator[CacheEntry]:
    for key, payload in rows:
        try:
            validate_cache_entry(payload)
        except CacheCorruptedError as exc:
            _LOGGER.debug("Skipping malformed cache entry %s: %s", key, exc)
            continue
        # JSON accepts NaN and it slips past the schema range checks.
        try:
            position = GeoCoordinate(float(payload["latitude"]), float(payload["longitude"]))
        except InvalidCoordinateError as exc:
            _LOGGER.debug("Skipping cache entry %s with bad position: %s", key, exc)
            continue
        yield CacheEntry(
            key=key,
            latitude=position.latitude,
            longitude=position.longitude,
            address=str(payload["address"]),
            written_at=str(payload.get("timestamp", "")),
        )


__all__ = ["SpatialCache", "quantized_key"]
