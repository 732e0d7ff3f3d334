"""High-level helpers wiring the location pipeline together."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

from .cache.kv_store import JsonFileKeyValueStore, MemoryKeyValueStore
from .cache.spatial_cache import SpatialCache
from .core.batch import BatchProcessor
from .core.geocoder import GeocoderSettings, ThrottledGeocoder
from .location import LocationState
from .models.types import BatchOutcome, GeoCoordinate, PhotoCapture
from .utils.geocoding import GeopyReverseGeocoder, OfflineReverseGeocoder, ReverseGeocoder
from .utils.logging import get_logger

LOGGER = get_logger()


def open_cache(path: Optional[Path] = None) -> SpatialCache:
    """Return a spatial cache persisted at *path*, or an in-memory one."""

    if path is None:
        return SpatialCache(MemoryKeyValueStore())
    if path.is_dir():
        return SpatialCache(JsonFileKeyValueStore.for_directory(path))
    return SpatialCache(JsonFileKeyValueStore(path))


def create_backend(*, offline: bool = False) -> ReverseGeocoder:
    """Return the reverse geocoding backend selected for this host."""

    if offline:
        return OfflineReverseGeocoder()
    return GeopyReverseGeocoder()


def create_processor(
    cache: SpatialCache,
    backend: Optional[ReverseGeocoder] = None,
    *,
    location_state: Optional[LocationState] = None,
    settings: Optional[GeocoderSettings] = None,
) -> BatchProcessor:
    """Compose a :class:`BatchProcessor` around *cache* and *backend*."""

    geocoder = ThrottledGeocoder(backend or create_backend(), cache, settings)
    return BatchProcessor(
        cache,
        geocoder,
        location_state,
        cache_radius_m=geocoder.settings.cache_radius_m,
    )


def captures_from_paths(paths: Iterable[Path], batch_id: Optional[str] = None) -> List[PhotoCapture]:
    """Read image files into captures belonging to one batch."""

    captures: List[PhotoCapture] = []
    for path in paths:
        try:
            data = path.read_bytes()
        except OSError as exc:
            LOGGER.warning("Could not read %s: %s", path, exc)
            data = b""
        captures.append(PhotoCapture(data=data, batch_id=batch_id))
    return captures


async def resolve_batch(
    processor: BatchProcessor,
    captures: List[PhotoCapture],
    *,
    job_address: Optional[str] = None,
    device_location: Optional[GeoCoordinate] = None,
) -> BatchOutcome:
    """Resolve *captures* and log a one-line summary."""

    outcome = await processor.process(
        captures, job_address=job_address, device_location=device_location
    )
    LOGGER.info(
        "Batch resolved via %s: %s",
        outcome.source.value,
        outcome.address if outcome.address is not None else "<no address>",
    )
    return outcome


__all__ = [
    "captures_from_paths",
    "create_backend",
    "create_processor",
    "open_cache",
    "resolve_batch",
]
