"""Resolve one authoritative site address for a batch of field photos."""

from __future__ import annotations

from .cache import JsonFileKeyValueStore, MemoryKeyValueStore, SpatialCache
from .core.batch import BatchProcessor
from .core.clustering import centroid, cluster
from .core.geocoder import GeocoderSettings, ThrottledGeocoder
from .core.selector import select_location
from .io.metadata import extract_metadata
from .location import LocationState, LocationTracker, create_location_source
from .models.types import (
    BatchLocationResult,
    BatchOutcome,
    CacheEntry,
    GeoCoordinate,
    PhotoCapture,
    PhotoRecord,
    ResolutionSource,
)

__version__ = "0.1.0"

__all__ = [
    "BatchLocationResult",
    "BatchOutcome",
    "BatchProcessor",
    "CacheEntry",
    "GeoCoordinate",
    "GeocoderSettings",
    "JsonFileKeyValueStore",
    "LocationState",
    "LocationTracker",
    "MemoryKeyValueStore",
    "PhotoCapture",
    "PhotoRecord",
    "ResolutionSource",
    "SpatialCache",
    "ThrottledGeocoder",
    "centroid",
    "cluster",
    "create_location_source",
    "extract_metadata",
    "select_location",
]
