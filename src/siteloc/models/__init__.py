"""Data models shared across siteloc."""

from .types import (
    BatchLocationResult,
    BatchOutcome,
    CacheEntry,
    GeoCoordinate,
    PhotoCapture,
    PhotoRecord,
    ResolutionSource,
)

__all__ = [
    "BatchLocationResult",
    "BatchOutcome",
    "CacheEntry",
    "GeoCoordinate",
    "PhotoCapture",
    "PhotoRecord",
    "ResolutionSource",
]
