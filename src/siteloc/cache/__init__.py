"""Persistent geocode cache."""

from .kv_store import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .spatial_cache import SpatialCache, quantized_key

__all__ = [
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SpatialCache",
    "quantized_key",
]
