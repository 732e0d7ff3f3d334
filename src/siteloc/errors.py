"""Custom exception hierarchy for siteloc."""

from __future__ import annotations


class SiteLocError(Exception):
    """Base class for all custom errors raised by siteloc."""


class InvalidCoordinateError(SiteLocError, ValueError):
    """Raised when a latitude or longitude falls outside its valid range."""


class MetadataDecodeError(SiteLocError):
    """Raised when embedded image metadata cannot be decoded."""


class GeocodeError(SiteLocError):
    """Base class for reverse geocoding failures."""


class GeocodeTimeoutError(GeocodeError):
    """Raised when the reverse geocoding service does not answer in time."""


class GeocodeNetworkError(GeocodeError):
    """Raised when the reverse geocoding service fails or returns nothing."""


class GeocodeCancelledError(GeocodeError):
    """Raised when an in-flight request is superseded or torn down."""


class CacheCorruptedError(SiteLocError):
    """Raised when the persisted geocode cache cannot be parsed."""


class LockTimeoutError(SiteLocError):
    """Raised when a file-level lock cannot be acquired in time."""
