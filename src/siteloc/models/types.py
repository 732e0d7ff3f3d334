"""Data models used by siteloc."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping, Optional

from ..errors import InvalidCoordinateError


@dataclass(frozen=True, slots=True)
class GeoCoordinate:
    """A latitude/longitude pair expressed in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        lat = float(self.latitude)
        lon = float(self.longitude)
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise InvalidCoordinateError(f"Non-finite coordinate: {lat}, {lon}")
        if abs(lat) > 90.0:
            raise InvalidCoordinateError(f"Latitude out of range: {lat}")
        if abs(lon) > 180.0:
            raise InvalidCoordinateError(f"Longitude out of range: {lon}")
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lon)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "GeoCoordinate":
        """Build a coordinate from a ``{"lat": ..., "lon": ...}`` mapping."""

        return cls(payload["lat"], payload["lon"])

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    def __str__(self) -> str:
        return f"{self.latitude:.6f}, {self.longitude:.6f}"


@dataclass(slots=True)
class PhotoCapture:
    """Transient record of one captured image awaiting location resolution."""

    data: bytes = b""
    coordinate: Optional[GeoCoordinate] = None
    timestamp: Optional[datetime] = None
    batch_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    latitude: float
    longitude: float
    address: str
    written_at: str

    @property
    def coordinate(self) -> GeoCoordinate:
        return GeoCoordinate(self.latitude, self.longitude)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.written_at,
        }


@dataclass(frozen=True, slots=True)
class BatchLocationResult:
    """Outcome of the batch location selection rules.

    At most one of ``address`` and ``coordinate`` is populated. When both are
    ``None`` the caller falls back to the device's live location.
    """

    address: Optional[str] = None
    coordinate: Optional[GeoCoordinate] = None

    @property
    def is_empty(self) -> bool:
        return self.address is None and self.coordinate is None


class ResolutionSource(str, Enum):
    """Where the address applied to a batch came from."""

    JOB_ADDRESS = "job_address"
    CACHE = "cache"
    GEOCODER = "geocoder"
    NONE = "none"


@dataclass(slots=True)
class PhotoRecord:
    batch_id: Optional[str]
    index: int
    coordinate: Optional[GeoCoordinate]
    timestamp: Optional[datetime]
    address: Optional[str]


@dataclass(slots=True)
class BatchOutcome:
    """Single resolved address for a batch plus the per-photo audit trail."""

    address: Optional[str]
    source: ResolutionSource
    coordinate: Optional[GeoCoordinate] = None
    photos: List[PhotoRecord] = field(default_factory=list)

    def label_for(self, record: PhotoRecord) -> str:
        """Return the display label for *record*, falling back to coordinates."""

        from ..core.labels import format_location_label

        return format_location_label(record.address, record.coordinate or self.coordinate)
