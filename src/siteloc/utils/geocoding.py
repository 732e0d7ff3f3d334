"""Reverse geocoding backends.

Each backend exposes a single awaitable ``reverse(coordinate)`` returning an
address string and raising :class:`~siteloc.errors.GeocodeNetworkError` when
the service fails or has nothing to offer. Timeouts, throttling and caching
are layered on top by :class:`~siteloc.core.geocoder.ThrottledGeocoder`.
"""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

import reverse_geocoder  # type: ignore[import]
from geopy.exc import GeopyError
from geopy.geocoders import Nominatim

from ..config import GEOCODER_LANGUAGE, GEOCODER_USER_AGENT
from ..errors import GeocodeNetworkError
from ..models.types import GeoCoordinate

_LOGGER = logging.getLogger(__name__)

_LOCALITY_KEYS = ("city", "town", "village", "hamlet", "suburb")


@runtime_checkable
class ReverseGeocoder(Protocol):
    async def reverse(self, coordinate: GeoCoordinate) -> str: ...


def format_address(components: Mapping[str, Any]) -> Optional[str]:
    """Join street number, street, locality and state with spaces.

    Returns ``None`` when none of the components is present.
    """

    parts = [
        components.get("house_number"),
        components.get("road"),
        next((components.get(key) for key in _LOCALITY_KEYS if components.get(key)), None),
        components.get("state"),
    ]
    text = " ".join(str(part).strip() for part in parts if part and str(part).strip())
    return text or None


class GeopyReverseGeocoder:
    """Resolve addresses through a :mod:`geopy` geolocator.

    The geolocator is blocking, so each call runs on a worker thread. When the
    surrounding task is cancelled the thread finishes in the background and its
    result is dropped.
    """

    def __init__(self, geolocator: Any = None, *, language: str = GEOCODER_LANGUAGE) -> None:
        self._geolocator = geolocator if geolocator is not None else Nominatim(
            user_agent=GEOCODER_USER_AGENT
        )
        self._language = language

    async def reverse(self, coordinate: GeoCoordinate) -> str:
        return await asyncio.to_thread(self._reverse_blocking, coordinate)

    def _reverse_blocking(self, coordinate: GeoCoordinate) -> str:
        _LOGGER.debug("Reverse geocoding %s via %s", coordinate, type(self._geolocator).__name__)
        try:
            location = self._geolocator.reverse(
                coordinate.as_tuple(), exactly_one=True, language=self._language
            )
        except GeopyError as exc:
            raise GeocodeNetworkError(f"Geocoding service failed: {exc}") from exc
        except OSError as exc:
            raise GeocodeNetworkError(f"Network error while geocoding: {exc}") from exc

        if location is None:
            raise GeocodeNetworkError(f"No address found for {coordinate}")

        raw = getattr(location, "raw", None)
        components = raw.get("address") if isinstance(raw, dict) else None
        address = format_address(components) if isinstance(components, dict) else None
        if address is None:
            address = str(getattr(location, "address", "") or "").strip() or None
        if address is None:
            raise GeocodeNetworkError(f"No address found for {coordinate}")
        return address


@lru_cache(maxsize=1)
def _offline_dataset() -> Any:
    """Return a cached offline reverse geocoder instance."""

    return reverse_geocoder.RGeocoder(mode=1, verbose=False)


class OfflineReverseGeocoder:
    """Place-level names from the bundled GeoNames dataset, without network access."""

    async def reverse(self, coordinate: GeoCoordinate) -> str:
        return await asyncio.to_thread(self._reverse_blocking, coordinate)

    def _reverse_blocking(self, coordinate: GeoCoordinate) -> str:
        result = _offline_dataset().query([coordinate.as_tuple()])

        record: Optional[Dict[str, str]] = None
        if isinstance(result, dict):
            record = {key: _to_text(value) for key, value in result.items() if isinstance(key, str)}
        elif isinstance(result, list) and result and isinstance(result[0], dict):
            record = {key: _to_text(value) for key, value in result[0].items() if isinstance(key, str)}

        if not record:
            raise GeocodeNetworkError(f"No place found for {coordinate}")

        place = record.get("name", "").strip()
        admin = (record.get("admin1") or record.get("admin2") or "").strip()
        components = [component for component in (place, admin) if component]
        if not components:
            raise GeocodeNetworkError(f"No place found for {coordinate}")
        return ", ".join(components)


def _to_text(value: object) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    return str(value)


__all__ = [
    "GeopyReverseGeocoder",
    "OfflineReverseGeocoder",
    "ReverseGeocoder",
    "format_address",
]
