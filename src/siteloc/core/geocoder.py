"""Throttled, cancellable reverse geocoding."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..cache.spatial_cache import SpatialCache
from ..config import (
    CACHE_LOOKUP_RADIUS_M,
    GEOCODE_DISTANCE_THRESHOLD_M,
    GEOCODE_INTERVAL_SEC,
    GEOCODE_TIMEOUT_SEC,
)
from ..errors import (
    GeocodeCancelledError,
    GeocodeError,
    GeocodeNetworkError,
    GeocodeTimeoutError,
)
from ..models.types import GeoCoordinate
from ..utils.geocoding import ReverseGeocoder
from .geodesy import haversine_m

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeocoderSettings:
    """Throttle windows and limits applied around the geocoding backend."""

    interval_sec: float = GEOCODE_INTERVAL_SEC
    distance_threshold_m: float = GEOCODE_DISTANCE_THRESHOLD_M
    timeout_sec: float = GEOCODE_TIMEOUT_SEC
    cache_radius_m: float = CACHE_LOOKUP_RADIUS_M


class ThrottledGeocoder:
    """Wrap a :class:`ReverseGeocoder` with caching, throttling and a timeout.

    A request is skipped, and the last resolved address reused, when the
    previous request went out less than ``interval_sec`` ago or when the new
    coordinate lies within ``distance_threshold_m`` of the previously
    geocoded one. The spatial cache is consulted before any network call and
    receives every successful result. At most one request is in flight: a new
    request cancels the outstanding one.

    Failed or timed out requests roll the throttle state back so that the
    next call may retry straight away.
    """

    def __init__(
        self,
        backend: ReverseGeocoder,
        cache: Optional[SpatialCache] = None,
        settings: Optional[GeocoderSettings] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._cache = cache
        self._settings = settings or GeocoderSettings()
        self._clock = clock
        self._last_request_at: Optional[float] = None
        self._last_location: Optional[GeoCoordinate] = None
        self._last_address: Optional[str] = None
        self._generation = 0
        self._inflight: Optional[asyncio.Task[str]] = None
        self._timer: Optional[asyncio.Task[None]] = None

    @property
    def settings(self) -> GeocoderSettings:
        return self._settings

    @property
    def last_address(self) -> Optional[str]:
        return self._last_address

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def resolve(self, coordinate: GeoCoordinate) -> Optional[str]:
        """Return an address for *coordinate*, or ``None`` when none is available."""

        try:
            return await self.resolve_or_raise(coordinate)
        except GeocodeTimeoutError:
            _LOGGER.warning(
                "Reverse geocoding timed out after %.1fs for %s", self._settings.timeout_sec, coordinate
            )
        except GeocodeCancelledError:
            _LOGGER.debug("Reverse geocoding for %s was superseded", coordinate)
        except GeocodeError as exc:
            _LOGGER.warning("Reverse geocoding failed for %s: %s", coordinate, exc)
        return None

    async def resolve_or_raise(self, coordinate: GeoCoordinate) -> Optional[str]:
        """Like :meth:`resolve` but surface geocoding failures as exceptions."""

        now = self._clock()
        if self._last_request_at is not None and now - self._last_request_at < self._settings.interval_sec:
            _LOGGER.debug("Throttled by time; reusing %r", self._last_address)
            return self._last_address

        if (
            self._last_location is not None
            and haversine_m(self._last_location, coordinate) < self._settings.distance_threshold_m
        ):
            _LOGGER.debug("Throttled by distance; reusing %r", self._last_address)
            return self._last_address

        if self._cache is not None:
            cached = self._cache.lookup(coordinate, self._settings.cache_radius_m)
            if cached is not None:
                # Keep the distance throttle anchored to the place this address describes.
                self._last_location = coordinate
                self._last_address = cached
                return cached

        self.cancel_inflight()
        previous = (self._last_request_at, self._last_location)
        self._generation += 1
        generation = self._generation
        self._last_request_at = now
        self._last_location = coordinate

        try:
            address = await self._race(coordinate)
        except (GeocodeError, asyncio.CancelledError):
            # Only undo state this request owns; a newer request may have
            # replaced it meanwhile.
            if self._generation == generation:
                self._last_request_at, self._last_location = previous
            raise

        self._last_address = address
        if self._cache is not None:
            # File-backed stores may wait on a lock and fsync; keep that off the loop.
            await asyncio.to_thread(self._cache.store, coordinate, address)
        _LOGGER.info("Geocoded %s to %r", coordinate, address)
        return address

    async def _race(self, coordinate: GeoCoordinate) -> str:
        """Race the backend call against the timeout timer."""

        request: asyncio.Task[str] = asyncio.ensure_future(self._backend.reverse(coordinate))
        timer: asyncio.Task[None] = asyncio.ensure_future(asyncio.sleep(self._settings.timeout_sec))
        self._inflight = request
        self._timer = timer
        try:
            done, _ = await asyncio.wait({request, timer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (request, timer):
                if not task.done():
                    task.cancel()
            if self._inflight is request:
                self._inflight = None
                self._timer = None

        if request not in done:
            raise GeocodeTimeoutError(f"No answer within {self._settings.timeout_sec:.1f}s for {coordinate}")
        if request.cancelled():
            raise GeocodeCancelledError(f"Request for {coordinate} was cancelled")
        error = request.exception()
        if isinstance(error, GeocodeError):
            raise error
        if error is not None:
            raise GeocodeNetworkError(f"Reverse geocoding failed: {error}") from error

        address = request.result()
        if not address or not address.strip():
            raise GeocodeNetworkError(f"Empty address returned for {coordinate}")
        return address.strip()

    def cancel_inflight(self) -> None:
        """Cancel the outstanding request and its timer, if any."""

        for task in (self._inflight, self._timer):
            if task is not None and not task.done():
                task.cancel()

    async def aclose(self) -> None:
        """Cancel pending work and wait for the cancelled tasks to settle."""

        pending = [task for task in (self._inflight, self._timer) if task is not None]
        self.cancel_inflight()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._inflight = None
        self._timer = None


__all__ = ["GeocoderSettings", "ThrottledGeocoder"]
