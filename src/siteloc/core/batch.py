"""Resolve one address for a capture session and apply it to every photo."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from ..cache.spatial_cache import SpatialCache
from ..config import CACHE_LOOKUP_RADIUS_M
from ..io.metadata import ExtractedMetadata, extract_metadata
from ..models.types import (
    BatchOutcome,
    GeoCoordinate,
    PhotoCapture,
    PhotoRecord,
    ResolutionSource,
)
from .geocoder import ThrottledGeocoder
from .selector import select_location

if TYPE_CHECKING:  # pragma: no cover - only for type checking
    from ..location import LocationState

_LOGGER = logging.getLogger(__name__)


class BatchProcessor:
    """Orchestrate metadata extraction, selection, caching and geocoding.

    Batches handed to the same processor run one after another so the shared
    cache sees each batch's write before the next batch's lookup.
    """

    def __init__(
        self,
        cache: SpatialCache,
        geocoder: Optional[ThrottledGeocoder] = None,
        location_state: Optional["LocationState"] = None,
        *,
        extractor: Callable[[bytes], ExtractedMetadata] = extract_metadata,
        cache_radius_m: float = CACHE_LOOKUP_RADIUS_M,
    ) -> None:
        self._cache = cache
        self._geocoder = geocoder
        self._location_state = location_state
        self._extractor = extractor
        self._cache_radius_m = cache_radius_m
        self._lock = asyncio.Lock()

    @property
    def geocoder(self) -> Optional[ThrottledGeocoder]:
        return self._geocoder

    async def aclose(self) -> None:
        """Cancel any geocode still pending for this processor."""

        if self._geocoder is not None:
            await self._geocoder.aclose()

    async def process(
        self,
        captures: Sequence[PhotoCapture],
        *,
        job_address: Optional[str] = None,
        device_location: Optional[GeoCoordinate] = None,
    ) -> BatchOutcome:
        """Resolve the batch's address and return the per-photo records.

        *device_location* overrides the tracked :class:`LocationState` when
        given. Failures never abort the batch: in the worst case every record
        keeps only its raw coordinate and timestamp.
        """

        async with self._lock:
            _LOGGER.info("Processing batch of %d photos", len(captures))
            extracted = await self._extract_all(captures)

            if device_location is None and self._location_state is not None:
                device_location = self._location_state.current

            selection = select_location(
                [coordinate for coordinate, _ in extracted],
                device_location=device_location,
                job_address=job_address,
            )

            address: Optional[str] = None
            source = ResolutionSource.NONE
            if selection.address is not None:
                address = selection.address
                source = ResolutionSource.JOB_ADDRESS
            elif selection.coordinate is not None:
                address, source = await self._resolve(selection.coordinate)

            if address is None:
                _LOGGER.info("No address resolved; photos keep raw coordinates")

            records: List[PhotoRecord] = [
                PhotoRecord(
                    batch_id=capture.batch_id,
                    index=index,
                    coordinate=coordinate,
                    timestamp=timestamp,
                    address=address,
                )
                for index, (capture, (coordinate, timestamp)) in enumerate(zip(captures, extracted))
            ]
            return BatchOutcome(
                address=address,
                source=source,
                coordinate=selection.coordinate,
                photos=records,
            )

    async def _extract_all(self, captures: Sequence[PhotoCapture]) -> List[ExtractedMetadata]:
        return list(await asyncio.gather(*(self._extract_one(capture) for capture in captures)))

    async def _extract_one(self, capture: PhotoCapture) -> ExtractedMetadata:
        coordinate, timestamp = capture.coordinate, capture.timestamp
        if (coordinate is None or timestamp is None) and capture.data:
            try:
                decoded_coordinate, decoded_timestamp = await asyncio.to_thread(
                    self._extractor, capture.data
                )
            except Exception:
                # One unreadable photo must not cost the batch its address.
                _LOGGER.warning("Metadata extraction failed for a capture", exc_info=True)
                decoded_coordinate, decoded_timestamp = None, None
            coordinate = coordinate if coordinate is not None else decoded_coordinate
            timestamp = timestamp if timestamp is not None else decoded_timestamp
        return coordinate, timestamp

    async def _resolve(self, coordinate: GeoCoordinate) -> tuple[Optional[str], ResolutionSource]:
        cached = self._cache.lookup(coordinate, self._cache_radius_m)
        if cached is not None:
            _LOGGER.info("Using cached address %r", cached)
            return cached, ResolutionSource.CACHE
        if self._geocoder is None:
            return None, ResolutionSource.NONE
        address = await self._geocoder.resolve(coordinate)
        if address is None:
            return None, ResolutionSource.NONE
        return address, ResolutionSource.GEOCODER


__all__ = ["BatchProcessor"]
