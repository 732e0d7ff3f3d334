"""Priority rules choosing one location for a batch of photos."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ..config import CLUSTER_THRESHOLD_M, PAIR_FAR_THRESHOLD_M
from ..models.types import BatchLocationResult, GeoCoordinate
from .clustering import centroid, cluster, largest_cluster
from .geodesy import haversine_m

_LOGGER = logging.getLogger(__name__)


def _distinct(coordinates: Iterable[GeoCoordinate]) -> List[GeoCoordinate]:
    seen: set[GeoCoordinate] = set()
    ordered: List[GeoCoordinate] = []
    for coordinate in coordinates:
        if coordinate in seen:
            continue
        seen.add(coordinate)
        ordered.append(coordinate)
    return ordered


def select_location(
    coordinates: Iterable[Optional[GeoCoordinate]],
    device_location: Optional[GeoCoordinate] = None,
    job_address: Optional[str] = None,
) -> BatchLocationResult:
    """Pick the address or coordinate that represents the whole batch.

    The rules are applied in order and the first one that matches wins:

    1. a non-empty *job_address* is returned as is;
    2. without any photo coordinate the result is empty and the caller falls
       back to the device's live location;
    3. with exactly two distinct coordinates and a known *device_location*,
       the first coordinate is used when both lie more than 500 m from the
       device, otherwise the one farther from the device. The nearer point is
       taken to be where the technician stands and the farther one the
       property being documented;
    4. with three or more distinct coordinates the centroid of the largest
       100 m cluster is used;
    5. otherwise the first coordinate.
    """

    if job_address is not None and job_address.strip():
        _LOGGER.debug("Using job address %r", job_address)
        return BatchLocationResult(address=job_address)

    valid = [coordinate for coordinate in coordinates if coordinate is not None]
    if not valid:
        _LOGGER.debug("No photo coordinates in batch; deferring to device location")
        return BatchLocationResult()

    distinct = _distinct(valid)

    if len(distinct) == 2 and device_location is not None:
        first, second = distinct
        first_distance = haversine_m(device_location, first)
        second_distance = haversine_m(device_location, second)
        if first_distance > PAIR_FAR_THRESHOLD_M and second_distance > PAIR_FAR_THRESHOLD_M:
            _LOGGER.debug("Both coordinates are far from the device; using the first")
            return BatchLocationResult(coordinate=first)
        chosen = first if first_distance > second_distance else second
        _LOGGER.debug(
            "Selected coordinate %.0fm from the device", max(first_distance, second_distance)
        )
        return BatchLocationResult(coordinate=chosen)

    if len(distinct) >= 3:
        biggest = largest_cluster(cluster(valid, CLUSTER_THRESHOLD_M))
        _LOGGER.debug("Using centroid of largest cluster (%d photos)", len(biggest))
        return BatchLocationResult(coordinate=centroid(biggest))

    return BatchLocationResult(coordinate=valid[0])


__all__ = ["select_location"]
