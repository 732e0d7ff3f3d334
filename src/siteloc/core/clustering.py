"""Greedy proximity clustering of photo coordinates."""

from __future__ import annotations

from typing import List, Sequence

from ..models.types import GeoCoordinate
from .geodesy import haversine_m


def cluster(coordinates: Sequence[GeoCoordinate], threshold_m: float) -> List[List[GeoCoordinate]]:
    """Group *coordinates* around seeds in a single greedy pass.

    The first remaining coordinate becomes the seed of a new cluster and every
    other remaining coordinate within *threshold_m* of that seed joins it.
    Distances are only measured against the seed, never against members added
    later, so the grouping depends on input order. Every input coordinate ends
    up in exactly one cluster.
    """

    clusters: List[List[GeoCoordinate]] = []
    remaining = list(coordinates)
    while remaining:
        seed = remaining.pop(0)
        members = [seed]
        leftover: List[GeoCoordinate] = []
        for candidate in remaining:
            if haversine_m(seed, candidate) <= threshold_m:
                members.append(candidate)
            else:
                leftover.append(candidate)
        remaining = leftover
        clusters.append(members)
    return clusters


def centroid(coordinates: Sequence[GeoCoordinate]) -> GeoCoordinate:
    """Return the arithmetic mean of latitudes and longitudes."""

    if not coordinates:
        raise ValueError("centroid() requires at least one coordinate")
    count = len(coordinates)
    lat = sum(coordinate.latitude for coordinate in coordinates) / count
    lon = sum(coordinate.longitude for coordinate in coordinates) / count
    return GeoCoordinate(lat, lon)


def largest_cluster(clusters: Sequence[List[GeoCoordinate]]) -> List[GeoCoordinate]:
    """Return the cluster with the most members, preferring the earliest on ties."""

    if not clusters:
        raise ValueError("largest_cluster() requires at least one cluster")
    best = clusters[0]
    for candidate in clusters[1:]:
        if len(candidate) > len(best):
            best = candidate
    return best


__all__ = ["centroid", "cluster", "largest_cluster"]
