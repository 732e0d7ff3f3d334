"""Human readable location labels for photos."""

from __future__ import annotations

from typing import Optional

from ..config import LABEL_COORDINATE_DECIMALS, LABEL_PENDING_TEXT
from ..models.types import GeoCoordinate


def format_coordinate(coordinate: GeoCoordinate, decimals: int = LABEL_COORDINATE_DECIMALS) -> str:
    return f"{coordinate.latitude:.{decimals}f}, {coordinate.longitude:.{decimals}f}"


def format_location_label(
    address: Optional[str],
    coordinate: Optional[GeoCoordinate],
    *,
    error: Optional[str] = None,
) -> str:
    """Return the text shown next to a photo.

    A resolved address wins; otherwise the raw coordinate is shown so the
    photo still carries a usable position. Without either, the last location
    error or a pending message is returned.
    """

    if address and address.strip():
        return address.strip()
    if coordinate is not None:
        return format_coordinate(coordinate)
    if error:
        return error
    return LABEL_PENDING_TEXT


__all__ = ["format_coordinate", "format_location_label"]
