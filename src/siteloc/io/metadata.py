"""Read GPS position and capture time embedded in image bytes."""

from __future__ import annotations

import io
import logging
import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Tuple

from dateutil.tz import gettz
from PIL import Image, UnidentifiedImageError

from ..config import EXIF_DATETIME_FORMAT
from ..errors import InvalidCoordinateError, MetadataDecodeError
from ..models.types import GeoCoordinate

try:  # pragma: no cover - pillow-heif optional
    from pillow_heif import register_heif_opener
except ImportError:  # pragma: no cover - pillow-heif not installed
    pass
else:  # pragma: no cover - depends on optional package
    register_heif_opener()

_LOGGER = logging.getLogger(__name__)

EXIF_IFD_POINTER = 0x8769
GPS_IFD_POINTER = 0x8825

TAG_DATETIME = 306
TAG_DATETIME_ORIGINAL = 36867

GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4

ExtractedMetadata = Tuple[Optional[GeoCoordinate], Optional[datetime]]


def _sub_ifd(exif: Any, pointer: int) -> Mapping[Any, Any]:
    """Return the nested IFD behind *pointer* from a Pillow ``Exif`` or plain mapping."""

    block: Any = None
    get_ifd = getattr(exif, "get_ifd", None)
    if callable(get_ifd):
        try:
            block = get_ifd(pointer)
        except (KeyError, ValueError, OSError):
            block = None
    if not block:
        block = exif.get(pointer)
    return block if isinstance(block, Mapping) else {}


def _lookup(block: Mapping[Any, Any], tag: int, name: str) -> Any:
    value = block.get(tag)
    if value is None:
        value = block.get(name)
    return value


def _rational(value: Any) -> float:
    if isinstance(value, tuple) and len(value) == 2:
        numerator, denominator = value
        if not denominator:
            raise MetadataDecodeError(f"Zero denominator in rational {value!r}")
        result = float(numerator) / float(denominator)
    else:
        try:
            result = float(value)
        except (TypeError, ValueError) as exc:
            raise MetadataDecodeError(f"Not a number: {value!r}") from exc
    if not math.isfinite(result):
        raise MetadataDecodeError(f"Non-finite rational {value!r}")
    return result


def _to_degrees(value: Any) -> float:
    """Convert a degree/minute/second triple or a decimal into degrees."""

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _rational(value)
    if isinstance(value, str):
        return _rational(value.strip())
    if isinstance(value, (tuple, list)) and len(value) == 3:
        degrees, minutes, seconds = (_rational(part) for part in value)
        return degrees + minutes / 60.0 + seconds / 3600.0
    raise MetadataDecodeError(f"Unsupported GPS value {value!r}")


def _reference(value: Any) -> str:
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return ""
    return value.strip("\x00 ").upper()


def read_gps(exif: Any) -> Optional[GeoCoordinate]:
    """Return the signed GPS position stored in *exif*, or ``None`` when absent.

    Raises :class:`MetadataDecodeError` when the tags exist but are malformed.
    """

    gps = _sub_ifd(exif, GPS_IFD_POINTER)
    if not gps:
        return None

    raw_lat = _lookup(gps, GPS_LATITUDE, "GPSLatitude")
    raw_lon = _lookup(gps, GPS_LONGITUDE, "GPSLongitude")
    if raw_lat is None or raw_lon is None:
        return None

    lat = _to_degrees(raw_lat)
    lon = _to_degrees(raw_lon)
    if _reference(_lookup(gps, GPS_LATITUDE_REF, "GPSLatitudeRef")) == "S":
        lat = -lat
    if _reference(_lookup(gps, GPS_LONGITUDE_REF, "GPSLongitudeRef")) == "W":
        lon = -lon

    try:
        return GeoCoordinate(lat, lon)
    except InvalidCoordinateError as exc:
        raise MetadataDecodeError(str(exc)) from exc


def _parse_exif_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None
    text = value.strip("\x00 ")
    if not text:
        return None
    try:
        naive = datetime.strptime(text, EXIF_DATETIME_FORMAT)
    except ValueError as exc:
        raise MetadataDecodeError(f"Malformed EXIF date {text!r}") from exc
    local_tz = gettz() or datetime.now().astimezone().tzinfo or timezone.utc
    return naive.replace(tzinfo=local_tz)


def read_timestamp(exif: Any) -> Optional[datetime]:
    """Return the capture time in local time.

    ``DateTimeOriginal`` is preferred; ``DateTime`` from the primary IFD is the
    fallback when the original capture time is missing or unreadable.
    """

    exif_ifd = _sub_ifd(exif, EXIF_IFD_POINTER)
    original = exif_ifd.get(TAG_DATETIME_ORIGINAL) or exif.get(TAG_DATETIME_ORIGINAL)
    try:
        parsed = _parse_exif_datetime(original)
    except MetadataDecodeError as exc:
        _LOGGER.debug("Ignoring DateTimeOriginal: %s", exc)
        parsed = None
    if parsed is not None:
        return parsed
    return _parse_exif_datetime(exif.get(TAG_DATETIME))


def extract_metadata(data: bytes) -> ExtractedMetadata:
    """Return ``(coordinate, timestamp)`` decoded from image *data*.

    Every failure is contained: an unreadable image yields ``(None, None)``
    and a malformed tag only clears its own field. The function keeps no
    state and may run on many threads at once.
    """

    if not data:
        return None, None

    try:
        with Image.open(io.BytesIO(data)) as image:
            exif = image.getexif()
            coordinate = _guarded(read_gps, exif, "GPS position")
            timestamp = _guarded(read_timestamp, exif, "capture time")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as exc:
        _LOGGER.debug("Unable to read image metadata: %s", exc)
        return None, None

    if coordinate is not None:
        _LOGGER.debug("Extracted EXIF GPS %s", coordinate)
    return coordinate, timestamp


def _guarded(reader: Any, exif: Any, what: str) -> Any:
    try:
        return reader(exif)
    except MetadataDecodeError as exc:
        _LOGGER.debug("Unable to decode %s: %s", what, exc)
        return None


__all__ = ["extract_metadata", "read_gps", "read_timestamp"]
