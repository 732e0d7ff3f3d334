"""Default configuration values for siteloc."""

from __future__ import annotations

from pathlib import Path
from typing import Final

# ---------------------------------------------------------------------------
# Spatial cache
# ---------------------------------------------------------------------------

CACHE_LOOKUP_RADIUS_M: Final[float] = 30.0
CACHE_KEY_PRECISION: Final[int] = 5
CACHE_KEY_PREFIX: Final[str] = "geocache_"
CACHE_FILE_NAME: Final[str] = "geocache.json"
WORK_DIR_NAME: Final[str] = ".siteloc"
LOCK_EXPIRE_SEC: Final[int] = 30
CACHE_WRITE_LOCK_TIMEOUT_SEC: Final[float] = 2.0

# ---------------------------------------------------------------------------
# Batch location selection
# ---------------------------------------------------------------------------

CLUSTER_THRESHOLD_M: Final[float] = 100.0
PAIR_FAR_THRESHOLD_M: Final[float] = 500.0

# ---------------------------------------------------------------------------
# Reverse geocoding
# ---------------------------------------------------------------------------

GEOCODE_INTERVAL_SEC: Final[float] = 5.0
GEOCODE_DISTANCE_THRESHOLD_M: Final[float] = 100.0
GEOCODE_TIMEOUT_SEC: Final[float] = 5.0
GEOCODER_USER_AGENT: Final[str] = "siteloc/0.1"
GEOCODER_LANGUAGE: Final[str] = "en"

# ---------------------------------------------------------------------------
# Metadata and labels
# ---------------------------------------------------------------------------

EXIF_DATETIME_FORMAT: Final[str] = "%Y:%m:%d %H:%M:%S"
LABEL_COORDINATE_DECIMALS: Final[int] = 6
LABEL_PENDING_TEXT: Final[str] = "Getting location..."

# Mean earth radius used by the haversine helper.
EARTH_RADIUS_M: Final[float] = 6_371_008.8

SCHEMA_DIR: Final[Path] = Path(__file__).resolve().parent / "schemas"
