import asyncio
import io
import struct
import sys
import zlib
from fractions import Fraction
from pathlib import Path
from typing import Iterable, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

# Allow running the suite from a checkout without installing the package.
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from siteloc.models.types import GeoCoordinate  # noqa: E402


def _to_dms(value: float) -> tuple[Fraction, Fraction, Fraction]:
    absolute = abs(value)
    degrees = int(absolute)
    minutes_float = (absolute - degrees) * 60
    minutes = int(minutes_float)
    seconds = (minutes_float - minutes) * 60
    return (
        Fraction(degrees, 1),
        Fraction(minutes, 1),
        Fraction(seconds).limit_denominator(1_000_000),
    )


def make_jpeg(
    gps: tuple[float, float] | None = None,
    original: str | None = None,
    fallback: str | None = None,
) -> bytes:
    """Return JPEG bytes carrying the requested EXIF GPS and date fields."""

    image_module = pytest.importorskip("PIL.Image", reason="Pillow is required to generate test images")
    exif = image_module.Exif()
    if original is not None:
        exif[36867] = original  # DateTimeOriginal
    if fallback is not None:
        exif[306] = fallback  # DateTime
    if gps is not None:
        lat, lon = gps
        exif[34853] = {
            1: "N" if lat >= 0 else "S",
            2: _to_dms(lat),
            3: "E" if lon >= 0 else "W",
            4: _to_dms(lon),
        }
    image = image_module.new("RGB", (8, 8), color="white")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", exif=exif)
    return buffer.getvalue()


def _png_chunk(kind: bytes, payload: bytes) -> bytes:
    body = kind + payload
    return struct.pack(">I", len(payload)) + body + struct.pack(">I", zlib.crc32(body) & 0xFFFFFFFF)


def make_oversized_png(width: int = 60000, height: int = 60000) -> bytes:
    """Return a tiny PNG whose header claims far more pixels than Pillow accepts."""

    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", zlib.compress(b"\x00"))
        + _png_chunk(b"IEND", b"")
    )


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """Reverse geocoder double recording calls.

    ``hang_calls`` lists call indexes that never answer until cancelled and
    ``fail_calls`` those that raise ``error``.
    """

    def __init__(
        self,
        address: str = "1 Test Rd Springfield IL",
        *,
        hang_calls: Iterable[int] = (),
        fail_calls: Iterable[int] = (),
        error: Optional[Exception] = None,
    ) -> None:
        self.address = address
        self.hang_calls = set(hang_calls)
        self.fail_calls = set(fail_calls)
        self.error = error or RuntimeError("service unavailable")
        self.calls: list[GeoCoordinate] = []
        self.cancelled = 0

    async def reverse(self, coordinate: GeoCoordinate) -> str:
        index = len(self.calls)
        self.calls.append(coordinate)
        if index in self.hang_calls:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if index in self.fail_calls:
            raise self.error
        return self.address


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
