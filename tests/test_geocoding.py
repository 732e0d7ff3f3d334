from __future__ import annotations

import asyncio

import pytest
from geopy.exc import GeocoderUnavailable

from siteloc.errors import GeocodeNetworkError
from siteloc.models.types import GeoCoordinate
from siteloc.utils import geocoding
from siteloc.utils.geocoding import GeopyReverseGeocoder, OfflineReverseGeocoder, format_address


class DummyLocation:
    def __init__(self, address: dict[str, str], label: str = "") -> None:
        self.raw = {"address": address}
        self.address = label or ", ".join(address.values())


class DummyGeolocator:
    def __init__(self, location: DummyLocation | None) -> None:
        self._location = location
        self.calls: list[tuple[tuple[float, float], bool, str]] = []

    def reverse(self, coords: tuple[float, float], exactly_one: bool = True, language: str = "en"):
        self.calls.append((coords, exactly_one, language))
        return self._location


def test_geopy_backend_formats_street_address() -> None:
    geolocator = DummyGeolocator(
        DummyLocation(
            {
                "house_number": "221B",
                "road": "Baker Street",
                "suburb": "Marylebone",
                "city": "London",
                "state": "England",
                "postcode": "NW1 6XE",
            }
        )
    )
    backend = GeopyReverseGeocoder(geolocator)

    address = asyncio.run(backend.reverse(GeoCoordinate(51.5238, -0.1586)))

    assert address == "221B Baker Street London England"
    assert geolocator.calls == [((51.5238, -0.1586), True, "en")]


def test_geopy_backend_falls_back_to_display_name() -> None:
    geolocator = DummyGeolocator(DummyLocation({"country": "Antarctica"}, label="Ross Ice Shelf, Antarctica"))

    address = asyncio.run(GeopyReverseGeocoder(geolocator).reverse(GeoCoordinate(-81.5, -175.0)))

    assert address == "Ross Ice Shelf, Antarctica"


def test_geopy_backend_without_result_raises() -> None:
    backend = GeopyReverseGeocoder(DummyGeolocator(None))

    with pytest.raises(GeocodeNetworkError):
        asyncio.run(backend.reverse(GeoCoordinate(0.0, 0.0)))


def test_geopy_backend_wraps_service_errors() -> None:
    class FailingGeolocator:
        def reverse(self, *args, **kwargs):  # noqa: ANN002, ANN003 - signature mirrors geopy
            raise GeocoderUnavailable("network unavailable")

    with pytest.raises(GeocodeNetworkError):
        asyncio.run(GeopyReverseGeocoder(FailingGeolocator()).reverse(GeoCoordinate(10.0, 20.0)))


def test_format_address_uses_first_available_locality() -> None:
    assert format_address({"road": "Main St", "village": "Smallville", "state": "Kansas"}) == "Main St Smallville Kansas"
    assert format_address({"postcode": "12345"}) is None


def test_offline_backend_joins_place_and_region(monkeypatch: pytest.MonkeyPatch) -> None:
    class DummyDataset:
        def query(self, coordinates):
            assert coordinates == [(48.8566, 2.3522)]
            return [{"name": "Paris", "admin1": "Ile-de-France", "admin2": "Paris", "cc": "FR"}]

    monkeypatch.setattr(geocoding, "_offline_dataset", lambda: DummyDataset())

    address = asyncio.run(OfflineReverseGeocoder().reverse(GeoCoordinate(48.8566, 2.3522)))

    assert address == "Paris, Ile-de-France"


def test_offline_backend_without_match_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    class EmptyDataset:
        def query(self, coordinates):
            return []

    monkeypatch.setattr(geocoding, "_offline_dataset", lambda: EmptyDataset())

    with pytest.raises(GeocodeNetworkError):
        asyncio.run(OfflineReverseGeocoder().reverse(GeoCoordinate(0.0, 0.0)))
