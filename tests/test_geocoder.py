from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from conftest import FakeBackend, FakeClock
from siteloc.cache import JsonFileKeyValueStore, SpatialCache
from siteloc.cache.lock import FileLock
from siteloc.core.geocoder import GeocoderSettings, ThrottledGeocoder
from siteloc.errors import GeocodeNetworkError, GeocodeTimeoutError
from siteloc.models.types import GeoCoordinate

SITE = GeoCoordinate(37.7749, -122.4194)
NEIGHBOUR = GeoCoordinate(37.7752, -122.4194)  # ~33 m north
ACROSS_TOWN = GeoCoordinate(37.8044, -122.2712)


def _geocoder(backend: FakeBackend, clock: FakeClock, cache: SpatialCache | None = None, **settings: float) -> ThrottledGeocoder:
    return ThrottledGeocoder(backend, cache if cache is not None else SpatialCache(), GeocoderSettings(**settings), clock=clock)


def test_successful_lookup_writes_through_to_cache(backend: FakeBackend, clock: FakeClock) -> None:
    cache = SpatialCache()
    geocoder = _geocoder(backend, clock, cache)

    address = asyncio.run(geocoder.resolve(SITE))

    assert address == backend.address
    assert cache.lookup(SITE) == backend.address
    assert geocoder.last_address == backend.address


def test_cache_hit_skips_the_network(backend: FakeBackend, clock: FakeClock) -> None:
    cache = SpatialCache()
    cache.store(SITE, "742 Evergreen Terrace")
    geocoder = _geocoder(backend, clock, cache)

    assert asyncio.run(geocoder.resolve(NEIGHBOUR)) == "742 Evergreen Terrace"
    assert backend.calls == []


def test_nearby_request_four_seconds_later_reuses_first_result(backend: FakeBackend, clock: FakeClock) -> None:
    geocoder = _geocoder(backend, clock)

    async def scenario() -> tuple[str | None, str | None]:
        first = await geocoder.resolve(SITE)
        clock.advance(4.0)
        second = await geocoder.resolve(GeoCoordinate(SITE.latitude + 0.0005, SITE.longitude))
        return first, second

    first, second = asyncio.run(scenario())

    assert first == second == backend.address
    assert len(backend.calls) == 1


def test_time_throttle_applies_regardless_of_distance(backend: FakeBackend, clock: FakeClock) -> None:
    geocoder = _geocoder(backend, clock)

    async def scenario() -> str | None:
        await geocoder.resolve(SITE)
        clock.advance(4.9)
        return await geocoder.resolve(ACROSS_TOWN)

    assert asyncio.run(scenario()) == backend.address
    assert backend.calls == [SITE]


def test_distance_throttle_applies_after_interval(backend: FakeBackend, clock: FakeClock) -> None:
    geocoder = _geocoder(backend, clock, cache_radius_m=0.0)

    async def scenario() -> None:
        await geocoder.resolve(SITE)
        clock.advance(60.0)
        await geocoder.resolve(GeoCoordinate(SITE.latitude + 0.0008, SITE.longitude))  # ~89 m
        clock.advance(60.0)
        await geocoder.resolve(ACROSS_TOWN)

    asyncio.run(scenario())

    assert backend.calls == [SITE, ACROSS_TOWN]


def test_timeout_yields_nothing_and_writes_nothing(clock: FakeClock) -> None:
    backend = FakeBackend(hang_calls={0})
    cache = SpatialCache()
    geocoder = _geocoder(backend, clock, cache, timeout_sec=0.01)

    assert asyncio.run(geocoder.resolve(SITE)) is None
    assert len(cache) == 0
    assert backend.cancelled == 1
    assert not geocoder.in_flight


def test_timeout_is_raised_by_resolve_or_raise(clock: FakeClock) -> None:
    geocoder = _geocoder(FakeBackend(hang_calls={0}), clock, timeout_sec=0.01)

    with pytest.raises(GeocodeTimeoutError):
        asyncio.run(geocoder.resolve_or_raise(SITE))


def test_failure_does_not_throttle_the_retry(clock: FakeClock) -> None:
    backend = FakeBackend(fail_calls={0})
    geocoder = _geocoder(backend, clock)

    async def scenario() -> tuple[str | None, str | None]:
        first = await geocoder.resolve(SITE)
        clock.advance(1.0)
        second = await geocoder.resolve(SITE)
        return first, second

    first, second = asyncio.run(scenario())

    assert first is None
    assert second == backend.address
    assert len(backend.calls) == 2


def test_backend_errors_surface_as_network_errors(clock: FakeClock) -> None:
    geocoder = _geocoder(FakeBackend(fail_calls={0}, error=OSError("connection reset")), clock)

    with pytest.raises(GeocodeNetworkError):
        asyncio.run(geocoder.resolve_or_raise(SITE))


def test_empty_answer_counts_as_failure(clock: FakeClock) -> None:
    cache = SpatialCache()
    geocoder = _geocoder(FakeBackend(address="   "), clock, cache)

    assert asyncio.run(geocoder.resolve(SITE)) is None
    assert len(cache) == 0


def test_new_request_cancels_the_one_in_flight(clock: FakeClock) -> None:
    backend = FakeBackend(hang_calls={0})
    geocoder = _geocoder(backend, clock)

    async def scenario() -> tuple[str | None, str | None]:
        stuck = asyncio.ensure_future(geocoder.resolve(SITE))
        await asyncio.sleep(0.01)
        assert geocoder.in_flight
        clock.advance(10.0)
        fresh = await geocoder.resolve(ACROSS_TOWN)
        return await stuck, fresh

    stuck, fresh = asyncio.run(scenario())

    assert stuck is None
    assert fresh == backend.address
    assert backend.cancelled == 1


def test_aclose_cancels_pending_request_and_timer(clock: FakeClock) -> None:
    backend = FakeBackend(hang_calls={0})
    geocoder = _geocoder(backend, clock)

    async def scenario() -> str | None:
        pending = asyncio.ensure_future(geocoder.resolve(SITE))
        await asyncio.sleep(0.01)
        await geocoder.aclose()
        return await pending

    assert asyncio.run(scenario()) is None
    assert backend.cancelled == 1
    assert not geocoder.in_flight


def test_cancelling_the_caller_cancels_the_request(clock: FakeClock) -> None:
    backend = FakeBackend(hang_calls={0})
    geocoder = _geocoder(backend, clock)

    async def scenario() -> None:
        pending = asyncio.ensure_future(geocoder.resolve(SITE))
        await asyncio.sleep(0.01)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

    asyncio.run(scenario())

    assert backend.cancelled == 1
    assert not geocoder.in_flight
    # The torn-down request does not hold back the next one.
    assert asyncio.run(geocoder.resolve(SITE)) == backend.address


def test_cache_hit_moves_the_distance_anchor(backend: FakeBackend, clock: FakeClock) -> None:
    cache = SpatialCache()
    cache.store(ACROSS_TOWN, "9 Harbor View")
    geocoder = _geocoder(backend, clock, cache)

    async def scenario() -> tuple[str | None, str | None, str | None]:
        first = await geocoder.resolve(SITE)
        clock.advance(6.0)
        hit = await geocoder.resolve(ACROSS_TOWN)
        clock.advance(6.0)
        back = await geocoder.resolve(NEIGHBOUR)
        return first, hit, back

    first, hit, back = asyncio.run(scenario())

    assert first == backend.address
    assert hit == "9 Harbor View"
    assert back == backend.address
    assert backend.calls == [SITE, NEIGHBOUR]


def test_locked_cache_file_does_not_stall_the_event_loop(tmp_path: Path, backend: FakeBackend, clock: FakeClock) -> None:
    path = tmp_path / "geocache.json"
    holder = FileLock(path)
    holder.acquire()
    geocoder = _geocoder(backend, clock, SpatialCache(JsonFileKeyValueStore(path, lock_timeout=0.5)))
    ticks = 0

    async def pulse() -> None:
        nonlocal ticks
        while True:
            await asyncio.sleep(0.01)
            ticks += 1

    async def scenario() -> str | None:
        heartbeat = asyncio.ensure_future(pulse())
        try:
            return await geocoder.resolve(SITE)
        finally:
            heartbeat.cancel()

    try:
        address = asyncio.run(scenario())
    finally:
        holder.release()

    assert address == backend.address
    assert ticks >= 10
    assert not path.exists()
