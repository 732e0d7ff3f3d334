"""Live device location: shared state, sources and the address tracker."""

from __future__ import annotations

import abc
import asyncio
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import AsyncIterator, Callable, Optional, Union

from .core.geocoder import ThrottledGeocoder
from .core.labels import format_location_label
from .models.types import GeoCoordinate

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocationSnapshot:
    coordinate: Optional[GeoCoordinate]
    updated_at: Optional[float]
    address: Optional[str]
    error: Optional[str]


class LocationState:
    """The device's current location with last-write-wins semantics.

    A single writer (usually a :class:`LocationTracker`) feeds the state; any
    number of readers may take snapshots from other threads or tasks.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = Lock()
        self._coordinate: Optional[GeoCoordinate] = None
        self._updated_at: Optional[float] = None
        self._address: Optional[str] = None
        self._error: Optional[str] = None

    @property
    def current(self) -> Optional[GeoCoordinate]:
        with self._lock:
            return self._coordinate

    @property
    def address(self) -> Optional[str]:
        with self._lock:
            return self._address

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            return self._error

    def update(self, coordinate: GeoCoordinate) -> None:
        with self._lock:
            self._coordinate = coordinate
            self._updated_at = self._clock()
            # A fresh fix supersedes any earlier sensor error.
            self._error = None

    def set_address(self, address: Optional[str]) -> None:
        with self._lock:
            self._address = address

    def set_error(self, message: str) -> None:
        with self._lock:
            self._error = message

    def snapshot(self) -> LocationSnapshot:
        with self._lock:
            return LocationSnapshot(self._coordinate, self._updated_at, self._address, self._error)

    def label(self) -> str:
        """Return the live location text, falling back to raw coordinates."""

        snap = self.snapshot()
        return format_location_label(snap.address, snap.coordinate, error=snap.error)


@dataclass(frozen=True)
class LocationFailure:
    """A sensor error delivered through a location source."""

    message: str


LocationEvent = Union[GeoCoordinate, LocationFailure]


class LocationSource(abc.ABC):
    """Asynchronous stream of device location events."""

    @abc.abstractmethod
    def updates(self) -> AsyncIterator[LocationEvent]:
        """Yield coordinates (or failures) until the source is closed."""


class ChannelLocationSource(LocationSource):
    """Location source fed by a sensor driver through an in-process channel.

    The driver calls :meth:`push` for every fix and :meth:`fail` for sensor
    errors; :meth:`close` ends the stream. The methods are safe to call from
    the event loop thread; drivers living on other threads should go through
    :meth:`asyncio.AbstractEventLoop.call_soon_threadsafe`.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    def push(self, coordinate: GeoCoordinate) -> None:
        self._queue.put_nowait(coordinate)

    def fail(self, message: str) -> None:
        self._queue.put_nowait(LocationFailure(message))

    def close(self) -> None:
        self._queue.put_nowait(self._CLOSED)

    async def updates(self) -> AsyncIterator[LocationEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            if isinstance(item, (GeoCoordinate, LocationFailure)):
                yield item


class NullLocationSource(LocationSource):
    """Source that never reports a location, for hosts without a sensor."""

    async def updates(self) -> AsyncIterator[LocationEvent]:
        return
        yield  # pragma: no cover - makes this an async generator


def create_location_source(kind: str = "channel") -> LocationSource:
    """Return the location source implementation named by *kind*."""

    if kind == "channel":
        return ChannelLocationSource()
    if kind == "null":
        return NullLocationSource()
    raise ValueError(f"Unknown location source: {kind!r}")


class LocationTracker:
    """Pump a :class:`LocationSource` into a :class:`LocationState`.

    When a geocoder is supplied every fix also refreshes the live address; the
    geocoder's throttling keeps the request rate bounded while the device
    keeps reporting positions.
    """

    def __init__(
        self,
        source: LocationSource,
        state: Optional[LocationState] = None,
        geocoder: Optional[ThrottledGeocoder] = None,
    ) -> None:
        self.source = source
        self.state = state if state is not None else LocationState()
        self._geocoder = geocoder
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self.run())
        return self._task

    async def run(self) -> None:
        async for event in self.source.updates():
            if isinstance(event, LocationFailure):
                _LOGGER.warning("Location error: %s", event.message)
                self.state.set_error(f"Location error: {event.message}")
                continue
            _LOGGER.debug("Location updated: %s", event)
            self.state.update(event)
            if self._geocoder is not None:
                address = await self._geocoder.resolve(event)
                if address is not None:
                    self.state.set_address(address)

    async def stop(self) -> None:
        """Stop consuming updates and cancel any pending geocode."""

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._geocoder is not None:
            await self._geocoder.aclose()


__all__ = [
    "ChannelLocationSource",
    "LocationEvent",
    "LocationFailure",
    "LocationSnapshot",
    "LocationSource",
    "LocationState",
    "LocationTracker",
    "NullLocationSource",
    "create_location_source",
]
