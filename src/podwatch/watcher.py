"""The advertisement watcher capability the scanner is built on."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .const import CALLBACK_TYPE

_LOGGER = logging.getLogger(__name__)


class WatcherStatus(Enum):
    """The status reported by a watcher."""

    CREATED = "created"
    STARTED = "started"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class AdvertisementEvent:
    """A raw advertisement as delivered by a watcher."""

    address: int
    rssi: int
    timestamp: datetime
    manufacturer_data: dict[int, bytes]


AdvertisementHandler = Callable[[AdvertisementEvent], None]
StoppedHandler = Callable[[WatcherStatus], None]


class AdvertisementWatcher:
    """
    Base class for advertisement watchers.

    A watcher delivers advertisements and stop notifications from
    its own thread. Subclasses implement start, stop and status
    and call _fire_advertisement and _fire_stopped.
    """

    __slots__ = ("_advertisement_handlers", "_handlers_lock", "_stopped_handlers")

    def __init__(self) -> None:
        """Initialize the watcher."""
        self._handlers_lock = threading.Lock()
        self._advertisement_handlers: list[AdvertisementHandler] = []
        self._stopped_handlers: list[StoppedHandler] = []

    def start(self) -> None:
        """Start watching, raise on failure."""
        raise NotImplementedError

    def stop(self) -> None:
        """Stop watching, raise on failure."""
        raise NotImplementedError

    def status(self) -> WatcherStatus:
        """Return the current status."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any resources held by the watcher."""

    def on_advertisement(self, handler: AdvertisementHandler) -> CALLBACK_TYPE:
        """Register a handler for advertisements."""
        return self._add_handler(self._advertisement_handlers, handler)

    def on_stopped(self, handler: StoppedHandler) -> CALLBACK_TYPE:
        """Register a handler called whenever the watcher stops."""
        return self._add_handler(self._stopped_handlers, handler)

    def _add_handler(
        self, handlers: list[Callable[..., None]], handler: Callable[..., None]
    ) -> CALLBACK_TYPE:
        with self._handlers_lock:
            handlers.append(handler)

        def _remove_handler() -> None:
            with self._handlers_lock:
                if handler in handlers:
                    handlers.remove(handler)

        return _remove_handler

    def _fire_advertisement(self, event: AdvertisementEvent) -> None:
        """Call the advertisement handlers."""
        with self._handlers_lock:
            handlers = list(self._advertisement_handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception:  # pylint: disable=broad-except
                _LOGGER.exception("Error in callback: %s", handler)

    def _fire_stopped(self, status: WatcherStatus) -> None:
        """Call the stopped handlers."""
        with self._handlers_lock:
            handlers = list(self._stopped_handlers)
        for handler in handlers:
            try:
                handler(status)
            except Exception:  # pylint: disable=broad-except
                _LOGGER.exception("Error in callback: %s", handler)
