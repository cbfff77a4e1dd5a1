"""An advertisement watcher backed by bleak."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak_retry_connector import NO_RSSI_VALUE
from bluetooth_data_tools import monotonic_time_coarse

from .const import (
    SCANNER_WATCHDOG_INTERVAL_SECONDS,
    SCANNER_WATCHDOG_TIMEOUT,
    WATCHER_COMMAND_TIMEOUT,
)
from .exceptions import WatcherStartError, WatcherStopError
from .util import bluetooth_address_to_int
from .watcher import AdvertisementEvent, AdvertisementWatcher, WatcherStatus

_LOGGER = logging.getLogger(__name__)


class BleakAdvertisementWatcher(AdvertisementWatcher):
    """
    Watch advertisements with a BleakScanner.

    Bleak is asyncio based, so the watcher runs a private event loop
    on a daemon thread and the blocking start and stop methods hand
    their work to it. A watchdog stops the scanner and reports it
    aborted when nothing has been heard for watchdog_timeout seconds.
    """

    __slots__ = (
        "_adapter",
        "_background_tasks",
        "_cancel_watchdog",
        "_last_detection",
        "_loop",
        "_scanner",
        "_scanning_mode",
        "_status",
        "_thread",
        "_watchdog_timeout",
        "name",
    )

    def __init__(
        self,
        adapter: str | None = None,
        scanning_mode: Literal["active", "passive"] = "active",
        watchdog_timeout: float = SCANNER_WATCHDOG_TIMEOUT,
    ) -> None:
        """Initialize the watcher."""
        super().__init__()
        self._adapter = adapter
        self._scanning_mode = scanning_mode
        self._watchdog_timeout = watchdog_timeout
        self.name = adapter or "default adapter"
        self._status = WatcherStatus.CREATED
        self._scanner: BleakScanner | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._cancel_watchdog: asyncio.TimerHandle | None = None
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._last_detection = 0.0

    def status(self) -> WatcherStatus:
        return self._status

    def start(self) -> None:
        """Start scanning, raise WatcherStartError on failure."""
        try:
            self._run_in_loop(self._async_start())
        except WatcherStartError:
            raise
        except Exception as ex:
            raise WatcherStartError(
                f"{self.name}: Starting scanner failed: {ex}"
            ) from ex

    def stop(self) -> None:
        """Stop scanning, raise WatcherStopError on failure."""
        if self._loop is None:
            return
        try:
            self._run_in_loop(self._async_stop_and_notify())
        except Exception as ex:
            raise WatcherStopError(
                f"{self.name}: Stopping scanner failed: {ex}"
            ) from ex

    def close(self) -> None:
        """Stop the event loop thread."""
        if (loop := self._loop) is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if self._thread is not None:
            self._thread.join(WATCHER_COMMAND_TIMEOUT)
        self._thread = None
        self._loop = None

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        """Start the event loop thread if it is not running."""
        if self._loop is None:
            loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(loop,),
                name=f"podwatch-{self.name}",
                daemon=True,
            )
            self._loop = loop
            self._thread.start()
        return self._loop

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            loop.close()

    def _run_in_loop(self, coro: Coroutine[Any, Any, Any]) -> None:
        """
        Run a coroutine on the watcher loop and wait for it to finish.

        Handlers run on the loop thread, so a start or stop issued from
        a handler cannot wait for the loop. It is scheduled as a task
        instead and its errors are logged.
        """
        loop = self._ensure_loop()
        if threading.current_thread() is self._thread:
            task = loop.create_task(self._async_run_logged(coro))
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)
            return
        asyncio.run_coroutine_threadsafe(coro, loop).result(WATCHER_COMMAND_TIMEOUT)

    async def _async_run_logged(self, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            await coro
        except Exception:  # pylint: disable=broad-except
            _LOGGER.exception("%s: Error running scanner command", self.name)

    def _dispatch_stopped(self, status: WatcherStatus) -> None:
        """
        Call the stopped handlers on their own thread.

        Handlers may block for a long time, for example while waiting
        to restart, and must not hold up the event loop or the caller.
        """
        threading.Thread(
            target=self._fire_stopped,
            args=(status,),
            name=f"podwatch-{self.name}-stopped",
            daemon=True,
        ).start()

    async def _async_start(self) -> None:
        """Create and start the bleak scanner."""
        if self._status is WatcherStatus.STARTED:
            return
        kwargs: dict[str, Any] = {}
        if self._adapter:
            kwargs["adapter"] = self._adapter
        scanner = BleakScanner(
            detection_callback=self._async_on_detection,
            scanning_mode=self._scanning_mode,
            **kwargs,
        )
        try:
            await scanner.start()
        except Exception as ex:
            _LOGGER.debug("%s: Bleak scanner failed to start", self.name, exc_info=True)
            raise WatcherStartError(
                f"{self.name}: Starting scanner failed: {ex}"
            ) from ex
        self._scanner = scanner
        self._status = WatcherStatus.STARTED
        self._async_setup_scanner_watchdog()
        _LOGGER.debug("%s: Bleak scanner started", self.name)

    async def _async_stop(self, status: WatcherStatus) -> bool:
        """Stop the bleak scanner, return if it was running."""
        self._async_stop_scanner_watchdog()
        if (scanner := self._scanner) is None:
            return False
        self._scanner = None
        self._status = WatcherStatus.STOPPING
        try:
            await scanner.stop()
        finally:
            self._status = status
        _LOGGER.debug("%s: Bleak scanner stopped (%s)", self.name, status.value)
        return True

    async def _async_stop_and_notify(self) -> None:
        if await self._async_stop(WatcherStatus.STOPPED):
            self._dispatch_stopped(WatcherStatus.STOPPED)

    def _async_on_detection(
        self, device: BLEDevice, advertisement_data: AdvertisementData
    ) -> None:
        """Convert a bleak detection into an advertisement event."""
        self._last_detection = monotonic_time_coarse()
        if not advertisement_data.manufacturer_data:
            return
        try:
            address = bluetooth_address_to_int(device.address)
        except ValueError:
            _LOGGER.debug("%s: Skipping device %s", self.name, device.address)
            return
        rssi = advertisement_data.rssi
        self._fire_advertisement(
            AdvertisementEvent(
                address,
                NO_RSSI_VALUE if rssi is None else rssi,
                datetime.now(UTC),
                dict(advertisement_data.manufacturer_data),
            )
        )

    def _async_setup_scanner_watchdog(self) -> None:
        """Start watching for the scanner going quiet."""
        self._last_detection = monotonic_time_coarse()
        if not self._cancel_watchdog:
            self._schedule_watchdog()

    def _async_stop_scanner_watchdog(self) -> None:
        if self._cancel_watchdog:
            self._cancel_watchdog.cancel()
            self._cancel_watchdog = None

    def _schedule_watchdog(self) -> None:
        """Schedule the next scanner watchdog check."""
        loop = self._loop
        if TYPE_CHECKING:
            assert loop is not None
        self._cancel_watchdog = loop.call_at(
            loop.time() + SCANNER_WATCHDOG_INTERVAL_SECONDS,
            self._async_call_scanner_watchdog,
        )

    def _async_call_scanner_watchdog(self) -> None:
        """Call the scanner watchdog and schedule the next one."""
        self._cancel_watchdog = None
        if self._async_watchdog_triggered():
            self._loop.create_task(self._async_abort())  # type: ignore[union-attr]
            return
        self._schedule_watchdog()

    def _async_watchdog_triggered(self) -> bool:
        """Check if the watchdog has been triggered."""
        time_since_last_detection = monotonic_time_coarse() - self._last_detection
        _LOGGER.debug(
            "%s: Scanner watchdog time_since_last_detection: %s",
            self.name,
            time_since_last_detection,
        )
        return time_since_last_detection > self._watchdog_timeout

    async def _async_abort(self) -> None:
        """Stop a scanner that has gone quiet and report it aborted."""
        _LOGGER.warning(
            "%s: Bluetooth scanner has gone quiet for %ss, stopping it",
            self.name,
            self._watchdog_timeout,
        )
        try:
            stopped = await self._async_stop(WatcherStatus.ABORTED)
        except Exception:  # pylint: disable=broad-except
            _LOGGER.exception("%s: Error stopping quiet scanner", self.name)
            self._status = WatcherStatus.ABORTED
            stopped = True
        if stopped:
            self._dispatch_stopped(WatcherStatus.ABORTED)
