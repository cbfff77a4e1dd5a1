"""A self healing AirPods advertisement scanner."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from types import TracebackType
from typing import Any, Final

from bluetooth_data_tools import monotonic_time_coarse

from .const import (
    APPLE_MFR_ID,
    CALLBACK_TYPE,
    DESTROY_TIMEOUT_SECONDS,
    RETRY_INTERVAL_SECONDS,
)
from .models import DeviceRecord, RecordPolicy, ScanState
from .parser import ProtocolParser, ProximityPairingParser
from .watcher import AdvertisementEvent, AdvertisementWatcher, WatcherStatus

_LOGGER = logging.getLogger(__name__)

DeviceCallback = Callable[[DeviceRecord], None]

# States in which a stop notification from the watcher is unexpected
# and the watcher has to be brought back
_RESTART_STATES: Final = frozenset({ScanState.RUNNING, ScanState.STARTING})
_CLOSED_STATES: Final = frozenset({ScanState.DESTROYING, ScanState.DESTROYED})

_int = int


class AirPodsScanner:
    """
    Collect AirPods advertisements from a watcher.

    The scanner owns the watcher and the list of discovered devices.
    When the watcher stops without being asked to, the scanner
    restarts it, waiting at least retry_interval seconds between
    attempts.
    """

    __slots__ = (
        "_callback",
        "_cancel_watcher_callbacks",
        "_debug",
        "_destroy_acknowledged",
        "_destroy_timeout",
        "_devices",
        "_last_start_time",
        "_latest_index",
        "_lock",
        "_parser",
        "_record_policy",
        "_retry_condition",
        "_retry_interval",
        "_state",
        "_vendor_id",
        "_watcher",
    )

    def __init__(
        self,
        watcher: AdvertisementWatcher,
        *,
        vendor_id: _int = APPLE_MFR_ID,
        retry_interval: float = RETRY_INTERVAL_SECONDS,
        destroy_timeout: float = DESTROY_TIMEOUT_SECONDS,
        record_policy: RecordPolicy = RecordPolicy.APPEND_ALL,
        parser: ProtocolParser | None = None,
    ) -> None:
        """Initialize the scanner."""
        self._watcher = watcher
        self._vendor_id = vendor_id
        self._retry_interval = retry_interval
        self._destroy_timeout = destroy_timeout
        self._record_policy = record_policy
        self._parser = parser or ProximityPairingParser()
        # Guards the devices, the state and calls that read the watcher status
        self._lock = threading.Lock()
        # Guards nothing but the retry wait and the destroy acknowledgment
        self._retry_condition = threading.Condition()
        self._destroy_acknowledged = False
        self._state = ScanState.IDLE
        self._devices: list[DeviceRecord] = []
        self._latest_index: dict[_int, _int] = {}
        self._last_start_time = monotonic_time_coarse()
        self._callback: DeviceCallback | None = None
        self._debug = _LOGGER.isEnabledFor(logging.DEBUG)
        self._cancel_watcher_callbacks: list[CALLBACK_TYPE] = [
            watcher.on_advertisement(self._on_advertisement),
            watcher.on_stopped(self._on_watcher_stopped),
        ]

    def __enter__(self) -> AirPodsScanner:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def state(self) -> ScanState:
        """Return the lifecycle state."""
        with self._lock:
            return self._state

    @property
    def is_scanning(self) -> bool:
        """Return if the watcher reports it is started."""
        with self._lock:
            return self._watcher.status() is WatcherStatus.STARTED

    @property
    def retry_interval(self) -> float:
        return self._retry_interval

    @property
    def record_policy(self) -> RecordPolicy:
        return self._record_policy

    @property
    def devices(self) -> list[DeviceRecord]:
        """Return a copy of the discovered devices."""
        with self._lock:
            return list(self._devices)

    @property
    def device_count(self) -> int:
        with self._lock:
            return len(self._devices)

    def clear_devices(self) -> None:
        """Forget every discovered device."""
        with self._lock:
            self._devices.clear()
            self._latest_index.clear()

    def register_callback(self, callback: DeviceCallback) -> CALLBACK_TYPE:
        """
        Register the callback for new device records.

        Only one callback is kept, registering another replaces it.
        The callback runs on the watcher thread right after the record
        is stored.
        """
        self._callback = callback

        def _unregister_callback() -> None:
            if self._callback is callback:
                self._callback = None

        return _unregister_callback

    def start(self) -> bool:
        """
        Start the watcher, return False if it could not be started.

        A start issued while an earlier stop is still in flight waits
        up to destroy_timeout seconds for the watcher to report it has
        stopped, so that report is not taken for a failure.
        """
        self._wait_for_pending_stop()
        with self._lock:
            if self._state in _CLOSED_STATES:
                _LOGGER.warning("Cannot start a scanner that is %s", self._state.value)
                return False
            if self._state is ScanState.STOPPING:
                _LOGGER.warning("Cannot start while the watcher is still stopping")
                return False
            if self._state is ScanState.RUNNING:
                return True
            self._state = ScanState.STARTING
        return self._start_watcher()

    def _wait_for_pending_stop(self) -> None:
        with self._retry_condition:
            self._retry_condition.wait_for(
                lambda: self.state is not ScanState.STOPPING, self._destroy_timeout
            )

    def _start_watcher(self) -> bool:
        """Start the watcher, the state must already be STARTING."""
        self._last_start_time = monotonic_time_coarse()
        try:
            self._watcher.start()
        except Exception as ex:  # pylint: disable=broad-except
            _LOGGER.error("Starting the advertisement watcher failed: %s", ex)
            _LOGGER.debug("Start failure", exc_info=True)
            return False
        with self._lock:
            if (state := self._state) is ScanState.STARTING:
                self._state = ScanState.RUNNING
        if state is ScanState.STARTING:
            _LOGGER.info("Advertisement watcher started")
            return True
        if state is ScanState.RUNNING:
            return True
        # A stop or close arrived while the watcher was starting
        _LOGGER.debug("Watcher started while %s, stopping it again", state.value)
        try:
            self._watcher.stop()
        except Exception as ex:  # pylint: disable=broad-except
            _LOGGER.error("Stopping the advertisement watcher failed: %s", ex)
        return False

    def stop(self) -> bool:
        """Stop the watcher and cancel any pending restart."""
        with self._lock:
            state = self._state
            if state in (ScanState.IDLE, ScanState.DESTROYED):
                return True
            if state is ScanState.RUNNING:
                # The stopped notification finishes the transition
                self._state = ScanState.STOPPING
            elif state not in (ScanState.STOPPING, ScanState.DESTROYING):
                self._state = ScanState.IDLE
        with self._retry_condition:
            self._retry_condition.notify_all()
        try:
            self._watcher.stop()
        except Exception as ex:  # pylint: disable=broad-except
            _LOGGER.error("Stopping the advertisement watcher failed: %s", ex)
            _LOGGER.debug("Stop failure", exc_info=True)
            return False
        _LOGGER.info("Advertisement watcher stopped")
        return True

    def close(self) -> None:
        """
        Stop the watcher and release it.

        Waits up to destroy_timeout seconds for the watcher to report
        it has stopped, then carries on regardless.
        """
        with self._retry_condition:
            self._destroy_acknowledged = False
        with self._lock:
            if self._state in _CLOSED_STATES:
                return
            was_running = self._state in (ScanState.RUNNING, ScanState.STOPPING)
            self._state = ScanState.DESTROYING
        self.stop()
        if was_running:
            with self._retry_condition:
                if not self._retry_condition.wait_for(
                    lambda: self._destroy_acknowledged, self._destroy_timeout
                ):
                    _LOGGER.debug(
                        "Watcher did not report stopping within %ss",
                        self._destroy_timeout,
                    )
        for cancel in self._cancel_watcher_callbacks:
            cancel()
        self._cancel_watcher_callbacks.clear()
        try:
            self._watcher.close()
        except Exception as ex:  # pylint: disable=broad-except
            _LOGGER.error("Closing the advertisement watcher failed: %s", ex)
        self._callback = None
        with self._lock:
            self._state = ScanState.DESTROYED

    def diagnostics(self) -> dict[str, Any]:
        """Return diagnostic information about the scanner."""
        with self._lock:
            return {
                "state": self._state.value,
                "watcher_status": self._watcher.status().value,
                "device_count": len(self._devices),
                "record_policy": self._record_policy.value,
                "vendor_id": self._vendor_id,
                "retry_interval": self._retry_interval,
                "last_start_time": self._last_start_time,
                "monotonic_time": monotonic_time_coarse(),
            }

    def _on_advertisement(self, event: AdvertisementEvent) -> None:
        """Handle an advertisement from the watcher thread."""
        vendor_id = self._vendor_id
        for company_id, data in event.manufacturer_data.items():
            if company_id != vendor_id:
                continue
            payload = bytes(data)
            record = DeviceRecord.from_advertisement(
                event.address,
                event.rssi,
                payload,
                event.timestamp,
                self._parser.parse(payload),
            )
            if not self._store_record(record):
                return
            if self._debug:
                if (status := record.status) is not None:
                    _LOGGER.debug(
                        "%s: AirPods detected: %s - %s",
                        record.formatted_address,
                        status.model,
                        status.battery_summary(),
                    )
                else:
                    _LOGGER.debug(
                        "%s: Apple device detected: %s",
                        record.formatted_address,
                        record.manufacturer_data_hex,
                    )
            if (callback := self._callback) is not None:
                try:
                    callback(record)
                except Exception:  # pylint: disable=broad-except
                    _LOGGER.exception("Error in callback: %s", callback)

    def _store_record(self, record: DeviceRecord) -> bool:
        """Store the record, return False if the scanner is closed."""
        with self._lock:
            if self._state is ScanState.DESTROYED:
                return False
            if self._record_policy is RecordPolicy.REPLACE_LATEST:
                if (index := self._latest_index.get(record.address)) is not None:
                    self._devices[index] = record
                    return True
                self._latest_index[record.address] = len(self._devices)
            self._devices.append(record)
        return True

    def _on_watcher_stopped(self, status: WatcherStatus) -> None:
        """Handle the watcher stopping, restarting it if it was not asked to."""
        with self._lock:
            state = self._state
            if state is ScanState.STOPPING:
                self._state = ScanState.IDLE
            elif state is ScanState.RUNNING:
                self._state = ScanState.STARTING
        _LOGGER.info("Advertisement watcher stopped with status %s", status.value)
        if state is ScanState.STOPPING:
            with self._retry_condition:
                self._retry_condition.notify_all()
            return
        if state is ScanState.DESTROYING:
            with self._retry_condition:
                self._destroy_acknowledged = True
                self._retry_condition.notify_all()
            return
        if state not in _RESTART_STATES:
            return
        _LOGGER.warning(
            "Advertisement watcher stopped unexpectedly, restarting in %ss",
            self._retry_interval,
        )
        self._restart_until_started()

    def _restart_cancelled(self) -> bool:
        with self._lock:
            return self._state is not ScanState.STARTING

    def _seconds_until_retry(self) -> float:
        return max(
            0.0,
            self._last_start_time + self._retry_interval - monotonic_time_coarse(),
        )

    def _restart_until_started(self) -> None:
        """Restart the watcher until it starts or the restart is cancelled."""
        while True:
            with self._retry_condition:
                # Always wait for the deadline so a failing watcher
                # is not hammered
                while not self._restart_cancelled() and (
                    remaining := self._seconds_until_retry()
                ):
                    self._retry_condition.wait(remaining)
            with self._lock:
                if self._state is not ScanState.STARTING:
                    _LOGGER.debug("Restart cancelled in state %s", self._state.value)
                    return
            if self._start_watcher():
                return
