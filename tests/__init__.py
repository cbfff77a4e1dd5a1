import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from functools import partial
from typing import Any

from bleak.backends.scanner import AdvertisementData

from podwatch import (
    APPLE_MFR_ID,
    AdvertisementEvent,
    AdvertisementWatcher,
    WatcherStartError,
    WatcherStatus,
)

utcnow = partial(datetime.now, UTC)

AIRPODS_ADDRESS = 0x0A1B2C3D4E5F
OTHER_ADDRESS = 0x112233445566

# Captured from a pair of AirPods Pro 2, company id stripped
AIRPODS_PRO_2_PAYLOAD = bytes.fromhex("07190114200b888f")
AIRPODS_PRO_2_PAYLOAD_70 = bytes.fromhex("07190114200b778f")
# Nearby (0x10) continuity message, not proximity pairing
NEARBY_INFO_PAYLOAD = bytes.fromhex("1005031c2c7a90")

ADVERTISEMENT_DATA_DEFAULTS = {
    "local_name": "Unknown",
    "manufacturer_data": {},
    "service_data": {},
    "service_uuids": [],
    "rssi": -127,
    "platform_data": ((),),
    "tx_power": -127,
}


def generate_advertisement_data(**kwargs: Any) -> AdvertisementData:
    """Generate advertisement data with defaults."""
    new = kwargs.copy()
    for key, value in ADVERTISEMENT_DATA_DEFAULTS.items():
        new.setdefault(key, value)
    return AdvertisementData(**new)


def generate_event(
    address: int = AIRPODS_ADDRESS,
    rssi: int = -60,
    manufacturer_data: dict[int, bytes] | None = None,
    timestamp: datetime | None = None,
) -> AdvertisementEvent:
    """Generate an advertisement event with defaults."""
    if manufacturer_data is None:
        manufacturer_data = {APPLE_MFR_ID: AIRPODS_PRO_2_PAYLOAD}
    return AdvertisementEvent(
        address, rssi, timestamp or utcnow(), manufacturer_data
    )


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll until the predicate is true or the timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FakeWatcher(AdvertisementWatcher):
    """
    A watcher driven by the tests.

    Stop notifications are delivered from their own thread, like a
    platform watcher would.
    """

    def __init__(self, fire_stopped_on_stop: bool = True) -> None:
        super().__init__()
        self._status = WatcherStatus.CREATED
        self.fire_stopped_on_stop = fire_stopped_on_stop
        self.start_failures = 0
        self.stop_error: Exception | None = None
        self.start_times: list[float] = []
        self.stop_calls = 0
        self.closed = False
        self.notification_threads: list[threading.Thread] = []

    @property
    def start_calls(self) -> int:
        return len(self.start_times)

    def status(self) -> WatcherStatus:
        return self._status

    def start(self) -> None:
        self.start_times.append(time.monotonic())
        if self.start_failures:
            self.start_failures -= 1
            raise WatcherStartError("radio is off")
        self._status = WatcherStatus.STARTED

    def stop(self) -> None:
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error
        was_started = self._status is WatcherStatus.STARTED
        self._status = WatcherStatus.STOPPED
        if was_started and self.fire_stopped_on_stop:
            self.notify_stopped(WatcherStatus.STOPPED)

    def close(self) -> None:
        self.closed = True

    def abort(self) -> threading.Thread:
        """Stop as if the radio stack failed."""
        self._status = WatcherStatus.ABORTED
        return self.notify_stopped(WatcherStatus.ABORTED)

    def notify_stopped(self, status: WatcherStatus) -> threading.Thread:
        thread = threading.Thread(target=self._fire_stopped, args=(status,))
        self.notification_threads.append(thread)
        thread.start()
        return thread

    def inject(self, event: AdvertisementEvent) -> None:
        """Deliver an advertisement on the calling thread."""
        self._fire_advertisement(event)

    def join_notifications(self, timeout: float = 5.0) -> None:
        for thread in list(self.notification_threads):
            thread.join(timeout)
