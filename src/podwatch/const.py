"""Constants for podwatch."""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
from typing import Final

CALLBACK_TYPE = Callable[[], None]

# Bluetooth SIG company identifier assigned to Apple
APPLE_MFR_ID: Final = 76

# Continuity message types share the Apple company id, the first
# payload byte selects the sub-protocol
PROXIMITY_PAIRING_TYPE: Final = 0x07
MIN_DATA_LENGTH: Final = 8

UNKNOWN_MODEL: Final = "Unknown AirPods"
MODEL_NAMES: Final[dict[int, str]] = {
    0x2014: "AirPods Pro 2",
    0x200E: "AirPods Pro",
    0x2013: "AirPods 3",
    0x200F: "AirPods 2",
}

# The payload carries no bit that tells which bud is advertising
BROADCASTING_EAR_DEFAULT: Final = "right"

# Minimum time between two attempts to start the watcher
RETRY_INTERVAL: Final = timedelta(seconds=3)
RETRY_INTERVAL_SECONDS: Final = RETRY_INTERVAL.total_seconds()

# How long close() waits for the watcher to report it has stopped
DESTROY_TIMEOUT: Final = timedelta(seconds=1)
DESTROY_TIMEOUT_SECONDS: Final = DESTROY_TIMEOUT.total_seconds()

# How long a thread waits for the watcher event loop to run a command
WATCHER_COMMAND_TIMEOUT: Final = 15.0

# How often the bleak watcher checks it is still hearing advertisements
SCANNER_WATCHDOG_INTERVAL: Final = timedelta(seconds=30)
SCANNER_WATCHDOG_INTERVAL_SECONDS: Final = SCANNER_WATCHDOG_INTERVAL.total_seconds()
# Silence longer than this means the radio stack stopped delivering
SCANNER_WATCHDOG_TIMEOUT: Final = 90.0

DEFAULT_SCAN_DURATION: Final = 10.0

SCANNER_VERSION: Final = "5.0"
