__version__ = "1.0.0"

from .bleak_watcher import BleakAdvertisementWatcher
from .const import (
    APPLE_MFR_ID,
    DESTROY_TIMEOUT,
    PROXIMITY_PAIRING_TYPE,
    RETRY_INTERVAL,
)
from .exceptions import PodwatchError, WatcherStartError, WatcherStopError
from .models import (
    AirPodsStatus,
    BatteryLevels,
    ChargingState,
    DeviceRecord,
    DeviceState,
    RecordPolicy,
    ScanState,
)
from .parser import (
    ProtocolParser,
    ProximityPairingParser,
    can_parse_proximity_pairing,
    parse_proximity_pairing,
)
from .report import build_error_report, build_report
from .scanner import AirPodsScanner
from .watcher import AdvertisementEvent, AdvertisementWatcher, WatcherStatus

__all__ = [
    "APPLE_MFR_ID",
    "DESTROY_TIMEOUT",
    "PROXIMITY_PAIRING_TYPE",
    "RETRY_INTERVAL",
    "AdvertisementEvent",
    "AdvertisementWatcher",
    "AirPodsScanner",
    "AirPodsStatus",
    "BatteryLevels",
    "BleakAdvertisementWatcher",
    "ChargingState",
    "DeviceRecord",
    "DeviceState",
    "PodwatchError",
    "ProtocolParser",
    "ProximityPairingParser",
    "RecordPolicy",
    "ScanState",
    "WatcherStartError",
    "WatcherStatus",
    "WatcherStopError",
    "build_error_report",
    "build_report",
    "can_parse_proximity_pairing",
    "parse_proximity_pairing",
]
