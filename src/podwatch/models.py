"""Models for podwatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .util import address_to_device_id, format_address


class ScanState(Enum):
    """The lifecycle state of a scanner."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"


class RecordPolicy(Enum):
    """How repeated observations of the same address are stored."""

    APPEND_ALL = "append_all"
    REPLACE_LATEST = "replace_latest"


@dataclass(frozen=True, slots=True)
class BatteryLevels:
    """Battery percentages for the buds and the case."""

    left: int = 0
    right: int = 0
    case: int = 0

    @property
    def lowest(self) -> int:
        """Return the lowest battery level of the three."""
        return min(self.left, self.right, self.case)

    def summary(self) -> str:
        return f"L:{self.left}% R:{self.right}% C:{self.case}%"


@dataclass(frozen=True, slots=True)
class ChargingState:
    """Charging flags for the buds and the case."""

    left: bool = False
    right: bool = False
    case: bool = False

    @property
    def any(self) -> bool:
        return self.left or self.right or self.case


@dataclass(frozen=True, slots=True)
class DeviceState:
    """Where the buds are and whether the case lid is open."""

    left_in_ear: bool = False
    right_in_ear: bool = False
    lid_open: bool = False

    @property
    def both_in_case(self) -> bool:
        """Return True when neither bud is in an ear."""
        return not self.left_in_ear and not self.right_in_ear

    @property
    def any_in_ear(self) -> bool:
        return self.left_in_ear or self.right_in_ear


@dataclass(frozen=True, slots=True)
class AirPodsStatus:
    """Status decoded from a proximity pairing payload."""

    model: str
    model_id: str
    battery: BatteryLevels
    charging: ChargingState
    state: DeviceState
    broadcasting_ear: str

    @property
    def is_any_charging(self) -> bool:
        return self.charging.any

    @property
    def is_any_in_ear(self) -> bool:
        return self.state.any_in_ear

    @property
    def lowest_battery_level(self) -> int:
        return self.battery.lowest

    def battery_summary(self) -> str:
        """Return a summary like L:70% R:80% C:50%."""
        return self.battery.summary()

    def as_dict(self) -> dict[str, Any]:
        """Return the status as a flat dict."""
        return {
            "model": self.model,
            "model_id": self.model_id,
            "left_battery": self.battery.left,
            "right_battery": self.battery.right,
            "case_battery": self.battery.case,
            "left_charging": self.charging.left,
            "right_charging": self.charging.right,
            "case_charging": self.charging.case,
            "left_in_ear": self.state.left_in_ear,
            "right_in_ear": self.state.right_in_ear,
            "both_in_case": self.state.both_in_case,
            "lid_open": self.state.lid_open,
            "broadcasting_ear": self.broadcasting_ear,
        }


@dataclass(frozen=True, slots=True, eq=False)
class DeviceRecord:
    """
    A single observation of an Apple advertisement.

    Two records are the same device when they share a radio
    address, whatever their payloads say.
    """

    device_id: str
    address: int
    rssi: int
    manufacturer_data: bytes
    timestamp: datetime
    status: AirPodsStatus | None = field(default=None)

    @classmethod
    def from_advertisement(
        cls,
        address: int,
        rssi: int,
        manufacturer_data: bytes,
        timestamp: datetime,
        status: AirPodsStatus | None,
    ) -> DeviceRecord:
        """Create a record from the fields of an advertisement."""
        return cls(
            address_to_device_id(address),
            address,
            rssi,
            manufacturer_data,
            timestamp,
            status,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeviceRecord):
            return NotImplemented
        return self.address == other.address

    def __hash__(self) -> int:
        return hash(self.address)

    @property
    def has_status(self) -> bool:
        return self.status is not None

    @property
    def formatted_address(self) -> str:
        return format_address(self.address)

    @property
    def manufacturer_data_hex(self) -> str:
        return self.manufacturer_data.hex()

    def age(self, now: datetime | None = None) -> float:
        """Return the seconds elapsed since the record was observed."""
        return ((now or datetime.now(UTC)) - self.timestamp).total_seconds()

    def as_dict(self) -> dict[str, Any]:
        """Return the record as a dict ready for a json encoder."""
        return {
            "device_id": self.device_id,
            "address": str(self.address),
            "rssi": self.rssi,
            "manufacturer_data_hex": self.manufacturer_data_hex,
            "airpods_data": self.status.as_dict() if self.status else None,
        }
