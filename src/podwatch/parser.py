"""Decoder for the Apple proximity pairing advertisement."""

from __future__ import annotations

from struct import Struct
from typing import Final

from .const import (
    BROADCASTING_EAR_DEFAULT,
    MIN_DATA_LENGTH,
    MODEL_NAMES,
    PROXIMITY_PAIRING_TYPE,
    UNKNOWN_MODEL,
)
from .models import AirPodsStatus, BatteryLevels, ChargingState, DeviceState

# The company id is already stripped from the payload
#
# offset  field
# 0       message type (0x07)
# 1-2     ignored
# 3-4     model id, little endian
# 5       case battery nibble + charging bits
# 6       left battery nibble, right battery nibble
# 7       lid open + in ear bits
PROXIMITY_PAIRING: Final = Struct("<BxxHBBB")
PROXIMITY_PAIRING_UNPACK = PROXIMITY_PAIRING.unpack_from

CASE_CHARGING: Final = 0x04
LEFT_CHARGING: Final = 0x02
RIGHT_CHARGING: Final = 0x01

LID_OPEN: Final = 0x04
LEFT_IN_EAR: Final = 0x02
RIGHT_IN_EAR: Final = 0x01

_bytes = bytes
_int = int


def model_name(model_id: _int) -> str:
    """Return the human readable name for a model id."""
    return MODEL_NAMES.get(model_id, UNKNOWN_MODEL)


def format_model_id(model_id: _int) -> str:
    """Return the model id as an uppercase 0xNNNN string."""
    return f"0x{model_id:04X}"


def _nibble_percent(value: _int) -> _int:
    return (value & 0x0F) * 10


def can_parse_proximity_pairing(data: _bytes) -> bool:
    """Return if the payload looks like a proximity pairing message."""
    return len(data) >= MIN_DATA_LENGTH and data[0] == PROXIMITY_PAIRING_TYPE


def parse_proximity_pairing(data: _bytes) -> AirPodsStatus | None:
    """
    Decode a proximity pairing payload.

    Returns None when the payload is too short or is another
    continuity message type. Unknown models still decode.
    """
    if not can_parse_proximity_pairing(data):
        return None
    _, model_id, status, battery, lid = PROXIMITY_PAIRING_UNPACK(data)
    return AirPodsStatus(
        model_name(model_id),
        format_model_id(model_id),
        BatteryLevels(
            left=_nibble_percent(battery >> 4),
            right=_nibble_percent(battery),
            case=_nibble_percent(status >> 4),
        ),
        ChargingState(
            left=bool(status & LEFT_CHARGING),
            right=bool(status & RIGHT_CHARGING),
            case=bool(status & CASE_CHARGING),
        ),
        DeviceState(
            left_in_ear=bool(lid & LEFT_IN_EAR),
            right_in_ear=bool(lid & RIGHT_IN_EAR),
            lid_open=bool(lid & LID_OPEN),
        ),
        BROADCASTING_EAR_DEFAULT,
    )


class ProtocolParser:
    """Base class for manufacturer payload parsers."""

    __slots__ = ()

    @property
    def name(self) -> str:
        raise NotImplementedError

    @property
    def version(self) -> str:
        raise NotImplementedError

    def can_parse(self, data: _bytes) -> bool:
        """Return if the parser understands the payload."""
        raise NotImplementedError

    def parse(self, data: _bytes) -> AirPodsStatus | None:
        """Decode the payload or return None."""
        raise NotImplementedError


class ProximityPairingParser(ProtocolParser):
    """Parser for the Apple continuity proximity pairing message."""

    __slots__ = ()

    @property
    def name(self) -> str:
        return "Apple Continuity Protocol Parser"

    @property
    def version(self) -> str:
        return "1.0"

    def can_parse(self, data: _bytes) -> bool:
        return can_parse_proximity_pairing(data)

    def parse(self, data: _bytes) -> AirPodsStatus | None:
        return parse_proximity_pairing(data)
