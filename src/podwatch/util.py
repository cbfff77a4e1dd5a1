"""Utilities for podwatch."""

from __future__ import annotations

from bluetooth_data_tools import int_to_bluetooth_address

_int = int


def address_to_device_id(address: _int) -> str:
    """Return the canonical lowercase hex id for a radio address."""
    return f"{address:012x}"


def format_address(address: _int) -> str:
    """Return the address formatted as AA:BB:CC:DD:EE:FF."""
    return int_to_bluetooth_address(address & 0xFFFFFFFFFFFF)


def bluetooth_address_to_int(address: str) -> _int:
    """
    Convert a MAC address string to an integer.

    Raises ValueError for addresses that are not MAC strings,
    such as the UUIDs CoreBluetooth hands out.
    """
    hex_address = address.replace(":", "").replace("-", "")
    if len(hex_address) != 12:
        raise ValueError(f"Not a bluetooth address: {address}")
    return int(hex_address, 16)
