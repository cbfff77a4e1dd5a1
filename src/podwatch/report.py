"""Render scan results as a json friendly report."""

from __future__ import annotations

import time
from collections.abc import Iterable
from typing import Any

from .const import SCANNER_VERSION
from .models import DeviceRecord

NOTE = "podwatch - AirPods battery levels from BLE advertisements"


def build_report(
    devices: Iterable[DeviceRecord], scan_timestamp: int | None = None
) -> dict[str, Any]:
    """Build the report for a finished scan."""
    device_dicts = [device.as_dict() for device in devices]
    return {
        "scanner_version": SCANNER_VERSION,
        "scan_timestamp": str(
            int(time.time()) if scan_timestamp is None else scan_timestamp
        ),
        "total_devices": len(device_dicts),
        "devices": device_dicts,
        "airpods_count": sum(
            1 for device in device_dicts if device["airpods_data"] is not None
        ),
        "status": "success",
        "note": NOTE,
    }


def build_error_report(error: str) -> dict[str, Any]:
    """Build the report for a scan that could not run."""
    return {
        "scanner_version": SCANNER_VERSION,
        "status": "error",
        "error": error,
        "total_devices": 0,
        "devices": [],
        "airpods_count": 0,
    }
