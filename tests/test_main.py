from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from podwatch import APPLE_MFR_ID
from podwatch.__main__ import main

from . import AIRPODS_PRO_2_PAYLOAD, FakeWatcher, generate_event


def test_main_prints_report(capsys: pytest.CaptureFixture[str]) -> None:
    watcher = FakeWatcher()

    def _sleep(seconds: float) -> None:
        assert seconds == 2.5
        watcher.inject(generate_event())
        watcher.inject(generate_event())

    with (
        patch(
            "podwatch.__main__.BleakAdvertisementWatcher", return_value=watcher
        ) as mock_watcher_class,
        patch("podwatch.__main__.time.sleep", _sleep),
    ):
        assert main(["--duration", "2.5", "--adapter", "hci1", "--passive"]) == 0

    mock_watcher_class.assert_called_once_with(
        adapter="hci1", scanning_mode="passive"
    )
    report = json.loads(capsys.readouterr().out)
    assert report["status"] == "success"
    assert report["total_devices"] == 2
    assert report["airpods_count"] == 2
    assert report["devices"][0]["manufacturer_data_hex"] == AIRPODS_PRO_2_PAYLOAD.hex()
    assert watcher.closed is True


def test_main_latest_only(capsys: pytest.CaptureFixture[str]) -> None:
    watcher = FakeWatcher()

    def _sleep(seconds: float) -> None:
        watcher.inject(generate_event())
        watcher.inject(generate_event(manufacturer_data={APPLE_MFR_ID: b"\x10"}))

    with (
        patch("podwatch.__main__.BleakAdvertisementWatcher", return_value=watcher),
        patch("podwatch.__main__.time.sleep", _sleep),
    ):
        assert main(["--latest-only"]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["total_devices"] == 1
    assert report["airpods_count"] == 0


def test_main_start_failure(capsys: pytest.CaptureFixture[str]) -> None:
    watcher = FakeWatcher()
    watcher.start_failures = 1
    with patch("podwatch.__main__.BleakAdvertisementWatcher", return_value=watcher):
        assert main([]) == 1

    report = json.loads(capsys.readouterr().out)
    assert report["status"] == "error"
    assert report["error"] == "Failed to start BLE scan"
    assert watcher.closed is True


def test_main_unexpected_error(capsys: pytest.CaptureFixture[str]) -> None:
    with patch(
        "podwatch.__main__.BleakAdvertisementWatcher",
        side_effect=RuntimeError("No Bluetooth adapter found"),
    ):
        assert main([]) == 1

    report = json.loads(capsys.readouterr().out)
    assert report["status"] == "error"
    assert report["error"] == "No Bluetooth adapter found"
    assert report["total_devices"] == 0
