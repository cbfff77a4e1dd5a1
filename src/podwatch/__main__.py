"""Scan for AirPods and print a json report."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time

from .bleak_watcher import BleakAdvertisementWatcher
from .const import DEFAULT_SCAN_DURATION
from .models import RecordPolicy
from .report import build_error_report, build_report
from .scanner import AirPodsScanner

_LOGGER = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="podwatch", description="Report AirPods battery levels."
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=DEFAULT_SCAN_DURATION,
        help="seconds to scan for (default: %(default)s)",
    )
    parser.add_argument("--adapter", help="bluetooth adapter to use, e.g. hci0")
    parser.add_argument(
        "--passive", action="store_true", help="use passive scanning"
    )
    parser.add_argument(
        "--latest-only",
        action="store_true",
        help="keep only the latest advertisement per device",
    )
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run a scan and print the report, return the exit code."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return _scan(args)
    except Exception as ex:  # pylint: disable=broad-except
        _LOGGER.debug("Scan failed", exc_info=True)
        print(json.dumps(build_error_report(str(ex))))
        return 1


def _scan(args: argparse.Namespace) -> int:
    watcher = BleakAdvertisementWatcher(
        adapter=args.adapter,
        scanning_mode="passive" if args.passive else "active",
    )
    policy = (
        RecordPolicy.REPLACE_LATEST if args.latest_only else RecordPolicy.APPEND_ALL
    )
    with AirPodsScanner(watcher, record_policy=policy) as scanner:
        if not scanner.start():
            print(json.dumps(build_error_report("Failed to start BLE scan")))
            return 1
        _LOGGER.info("Scanning for %s seconds", args.duration)
        time.sleep(args.duration)
        scanner.stop()
        devices = scanner.devices
    print(json.dumps(build_report(devices), indent=4))
    return 0


if __name__ == "__main__":
    sys.exit(main())
