import logging
import time

from podwatch import AirPodsScanner, BleakAdvertisementWatcher, DeviceRecord


def print_record(record: DeviceRecord) -> None:
    """Print each AirPods advertisement as it arrives."""
    if (status := record.status) is None:
        return
    print(
        f"{record.formatted_address} rssi={record.rssi} {status.model} "
        f"{status.battery_summary()} charging={status.is_any_charging} "
        f"in_ear={status.is_any_in_ear} lid_open={status.state.lid_open}"
    )


def main() -> None:
    """Watch for AirPods until interrupted."""
    logging.basicConfig(level=logging.INFO)
    with AirPodsScanner(BleakAdvertisementWatcher()) as scanner:
        scanner.register_callback(print_record)
        if not scanner.start():
            return
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            pass


if __name__ == "__main__":
    main()
