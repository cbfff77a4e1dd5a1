from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from podwatch import AirPodsScanner, RecordPolicy

from . import FakeWatcher

RETRY_INTERVAL = 0.2
DESTROY_TIMEOUT = 0.5


@pytest.fixture
def watcher() -> FakeWatcher:
    """Fixture for a watcher the test drives."""
    return FakeWatcher()


@pytest.fixture
def scanner(watcher: FakeWatcher) -> Generator[AirPodsScanner, None, None]:
    """Fixture for a scanner with short retry pacing."""
    scanner = AirPodsScanner(
        watcher, retry_interval=RETRY_INTERVAL, destroy_timeout=DESTROY_TIMEOUT
    )
    yield scanner
    scanner.close()
    watcher.join_notifications()


@pytest.fixture
def latest_scanner(watcher: FakeWatcher) -> Generator[AirPodsScanner, None, None]:
    """Fixture for a scanner keeping one record per address."""
    scanner = AirPodsScanner(
        watcher,
        retry_interval=RETRY_INTERVAL,
        destroy_timeout=DESTROY_TIMEOUT,
        record_policy=RecordPolicy.REPLACE_LATEST,
    )
    yield scanner
    scanner.close()
    watcher.join_notifications()


@pytest.fixture
def mock_bleak_scanner() -> Generator[MagicMock, None, None]:
    """Fixture to mock the bleak scanner class."""
    with patch("podwatch.bleak_watcher.BleakScanner") as mock_scanner_class:
        mock_scanner_class.return_value.start = AsyncMock()
        mock_scanner_class.return_value.stop = AsyncMock()
        yield mock_scanner_class
