"""Exceptions for podwatch."""


class PodwatchError(Exception):
    """Base class for podwatch errors."""


class WatcherStartError(PodwatchError):
    """Raised when the advertisement watcher fails to start."""


class WatcherStopError(PodwatchError):
    """Raised when the advertisement watcher fails to stop."""
