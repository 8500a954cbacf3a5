"""Error types raised at the controller's boundaries."""

from __future__ import annotations


class GanPanelError(Exception):
    """Base class for ganpanel errors."""


class ConfigLoadError(GanPanelError):
    """The generator path file is missing, unreadable or empty."""


class LaunchError(GanPanelError):
    """The generator process could not be started."""

    def __init__(self, message: str, os_error: OSError | None = None) -> None:
        super().__init__(message)
        self.os_error = os_error


class ValidationWarning(UserWarning):
    """A run parameter was corrected before launch."""

    def __init__(self, message: str, requested: int, corrected: int) -> None:
        super().__init__(message)
        self.requested = requested
        self.corrected = corrected
