from __future__ import annotations


class WizError(Exception):
    """Base class for failures talking to a device."""


class RequestTimeout(WizError):
    """No reply arrived before the deadline."""


class ProtocolError(WizError):
    """A reply arrived but could not be decoded."""


class NetworkError(WizError):
    """Recoverable transport failure (refused, reset, unreachable)."""


class FatalNetworkError(WizError):
    """Transport failure that is not expected during normal operation."""


class ScanInProgressError(RuntimeError):
    def __init__(self) -> None:
        super().__init__("Scan already in progress")


class InvalidCIDRError(ValueError):
    pass


class SubnetTooLargeError(ValueError):
    pass


class GroupNotFoundError(KeyError):
    def __init__(self, group_id: str) -> None:
        super().__init__(group_id)
        self.group_id = group_id

    def __str__(self) -> str:
        return f"Group '{self.group_id}' not found"
