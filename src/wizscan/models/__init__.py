"""Data models for wizscan."""

from wizscan.models.device import (
    RGB,
    Confidence,
    Device,
    DeviceState,
    ScanOptions,
    ScanProgress,
    StateUpdate,
)
from wizscan.models.group import Group, GroupControlResult

__all__ = [
    "RGB",
    "Confidence",
    "Device",
    "DeviceState",
    "Group",
    "GroupControlResult",
    "ScanOptions",
    "ScanProgress",
    "StateUpdate",
]
