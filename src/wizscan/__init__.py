"""wizscan - discover and control WiZ smart bulbs over the local UDP protocol."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, get_settings
from .core import DeviceRegistry, NetworkScanner, WizClient
from .models import Device, DeviceState, Group, ScanOptions, StateUpdate
from .storage import Database

__all__ = [
    "Database",
    "Device",
    "DeviceRegistry",
    "DeviceState",
    "Group",
    "NetworkScanner",
    "ScanOptions",
    "Settings",
    "StateUpdate",
    "WizClient",
    "__version__",
    "get_settings",
]

__version__ = version("wizscan")
