from __future__ import annotations

from .arp import NeighborResolver, StaticNeighborResolver, SystemNeighborResolver
from .control import set_group_power, set_group_state
from .errors import (
    FatalNetworkError,
    GroupNotFoundError,
    InvalidCIDRError,
    NetworkError,
    ProtocolError,
    RequestTimeout,
    ScanInProgressError,
    SubnetTooLargeError,
    WizError,
)
from .network import auto_detect_subnet, enumerate_hosts, parse_cidr
from .protocol import WizClient, WizResponse
from .registry import DeviceRegistry, DeviceStore, MergeOutcome, MergeResult
from .scanner import NetworkScanner
from .vendor import IEEERegistry, OUIDatabase, VendorClassifier, VendorVerdict

__all__ = [
    "DeviceRegistry",
    "DeviceStore",
    "FatalNetworkError",
    "GroupNotFoundError",
    "IEEERegistry",
    "InvalidCIDRError",
    "MergeOutcome",
    "MergeResult",
    "NeighborResolver",
    "NetworkError",
    "NetworkScanner",
    "OUIDatabase",
    "ProtocolError",
    "RequestTimeout",
    "ScanInProgressError",
    "StaticNeighborResolver",
    "SubnetTooLargeError",
    "SystemNeighborResolver",
    "VendorClassifier",
    "VendorVerdict",
    "WizClient",
    "WizError",
    "WizResponse",
    "auto_detect_subnet",
    "enumerate_hosts",
    "parse_cidr",
    "set_group_power",
    "set_group_state",
]
