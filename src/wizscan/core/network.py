"""Subnet arithmetic and local interface inspection."""

from __future__ import annotations

import logging
import socket
import string
from dataclasses import dataclass

import psutil

from wizscan.core.errors import InvalidCIDRError, SubnetTooLargeError

logger = logging.getLogger(__name__)

MAX_SCAN_HOSTS = 65536
FALLBACK_SUBNET = "192.168.1.0/24"
PREFERRED_PREFIX = "192.168."
VIRTUAL_INTERFACE_MARKERS = (
    "virtual",
    "vethernet",
    "vmnet",
    "vbox",
    "docker",
    "veth",
    "br-",
    "tun",
    "tap",
    "wg",
)


@dataclass(frozen=True)
class CIDRInfo:
    network: str
    prefix_length: int
    first_host: str
    last_host: str
    total_hosts: int


@dataclass(frozen=True)
class LocalInterface:
    name: str
    address: str
    netmask: str
    cidr: str


def is_valid_ipv4(text: str) -> bool:
    parts = text.split(".")
    if len(parts) != 4:
        return False
    for part in parts:
        try:
            value = int(part)
        except ValueError:
            return False
        if not 0 <= value <= 255 or str(value) != part:
            return False
    return True


def ip_to_int(ip: str) -> int:
    if not is_valid_ipv4(ip):
        raise ValueError(f"Invalid IPv4 address: {ip!r}")
    result = 0
    for part in ip.split("."):
        result = (result << 8) | int(part)
    return result


def int_to_ip(value: int) -> str:
    value &= 0xFFFFFFFF
    return ".".join(str((value >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def _prefix_mask(prefix_length: int) -> int:
    if prefix_length == 0:
        return 0
    return (0xFFFFFFFF << (32 - prefix_length)) & 0xFFFFFFFF


def parse_cidr(cidr: str) -> CIDRInfo:
    address, sep, prefix_text = cidr.strip().partition("/")
    if not sep:
        raise InvalidCIDRError(f"Missing prefix length in {cidr!r}")
    try:
        prefix_length = int(prefix_text)
    except ValueError as exc:
        raise InvalidCIDRError(f"Invalid CIDR prefix in {cidr!r}") from exc
    if not 0 <= prefix_length <= 32:
        raise InvalidCIDRError(f"Invalid CIDR prefix in {cidr!r}")
    if not is_valid_ipv4(address):
        raise InvalidCIDRError(f"Invalid network address in {cidr!r}")

    network = ip_to_int(address) & _prefix_mask(prefix_length)
    total_hosts = max(0, 2 ** (32 - prefix_length) - 2)
    return CIDRInfo(
        network=int_to_ip(network),
        prefix_length=prefix_length,
        first_host=int_to_ip(network + 1),
        last_host=int_to_ip(network + total_hosts),
        total_hosts=total_hosts,
    )


def enumerate_hosts(cidr: str) -> list[str]:
    """All usable host addresses of ``cidr`` in ascending order."""
    info = parse_cidr(cidr)
    if info.total_hosts > MAX_SCAN_HOSTS:
        raise SubnetTooLargeError(
            f"CIDR range too large: {cidr} has {info.total_hosts} hosts "
            f"(max {MAX_SCAN_HOSTS})"
        )
    if info.total_hosts == 0:
        return []
    first = ip_to_int(info.first_host)
    return [int_to_ip(first + offset) for offset in range(info.total_hosts)]


def calculate_cidr(ip: str, netmask: str) -> str:
    ip_octets = [int(part) for part in ip.split(".")]
    mask_octets = [int(part) for part in netmask.split(".")]
    prefix_length = sum(bin(octet).count("1") for octet in mask_octets)
    network = ".".join(str(a & m) for a, m in zip(ip_octets, mask_octets))
    return f"{network}/{prefix_length}"


def normalize_mac(value: str | None) -> str | None:
    """Lowercase, colon separated, zero padded; None if not a MAC."""
    if not value:
        return None
    text = value.strip().lower().replace("-", ":")
    if ":" in text:
        octets = text.split(":")
    elif len(text) == 12:
        octets = [text[i : i + 2] for i in range(0, 12, 2)]
    else:
        return None
    if len(octets) != 6 or not all(_is_hex_octet(octet) for octet in octets):
        return None
    return ":".join(octet.zfill(2) for octet in octets)


def _is_hex_octet(text: str) -> bool:
    return 0 < len(text) <= 2 and all(ch in string.hexdigits for ch in text)


def _is_virtual(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in VIRTUAL_INTERFACE_MARKERS)


def get_local_interfaces() -> list[LocalInterface]:
    interfaces: list[LocalInterface] = []
    for name, addresses in psutil.net_if_addrs().items():
        for addr in addresses:
            if addr.family != socket.AF_INET or not addr.netmask:
                continue
            if addr.address.startswith("127."):
                continue
            interfaces.append(
                LocalInterface(
                    name=name,
                    address=addr.address,
                    netmask=addr.netmask,
                    cidr=calculate_cidr(addr.address, addr.netmask),
                )
            )
    return interfaces


def auto_detect_subnet() -> str:
    try:
        interfaces = get_local_interfaces()
    except OSError as exc:
        logger.warning("Could not inspect local interfaces: %s", exc)
        interfaces = []

    for iface in interfaces:
        if not _is_virtual(iface.name) and iface.address.startswith(PREFERRED_PREFIX):
            logger.debug("Detected subnet %s on %s", iface.cidr, iface.name)
            return iface.cidr

    if interfaces:
        iface = interfaces[0]
        logger.debug("Using first interface %s: %s", iface.name, iface.cidr)
        return iface.cidr

    logger.debug("No usable interface found, falling back to %s", FALLBACK_SUBNET)
    return FALLBACK_SUBNET
