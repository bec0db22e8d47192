"""Neighbour (ARP) table lookup.

Best effort only: a failing or missing command gives an empty table.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from collections.abc import Callable, Mapping, Sequence
from typing import Protocol

from wizscan.core.network import normalize_mac

logger = logging.getLogger(__name__)

IGNORED_MACS = frozenset({"ff:ff:ff:ff:ff:ff", "00:00:00:00:00:00"})

_IP_NEIGH_PATTERN = re.compile(
    r"^(\d+\.\d+\.\d+\.\d+)\s.*\blladdr\s+([0-9a-fA-F:]+)", re.MULTILINE
)
# Linux "arp -n" columns: Address HWtype HWaddress Flags Iface
_ARP_LINUX_PATTERN = re.compile(
    r"^(\d+\.\d+\.\d+\.\d+)\s+\w+\s+([0-9a-fA-F:]+)\s", re.MULTILINE
)
# BSD/macOS "arp -an": ? (192.168.1.5) at a8:bb:50:1:2:3 on en0
_ARP_BSD_PATTERN = re.compile(r"\((\d+\.\d+\.\d+\.\d+)\)\s+at\s+([0-9a-fA-F:]+)")
_ARP_WINDOWS_PATTERN = re.compile(
    r"^\s*(\d+\.\d+\.\d+\.\d+)\s+([0-9a-fA-F]{1,2}(?:-[0-9a-fA-F]{1,2}){5})\s+\w+",
    re.MULTILINE,
)

Parser = Callable[[str], dict[str, str]]


class NeighborResolver(Protocol):
    async def resolve(self) -> dict[str, str]: ...


def _collect(matches: list[tuple[str, str]]) -> dict[str, str]:
    table: dict[str, str] = {}
    for ip, raw_mac in matches:
        mac = normalize_mac(raw_mac)
        if mac is None or mac in IGNORED_MACS:
            continue
        table[ip] = mac
    return table


def parse_ip_neigh(output: str) -> dict[str, str]:
    return _collect(_IP_NEIGH_PATTERN.findall(output))


def parse_arp_unix(output: str) -> dict[str, str]:
    matches = _ARP_BSD_PATTERN.findall(output)
    if not matches:
        matches = _ARP_LINUX_PATTERN.findall(output)
    return _collect(matches)


def parse_arp_windows(output: str) -> dict[str, str]:
    return _collect(_ARP_WINDOWS_PATTERN.findall(output))


def default_commands(platform: str | None = None) -> list[tuple[Sequence[str], Parser]]:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return [(("arp", "-a"), parse_arp_windows)]
    if platform.startswith("linux"):
        return [
            (("ip", "neigh", "show"), parse_ip_neigh),
            (("arp", "-n"), parse_arp_unix),
        ]
    return [(("arp", "-an"), parse_arp_unix)]


class SystemNeighborResolver:
    """Reads the OS neighbour table with the first command that works."""

    def __init__(
        self,
        commands: list[tuple[Sequence[str], Parser]] | None = None,
        timeout: float = 5.0,
    ) -> None:
        self._commands = commands if commands is not None else default_commands()
        self._timeout = timeout

    async def resolve(self) -> dict[str, str]:
        for argv, parser in self._commands:
            try:
                output = await self._run(argv)
            except (OSError, asyncio.TimeoutError, RuntimeError) as exc:
                logger.debug("Neighbour command %s failed: %s", " ".join(argv), exc)
                continue
            table = parser(output)
            logger.debug("Neighbour table from %s: %d entries", argv[0], len(table))
            return table

        logger.warning("Failed to read ARP table; continuing without MAC hints")
        return {}

    async def _run(self, argv: Sequence[str]) -> str:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            stdout, _ = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise
        if process.returncode != 0:
            raise RuntimeError(f"exit status {process.returncode}")
        return stdout.decode(errors="replace")


class StaticNeighborResolver:
    """Fixed neighbour table, for tests and for scans without ARP."""

    def __init__(self, table: Mapping[str, str] | None = None) -> None:
        self._table = _collect(list((table or {}).items()))

    async def resolve(self) -> dict[str, str]:
        return dict(self._table)
