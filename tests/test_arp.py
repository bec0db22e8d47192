from __future__ import annotations

import asyncio
import logging
import sys

import pytest

from wizscan.core.arp import (
    StaticNeighborResolver,
    SystemNeighborResolver,
    default_commands,
    parse_arp_unix,
    parse_arp_windows,
    parse_ip_neigh,
)

IP_NEIGH_OUTPUT = """\
192.168.1.1 dev wlan0 lladdr 74:ac:b9:10:20:30 REACHABLE
192.168.1.23 dev wlan0 lladdr A8:BB:50:1:2:3 STALE
192.168.1.40 dev wlan0  FAILED
192.168.1.255 dev wlan0 lladdr ff:ff:ff:ff:ff:ff PERMANENT
fe80::1 dev wlan0 lladdr 74:ac:b9:10:20:30 router STALE
"""

ARP_LINUX_OUTPUT = """\
Address                  HWtype  HWaddress           Flags Mask            Iface
192.168.1.1              ether   74:ac:b9:10:20:30   C                     wlan0
192.168.1.23             ether   a8:bb:50:01:02:03   C                     wlan0
192.168.1.40                     (incomplete)                              wlan0
"""

ARP_BSD_OUTPUT = """\
? (192.168.1.1) at 74:ac:b9:10:20:30 on en0 ifscope [ethernet]
? (192.168.1.23) at a8:bb:50:1:2:3 on en0 ifscope [ethernet]
? (192.168.1.40) at (incomplete) on en0 ifscope [ethernet]
? (224.0.0.251) at 1:0:5e:0:0:fb on en0 ifscope permanent [ethernet]
"""

ARP_WINDOWS_OUTPUT = """\
Interface: 192.168.1.10 --- 0x7
  Internet Address      Physical Address      Type
  192.168.1.1           74-ac-b9-10-20-30     dynamic
  192.168.1.23          a8-bb-50-01-02-03     dynamic
  192.168.1.255         ff-ff-ff-ff-ff-ff     static
"""

EXPECTED = {
    "192.168.1.1": "74:ac:b9:10:20:30",
    "192.168.1.23": "a8:bb:50:01:02:03",
}


def test_parse_ip_neigh():
    assert parse_ip_neigh(IP_NEIGH_OUTPUT) == EXPECTED


def test_parse_arp_linux():
    assert parse_arp_unix(ARP_LINUX_OUTPUT) == EXPECTED


def test_parse_arp_bsd():
    table = parse_arp_unix(ARP_BSD_OUTPUT)
    assert table["192.168.1.23"] == "a8:bb:50:01:02:03"
    assert "192.168.1.40" not in table
    assert table["224.0.0.251"] == "01:00:5e:00:00:fb"


def test_parse_arp_windows():
    assert parse_arp_windows(ARP_WINDOWS_OUTPUT) == EXPECTED


def test_parsers_tolerate_garbage():
    assert parse_ip_neigh("nothing here") == {}
    assert parse_arp_unix("") == {}
    assert parse_arp_windows("No ARP Entries Found.") == {}


def test_default_commands_per_platform():
    assert [argv for argv, _ in default_commands("win32")] == [("arp", "-a")]
    assert [argv for argv, _ in default_commands("linux")] == [
        ("ip", "neigh", "show"),
        ("arp", "-n"),
    ]
    assert [argv for argv, _ in default_commands("darwin")] == [("arp", "-an")]


def test_system_resolver_falls_through_to_working_command():
    failing = (sys.executable, "-c", "import sys; sys.exit(3)")
    printing = (sys.executable, "-c", f"print({IP_NEIGH_OUTPUT!r})")
    resolver = SystemNeighborResolver(
        commands=[(failing, parse_ip_neigh), (printing, parse_ip_neigh)]
    )

    assert asyncio.run(resolver.resolve()) == EXPECTED


def test_system_resolver_missing_command_gives_empty_table(
    caplog: pytest.LogCaptureFixture,
):
    resolver = SystemNeighborResolver(
        commands=[(("wizscan-no-such-command",), parse_ip_neigh)]
    )

    with caplog.at_level(logging.WARNING, logger="wizscan.core.arp"):
        table = asyncio.run(resolver.resolve())

    assert table == {}
    assert "Failed to read ARP table" in caplog.text


def test_static_resolver_normalises_entries():
    resolver = StaticNeighborResolver(
        {
            "10.0.0.2": "A8-BB-50-01-02-03",
            "10.0.0.3": "ff:ff:ff:ff:ff:ff",
            "10.0.0.4": "not-a-mac",
        }
    )

    assert asyncio.run(resolver.resolve()) == {"10.0.0.2": "a8:bb:50:01:02:03"}
