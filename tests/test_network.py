from __future__ import annotations

import socket
from types import SimpleNamespace

import pytest

from wizscan.core import network
from wizscan.core.errors import InvalidCIDRError, SubnetTooLargeError
from wizscan.core.network import (
    calculate_cidr,
    enumerate_hosts,
    int_to_ip,
    ip_to_int,
    is_valid_ipv4,
    normalize_mac,
    parse_cidr,
)


@pytest.mark.parametrize("ip", ["0.0.0.0", "255.255.255.255", "192.168.1.10"])
def test_ip_int_round_trip(ip: str):
    assert int_to_ip(ip_to_int(ip)) == ip


def test_ip_to_int_uses_network_byte_order():
    assert ip_to_int("1.2.3.4") == 0x01020304
    assert int_to_ip(0xC0A80001) == "192.168.0.1"


@pytest.mark.parametrize(
    "text", ["192.168.1.01", "256.1.1.1", "1.2.3", "1.2.3.4.5", "a.b.c.d", "1.2.3.-1"]
)
def test_is_valid_ipv4_rejects_non_canonical(text: str):
    assert not is_valid_ipv4(text)


def test_parse_cidr_24():
    info = parse_cidr("192.168.1.0/24")
    assert info.network == "192.168.1.0"
    assert info.prefix_length == 24
    assert info.first_host == "192.168.1.1"
    assert info.last_host == "192.168.1.254"
    assert info.total_hosts == 254


def test_parse_cidr_masks_host_bits():
    info = parse_cidr("192.168.1.77/24")
    assert info.network == "192.168.1.0"
    assert info.first_host == "192.168.1.1"


@pytest.mark.parametrize("cidr", ["10.0.0.1/32", "10.0.0.0/31"])
def test_parse_cidr_without_usable_hosts(cidr: str):
    assert parse_cidr(cidr).total_hosts == 0
    assert enumerate_hosts(cidr) == []


@pytest.mark.parametrize(
    "cidr", ["192.168.1.0", "192.168.1.0/33", "192.168.1.0/x", "300.1.1.0/24"]
)
def test_parse_cidr_rejects_invalid(cidr: str):
    with pytest.raises(InvalidCIDRError):
        parse_cidr(cidr)


def test_invalid_cidr_is_value_error():
    with pytest.raises(ValueError):
        parse_cidr("not-a-subnet")


def test_enumerate_hosts_30():
    assert enumerate_hosts("10.1.2.0/30") == ["10.1.2.1", "10.1.2.2"]


def test_enumerate_hosts_allows_16():
    hosts = enumerate_hosts("10.20.0.0/16")
    assert len(hosts) == 65534
    assert hosts[0] == "10.20.0.1"
    assert hosts[-1] == "10.20.255.254"


def test_enumerate_hosts_rejects_15():
    with pytest.raises(SubnetTooLargeError):
        enumerate_hosts("10.20.0.0/15")


def test_calculate_cidr():
    assert calculate_cidr("192.168.1.42", "255.255.255.0") == "192.168.1.0/24"
    assert calculate_cidr("10.3.7.9", "255.255.240.0") == "10.3.0.0/20"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("A8:BB:50:01:02:03", "a8:bb:50:01:02:03"),
        ("a8-bb-50-01-02-03", "a8:bb:50:01:02:03"),
        ("a8:bb:50:1:2:3", "a8:bb:50:01:02:03"),
        ("a8bb50010203", "a8:bb:50:01:02:03"),
        ("a8:bb:50:01:02", None),
        ("zz:bb:50:01:02:03", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_mac(raw: str | None, expected: str | None):
    assert normalize_mac(raw) == expected


def _addr(address: str, netmask: str | None, family=socket.AF_INET):
    return SimpleNamespace(family=family, address=address, netmask=netmask)


def test_get_local_interfaces_skips_loopback_and_ipv6(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(
        network.psutil,
        "net_if_addrs",
        lambda: {
            "lo": [_addr("127.0.0.1", "255.0.0.0")],
            "eth0": [
                _addr("fe80::1", "ffff:ffff:ffff:ffff::", family=socket.AF_INET6),
                _addr("192.168.0.5", "255.255.255.0"),
            ],
            "ppp0": [_addr("10.64.0.2", None)],
        },
    )

    interfaces = network.get_local_interfaces()

    assert [(i.name, i.cidr) for i in interfaces] == [("eth0", "192.168.0.0/24")]


def test_auto_detect_prefers_physical_192_168(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(
        network.psutil,
        "net_if_addrs",
        lambda: {
            "docker0": [_addr("172.17.0.1", "255.255.0.0")],
            "vEthernet (WSL)": [_addr("192.168.80.1", "255.255.240.0")],
            "wlan0": [_addr("192.168.50.23", "255.255.255.0")],
        },
    )

    assert network.auto_detect_subnet() == "192.168.50.0/24"


def test_auto_detect_falls_back_to_first_interface(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(
        network.psutil,
        "net_if_addrs",
        lambda: {"eth0": [_addr("10.0.5.9", "255.255.255.0")]},
    )

    assert network.auto_detect_subnet() == "10.0.5.0/24"


def test_auto_detect_default_without_interfaces(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(network.psutil, "net_if_addrs", lambda: {})

    assert network.auto_detect_subnet() == "192.168.1.0/24"
