from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from wizscan.core.protocol import PilotResult
from wizscan.core.registry import (
    DeviceRegistry,
    MergeOutcome,
    build_candidate,
    synthetic_id,
)
from wizscan.core.vendor import VendorClassifier
from wizscan.models import Confidence, Device

WIZ_MAC = "a8:bb:50:01:02:03"


class FakeStore:
    def __init__(self, devices: list[Device] | None = None) -> None:
        self.saved: dict[str, Device] = {d.id: d for d in devices or []}
        self.deleted: list[str] = []
        self.batches: list[list[str]] = []
        self.fail_writes = False

    def load_all_devices(self) -> list[Device]:
        return list(self.saved.values())

    def save_device(self, device: Device) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.saved[device.id] = device

    def save_devices(self, devices: list[Device]) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.batches.append([d.id for d in devices])
        for device in devices:
            self.saved[device.id] = device

    def delete_device(self, device_id: str) -> bool:
        self.deleted.append(device_id)
        return self.saved.pop(device_id, None) is not None

    def delete_stale(self, threshold: timedelta) -> int:
        raise AssertionError("registry eviction must not touch the store")


def _classifier() -> VendorClassifier:
    return VendorClassifier(
        lambda mac: "WiZ IoT Company Limited" if mac.startswith("a8") else "Acme"
    )


def _candidate(ip: str, clock, mac_hint: str | None = None, **pilot) -> Device:
    return build_candidate(
        ip,
        PilotResult(**pilot),
        _classifier(),
        mac_hint=mac_hint,
        now=clock(),
    )


def test_build_candidate_identity_and_confidence(clock):
    wiz = _candidate("10.0.0.2", clock, mac_hint="A8-BB-50-01-02-03", state=True)
    assert wiz.id == WIZ_MAC
    assert wiz.confidence is Confidence.HIGH
    assert wiz.state.power is True

    other = _candidate("10.0.0.3", clock, mac_hint="00:11:22:33:44:55")
    assert other.confidence is Confidence.MEDIUM

    anonymous = _candidate("10.0.0.4", clock)
    assert anonymous.id == synthetic_id("10.0.0.4") == "ip-10.0.0.4"
    assert anonymous.mac is None
    assert anonymous.confidence is Confidence.HIGH


def test_build_candidate_reads_mac_from_reply(clock):
    candidate = _candidate(
        "10.0.0.2", clock, mac="a8bb50010203", rssi=-61, dimming=80, temp=2700
    )
    assert candidate.id == WIZ_MAC
    assert candidate.rssi == -61
    assert candidate.state.brightness == 80
    assert candidate.state.color_temp == 2700


def test_merge_inserts_then_refreshes(clock):
    registry = DeviceRegistry(clock=clock)

    first = registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC, dimming=50))
    assert first.outcome is MergeOutcome.INSERTED

    clock.advance(seconds=30)
    again = registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC, dimming=50))

    assert again.outcome is MergeOutcome.REFRESHED
    assert again.device.last_seen == clock()
    assert len(registry) == 1


def test_sparser_observation_keeps_fields_and_refreshes_last_seen(clock):
    registry = DeviceRegistry(clock=clock)
    registry.merge(
        _candidate(
            "10.0.0.2",
            clock,
            mac_hint=WIZ_MAC,
            state=True,
            rssi=-55,
            dimming=70,
            temp=3000,
            sceneId=4,
        )
    )

    clock.advance(minutes=2)
    result = registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC, state=True))

    assert result.outcome is MergeOutcome.REFRESHED
    device = result.device
    assert device.last_seen == clock()
    assert device.rssi == -55
    assert device.state.brightness == 70
    assert device.state.color_temp == 3000
    assert device.state.scene_id == 4
    assert registry.get(WIZ_MAC).last_seen == clock()


def test_merge_replaces_with_richer_observation(clock):
    registry = DeviceRegistry(clock=clock)
    registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC))
    registry.update(WIZ_MAC, {"name": "Desk lamp", "groups": ["office"]})

    richer = _candidate(
        "10.0.0.9", clock, mac=WIZ_MAC, rssi=-50, dimming=30, temp=4000, sceneId=0
    )
    result = registry.merge(richer)

    assert result.outcome is MergeOutcome.MERGED
    device = result.device
    assert device.ip == "10.0.0.9"
    assert device.rssi == -50
    assert device.state.brightness == 30
    assert device.name == "Desk lamp"
    assert device.groups == ["office"]


def test_merge_never_downgrades_confidence(clock):
    registry = DeviceRegistry(clock=clock)
    registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC))

    weaker = _candidate("10.0.0.2", clock, mac_hint=WIZ_MAC, rssi=-70, dimming=20)
    weaker = weaker.model_copy(update={"confidence": Confidence.MEDIUM})
    result = registry.merge(weaker)

    assert result.outcome is MergeOutcome.MERGED
    assert result.device.confidence is Confidence.HIGH


def test_merge_upgrades_confidence_on_higher_rank(clock):
    registry = DeviceRegistry(clock=clock)
    low = _candidate("10.0.0.3", clock, mac_hint="00:11:22:33:44:55")
    assert low.confidence is Confidence.MEDIUM
    registry.merge(low)

    result = registry.merge(low.model_copy(update={"confidence": Confidence.HIGH}))

    assert result.outcome is MergeOutcome.MERGED
    assert result.device.confidence is Confidence.HIGH


def test_last_seen_never_moves_backward(clock):
    registry = DeviceRegistry(clock=clock)
    registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC))
    seen = registry.get(WIZ_MAC).last_seen

    clock.advance(minutes=-10)
    result = registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC, rssi=-40))

    assert result.device.last_seen == seen


def test_identity_migration_folds_synthetic_record(clock):
    store = FakeStore()
    registry = DeviceRegistry(store, clock=clock)
    registry.merge(_candidate("10.0.0.2", clock, dimming=60))
    assert "ip-10.0.0.2" in registry

    clock.advance(seconds=5)
    result = registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC, dimming=60))

    assert [d.id for d in registry.list()] == [WIZ_MAC]
    assert result.device.mac == WIZ_MAC
    assert result.device.state.brightness == 60
    assert store.deleted == ["ip-10.0.0.2"]
    assert set(store.saved) == {WIZ_MAC}


def test_identity_migration_into_existing_mac_record(clock):
    registry = DeviceRegistry(clock=clock)
    registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC))
    registry.update(WIZ_MAC, {"name": "Hall"})
    registry.merge(_candidate("10.0.0.7", clock, dimming=90))

    registry.merge(_candidate("10.0.0.7", clock, mac_hint=WIZ_MAC))

    devices = registry.list()
    assert [d.id for d in devices] == [WIZ_MAC]
    assert devices[0].ip == "10.0.0.7"
    assert devices[0].name == "Hall"
    assert devices[0].state.brightness == 90


def test_identity_migration_disabled_keeps_duplicates(clock):
    store = FakeStore()
    registry = DeviceRegistry(store, migrate_identities=False, clock=clock)
    registry.merge(_candidate("10.0.0.2", clock))
    registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC))

    assert {d.id for d in registry.list()} == {"ip-10.0.0.2", WIZ_MAC}
    assert store.deleted == []


def test_evict_stale_leaves_store_alone(clock):
    store = FakeStore()
    registry = DeviceRegistry(store, clock=clock)
    registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC))
    clock.advance(minutes=4)
    registry.merge(_candidate("10.0.0.3", clock))

    clock.advance(minutes=2)
    removed = registry.evict_stale()

    assert removed == [WIZ_MAC]
    assert [d.id for d in registry.list()] == ["ip-10.0.0.3"]
    assert WIZ_MAC in store.saved
    assert registry.evict_stale(timedelta(seconds=30)) == ["ip-10.0.0.3"]


def test_zero_threshold_evicts_everything_not_seen_now(clock):
    registry = DeviceRegistry(clock=clock)
    registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC))

    clock.advance(seconds=60)

    assert registry.evict_stale(timedelta(0)) == [WIZ_MAC]
    assert len(registry) == 0


def test_deferred_merges_are_written_in_one_batch(clock):
    store = FakeStore()
    registry = DeviceRegistry(store, clock=clock)

    wiz = _candidate("10.0.0.2", clock, mac_hint=WIZ_MAC)
    first = registry.merge(wiz, persist=False)
    second = registry.merge(_candidate("10.0.0.3", clock), persist=False)
    assert store.saved == {}

    registry.persist_all([first.device, second.device])

    assert store.batches == [[WIZ_MAC, "ip-10.0.0.3"]]
    assert set(store.saved) == {WIZ_MAC, "ip-10.0.0.3"}


def test_store_failures_are_logged(clock, caplog: pytest.LogCaptureFixture):
    store = FakeStore()
    store.fail_writes = True
    registry = DeviceRegistry(store, clock=clock)

    with caplog.at_level(logging.ERROR, logger="wizscan.core.registry"):
        result = registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC))

    assert result.outcome is MergeOutcome.INSERTED
    assert WIZ_MAC in registry
    assert "Error saving device" in caplog.text


def test_load_from_store(clock):
    device = Device(id=WIZ_MAC, ip="10.0.0.2", mac=WIZ_MAC, last_seen=clock())
    registry = DeviceRegistry(FakeStore([device]), clock=clock)

    assert registry.load() == 1
    assert registry.get(WIZ_MAC) == device
    assert registry.find_by_ip("10.0.0.2") == device
    assert registry.find_by_ip("10.0.0.99") is None


def test_snapshots_are_copies(clock):
    registry = DeviceRegistry(clock=clock)
    registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC))

    snapshot = registry.get(WIZ_MAC)
    snapshot.groups.append("mutated")
    snapshot.state.power = True

    fresh = registry.get(WIZ_MAC)
    assert fresh.groups == []
    assert fresh.state.power is False


def test_update_merges_fields_and_refreshes_last_seen(clock):
    store = FakeStore()
    registry = DeviceRegistry(store, clock=clock)
    registry.merge(_candidate("10.0.0.2", clock, mac_hint=WIZ_MAC))
    clock.advance(seconds=40)

    updated = registry.update(WIZ_MAC, {"name": "Porch"})

    assert updated is not None
    assert updated.name == "Porch"
    assert updated.last_seen == clock()
    assert store.saved[WIZ_MAC].name == "Porch"
    assert registry.update("missing", {"name": "x"}) is None
