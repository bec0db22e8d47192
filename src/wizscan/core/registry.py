"""In-memory device registry and the merge policy for scan observations.

The registry is the source of truth for the running process. Every mutation
happens under one lock; the store is written afterwards and a failed write
never rolls back the in-memory change.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Protocol

from wizscan.core.network import normalize_mac
from wizscan.core.protocol import PilotResult
from wizscan.core.vendor import VendorClassifier
from wizscan.models import Confidence, Device, DeviceState

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER = timedelta(minutes=5)
SYNTHETIC_ID_PREFIX = "ip-"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def synthetic_id(ip: str) -> str:
    return f"{SYNTHETIC_ID_PREFIX}{ip}"


class DeviceStore(Protocol):
    def load_all_devices(self) -> list[Device]: ...

    def save_device(self, device: Device) -> None: ...

    def save_devices(self, devices: list[Device]) -> None: ...

    def delete_device(self, device_id: str) -> bool: ...

    def delete_stale(self, threshold: timedelta) -> int: ...


class MergeOutcome(Enum):
    INSERTED = "inserted"
    MERGED = "merged"
    REFRESHED = "refreshed"


@dataclass(frozen=True)
class MergeResult:
    outcome: MergeOutcome
    device: Device


def build_candidate(
    ip: str,
    pilot: PilotResult,
    classifier: VendorClassifier,
    mac_hint: str | None = None,
    now: datetime | None = None,
) -> Device:
    """Turn a successful probe into a device record with a confidence level."""
    mac = normalize_mac(mac_hint) or normalize_mac(pilot.mac)

    confidence = Confidence.HIGH
    if mac is not None and not classifier.classify(mac).is_known_vendor:
        confidence = Confidence.MEDIUM

    return Device(
        id=mac or synthetic_id(ip),
        ip=ip,
        mac=mac,
        confidence=confidence,
        last_seen=now or utcnow(),
        rssi=pilot.rssi,
        state=pilot.to_state(),
    )


def should_replace(existing: Device, candidate: Device) -> bool:
    if candidate.feature_count() > existing.feature_count():
        return True
    return candidate.confidence.rank > existing.confidence.rank


def merge_devices(existing: Device, candidate: Device, now: datetime) -> Device:
    """Field-level union preferring the candidate's values."""
    if Confidence.HIGH in (candidate.confidence, existing.confidence):
        confidence = Confidence.HIGH
    else:
        confidence = existing.confidence

    new, old = candidate.state, existing.state
    return Device(
        id=candidate.id,
        ip=candidate.ip or existing.ip,
        mac=candidate.mac or existing.mac,
        name=existing.name,
        confidence=confidence,
        last_seen=max(existing.last_seen, now),
        rssi=candidate.rssi if candidate.rssi is not None else existing.rssi,
        state=DeviceState(
            power=new.power if new.power is not None else old.power,
            brightness=_prefer(new.brightness, old.brightness),
            color_temp=_prefer(new.color_temp, old.color_temp),
            rgb=_prefer(new.rgb, old.rgb),
            speed=_prefer(new.speed, old.speed),
            scene_id=_prefer(new.scene_id, old.scene_id),
        ),
        groups=list(existing.groups),
    )


def _prefer(first: Any, second: Any) -> Any:
    return first if first is not None else second


class DeviceRegistry:
    def __init__(
        self,
        store: DeviceStore | None = None,
        *,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
        migrate_identities: bool = True,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._stale_after = stale_after
        self._migrate_identities = migrate_identities
        self._clock = clock
        self._lock = threading.Lock()
        self._devices: dict[str, Device] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._devices

    @property
    def stale_after(self) -> timedelta:
        return self._stale_after

    def now(self) -> datetime:
        return self._clock()

    def load(self) -> int:
        """Populate from the store; returns the number of records loaded."""
        if self._store is None:
            return 0
        try:
            devices = self._store.load_all_devices()
        except (OSError, ValueError):
            logger.exception("Error loading devices from store")
            return 0

        with self._lock:
            for device in devices:
                self._devices[device.id] = device
        logger.info("Loaded %d devices from store", len(devices))
        return len(devices)

    def list(self) -> list[Device]:
        with self._lock:
            return [device.model_copy(deep=True) for device in self._devices.values()]

    def get(self, device_id: str) -> Device | None:
        with self._lock:
            device = self._devices.get(device_id)
            return device.model_copy(deep=True) if device is not None else None

    def find_by_ip(self, ip: str) -> Device | None:
        with self._lock:
            for device in self._devices.values():
                if device.ip == ip:
                    return device.model_copy(deep=True)
        return None

    def merge(self, candidate: Device, *, persist: bool = True) -> MergeResult:
        """Reconcile a fresh observation with any record sharing its identity.

        With ``persist=False`` the caller is expected to hand the result to
        :meth:`persist_all` later.
        """
        now = self._clock()
        retired: str | None = None

        with self._lock:
            existing = self._devices.get(candidate.id)
            if self._migrate_identities and candidate.mac is not None:
                retired, existing = self._absorb_synthetic(candidate, existing, now)

            if existing is None:
                device = candidate.model_copy(update={"last_seen": now})
                outcome = MergeOutcome.INSERTED
            elif retired is not None or should_replace(existing, candidate):
                device = merge_devices(existing, candidate, now)
                outcome = MergeOutcome.MERGED
            else:
                device = existing.model_copy(
                    update={"last_seen": max(existing.last_seen, now)}
                )
                outcome = MergeOutcome.REFRESHED
            self._devices[device.id] = device
            snapshot = device.model_copy(deep=True)

        if retired is not None:
            self._delete(retired)
        if persist:
            self._persist(snapshot)
        return MergeResult(outcome, snapshot)

    def _absorb_synthetic(
        self, candidate: Device, existing: Device | None, now: datetime
    ) -> tuple[str | None, Device | None]:
        old_id = synthetic_id(candidate.ip)
        synthetic = self._devices.pop(old_id, None)
        if synthetic is None:
            return None, existing

        logger.info("Device %s now identified as %s", old_id, candidate.id)
        migrated = synthetic.model_copy(
            update={"id": candidate.id, "mac": candidate.mac}
        )
        if existing is None:
            return old_id, migrated
        # Fold the retired record under the one already keyed by MAC
        return old_id, merge_devices(existing, migrated, now)

    def update(self, device_id: str, fields: dict[str, Any]) -> Device | None:
        """Shallow-merge ``fields`` into a record and refresh ``last_seen``."""
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                return None
            data = device.model_dump()
            data.update(fields)
            data["id"] = device_id
            data["last_seen"] = max(device.last_seen, self._clock())
            updated = Device.model_validate(data)
            self._devices[device_id] = updated
            snapshot = updated.model_copy(deep=True)

        self._persist(snapshot)
        return snapshot

    def evict_stale(self, threshold: timedelta | None = None) -> list[str]:
        if threshold is None:
            threshold = self._stale_after
        cutoff = self._clock() - threshold
        with self._lock:
            removed = [
                device_id
                for device_id, device in self._devices.items()
                if device.last_seen < cutoff
            ]
            for device_id in removed:
                del self._devices[device_id]
        if removed:
            logger.info("Removed %d stale devices", len(removed))
        return removed

    def persist_all(self, devices: list[Device]) -> None:
        """Write several records to the store in one go."""
        if self._store is None or not devices:
            return
        try:
            self._store.save_devices(devices)
        except (OSError, ValueError):
            logger.exception("Error saving %d devices to store", len(devices))

    def _persist(self, device: Device) -> None:
        if self._store is None:
            return
        try:
            self._store.save_device(device)
        except (OSError, ValueError):
            logger.exception("Error saving device %s to store", device.id)

    def _delete(self, device_id: str) -> None:
        if self._store is None:
            return
        try:
            self._store.delete_device(device_id)
        except (OSError, ValueError):
            logger.exception("Error deleting device %s from store", device_id)
