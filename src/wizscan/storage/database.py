from __future__ import annotations

import json
import os
import threading
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from wizscan.models import Device, Group

DEVICES_FILE = "devices.json"
GROUPS_FILE = "groups.json"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Database:
    """JSON files in the data directory holding devices and groups."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._devices_path = data_dir / DEVICES_FILE
        self._groups_path = data_dir / GROUPS_FILE
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._data_dir

    @property
    def devices_path(self) -> Path:
        return self._devices_path

    @property
    def groups_path(self) -> Path:
        return self._groups_path

    def ensure_dirs(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def init(self) -> None:
        with self._lock:
            self.ensure_dirs()
            if not self._devices_path.exists():
                self._write(self._devices_path, {})
            if not self._groups_path.exists():
                self._write(self._groups_path, {})

    # Devices

    def load_all_devices(self) -> list[Device]:
        """Stored devices with their memberships filled in from the group file."""
        with self._lock:
            devices = self._load_devices()
            groups = self._load_groups()
        memberships: dict[str, list[str]] = {}
        for group_id, group in sorted(groups.items()):
            for device_id in group.devices:
                memberships.setdefault(device_id, []).append(group_id)
        return [
            device.model_copy(update={"groups": memberships.get(device.id, [])})
            for device in devices.values()
        ]

    def get_device(self, device_id: str) -> Device | None:
        with self._lock:
            device = self._load_devices().get(device_id)
        if device is None:
            return None
        return device.model_copy(update={"groups": self.get_device_groups(device_id)})

    def save_device(self, device: Device) -> None:
        self.save_devices([device])

    def save_devices(self, devices: list[Device]) -> None:
        with self._lock:
            stored = self._load_devices()
            for device in devices:
                stored[device.id] = device
            self._save_devices(stored)

    def delete_device(self, device_id: str) -> bool:
        with self._lock:
            devices = self._load_devices()
            if devices.pop(device_id, None) is None:
                return False
            self._save_devices(devices)
            return True

    def delete_stale(self, threshold: timedelta) -> int:
        cutoff = _utcnow() - threshold
        with self._lock:
            devices = self._load_devices()
            fresh = {key: d for key, d in devices.items() if d.last_seen >= cutoff}
            removed = len(devices) - len(fresh)
            if removed:
                self._save_devices(fresh)
            return removed

    # Groups

    def list_groups(self) -> list[Group]:
        with self._lock:
            groups = self._load_groups()
        return sorted(groups.values(), key=lambda group: group.name)

    def get_group(self, group_id: str) -> Group | None:
        with self._lock:
            return self._load_groups().get(group_id)

    def create_group(
        self,
        name: str,
        description: str | None = None,
        color: str | None = None,
        icon: str | None = None,
        group_id: str | None = None,
    ) -> Group:
        now = _utcnow()
        group = Group(
            id=group_id or uuid.uuid4().hex[:12],
            name=name,
            description=description,
            color=color,
            icon=icon,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            groups = self._load_groups()
            if group.id in groups:
                raise ValueError(f"Group '{group.id}' already exists")
            groups[group.id] = group
            self._save_groups(groups)
        return group

    def delete_group(self, group_id: str) -> bool:
        with self._lock:
            groups = self._load_groups()
            if groups.pop(group_id, None) is None:
                return False
            self._save_groups(groups)
            return True

    def add_device_to_group(self, device_id: str, group_id: str) -> bool:
        with self._lock:
            groups = self._load_groups()
            group = groups.get(group_id)
            if group is None:
                return False
            if device_id not in group.devices:
                groups[group_id] = group.model_copy(
                    update={
                        "devices": [*group.devices, device_id],
                        "updated_at": _utcnow(),
                    }
                )
                self._save_groups(groups)
            return True

    def remove_device_from_group(self, device_id: str, group_id: str) -> bool:
        with self._lock:
            groups = self._load_groups()
            group = groups.get(group_id)
            if group is None or device_id not in group.devices:
                return False
            groups[group_id] = group.model_copy(
                update={
                    "devices": [d for d in group.devices if d != device_id],
                    "updated_at": _utcnow(),
                }
            )
            self._save_groups(groups)
            return True

    def get_device_groups(self, device_id: str) -> list[str]:
        with self._lock:
            groups = self._load_groups()
        return sorted(
            gid for gid, group in groups.items() if device_id in group.devices
        )

    def get_group_devices(self, group_id: str) -> list[str] | None:
        group = self.get_group(group_id)
        return None if group is None else list(group.devices)

    # Files

    def _load_devices(self) -> dict[str, Device]:
        data = self._read(self._devices_path)
        try:
            return {key: Device.model_validate(value) for key, value in data.items()}
        except ValidationError as exc:
            raise ValueError(
                f"Invalid devices file: {self._devices_path}\n{exc}"
            ) from exc

    def _save_devices(self, devices: dict[str, Device]) -> None:
        payload = {
            # Memberships live in the group file only
            key: device.model_dump(mode="json", exclude={"groups"})
            for key, device in sorted(devices.items())
        }
        self._write(self._devices_path, payload)

    def _load_groups(self) -> dict[str, Group]:
        data = self._read(self._groups_path)
        try:
            return {key: Group.model_validate(value) for key, value in data.items()}
        except ValidationError as exc:
            raise ValueError(
                f"Invalid groups file: {self._groups_path}\n{exc}"
            ) from exc

    def _save_groups(self, groups: dict[str, Group]) -> None:
        payload = {
            key: group.model_dump(mode="json") for key, group in sorted(groups.items())
        }
        self._write(self._groups_path, payload)

    def _read(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with path.open("r") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {path}\n{exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {path}")
        return data

    def _write(self, path: Path, payload: dict[str, Any]) -> None:
        self.ensure_dirs()
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with tmp_path.open("w") as handle:
            json.dump(payload, handle, indent=2)
        os.replace(tmp_path, path)
