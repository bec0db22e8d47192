"""Fan control commands out to every member of a device group."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from wizscan.core.errors import GroupNotFoundError
from wizscan.core.protocol import WizClient
from wizscan.core.registry import DeviceRegistry
from wizscan.models import Device, GroupControlResult, StateUpdate

logger = logging.getLogger(__name__)


class GroupStore(Protocol):
    def get_group_devices(self, group_id: str) -> list[str] | None: ...


async def _fan_out(
    store: GroupStore,
    registry: DeviceRegistry,
    group_id: str,
    command: Callable[[Device], Awaitable[bool]],
) -> GroupControlResult:
    device_ids = store.get_group_devices(group_id)
    if device_ids is None:
        raise GroupNotFoundError(group_id)

    async def run(device_id: str) -> bool:
        device = registry.get(device_id)
        if device is None:
            logger.warning("Device %s in group %s is not known", device_id, group_id)
            return False
        return await command(device)

    outcomes = await asyncio.gather(*(run(device_id) for device_id in device_ids))
    successes = sum(1 for ok in outcomes if ok)
    return GroupControlResult(
        total=len(device_ids),
        successes=successes,
        failures=len(device_ids) - successes,
    )


async def set_group_power(
    store: GroupStore,
    registry: DeviceRegistry,
    client: WizClient,
    group_id: str,
    power: bool,
) -> GroupControlResult:
    return await _fan_out(
        store, registry, group_id, lambda device: client.set_power(device.ip, power)
    )


async def set_group_state(
    store: GroupStore,
    registry: DeviceRegistry,
    client: WizClient,
    group_id: str,
    update: StateUpdate,
) -> GroupControlResult:
    return await _fan_out(
        store, registry, group_id, lambda device: client.set_state(device.ip, update)
    )
