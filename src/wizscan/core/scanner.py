from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from wizscan.core.arp import NeighborResolver, SystemNeighborResolver
from wizscan.core.errors import ScanInProgressError, WizError
from wizscan.core.network import auto_detect_subnet, enumerate_hosts
from wizscan.core.protocol import WizClient, parse_pilot
from wizscan.core.registry import DeviceRegistry, MergeOutcome, build_candidate
from wizscan.core.vendor import VendorClassifier
from wizscan.models import Device, ScanOptions, ScanProgress

logger = logging.getLogger(__name__)

DEFAULT_BATCH_DELAY = 0.01
DEFAULT_PROGRESS_INTERVAL = 10

ProgressCallback = Callable[[ScanProgress], None]


class NetworkScanner:
    """Drives scan passes and exposes the device registry to callers."""

    def __init__(
        self,
        registry: DeviceRegistry,
        client: WizClient | None = None,
        resolver: NeighborResolver | None = None,
        classifier: VendorClassifier | None = None,
        *,
        default_subnet: str | None = None,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
        detect_subnet: Callable[[], str] = auto_detect_subnet,
    ) -> None:
        self.registry = registry
        self.client = client or WizClient()
        self.resolver = resolver or SystemNeighborResolver()
        self.classifier = classifier or VendorClassifier()
        self.default_subnet = default_subnet
        self.batch_delay = batch_delay
        self.progress_interval = max(1, progress_interval)
        self._detect_subnet = detect_subnet
        self._scanning = False
        self._progress_callback: ProgressCallback | None = None

    def on_progress(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register the progress observer; returns a function that removes it."""
        self._progress_callback = callback

        def unsubscribe() -> None:
            if self._progress_callback is callback:
                self._progress_callback = None

        return unsubscribe

    def is_scanning(self) -> bool:
        return self._scanning

    def list_devices(self) -> list[Device]:
        return self.registry.list()

    def get_device(self, device_id: str) -> Device | None:
        return self.registry.get(device_id)

    def update_device(self, device_id: str, fields: dict[str, Any]) -> Device | None:
        return self.registry.update(device_id, fields)

    def remove_stale_devices(self) -> list[str]:
        return self.registry.evict_stale()

    async def scan(self, options: ScanOptions | None = None) -> list[Device]:
        """Probe every host of the subnet; returns devices added or updated."""
        if self._scanning:
            raise ScanInProgressError()
        self._scanning = True
        try:
            return await self._scan(options or ScanOptions())
        finally:
            self._scanning = False

    async def _scan(self, options: ScanOptions) -> list[Device]:
        subnet = options.subnet or self.default_subnet or self._detect_subnet()
        hosts = enumerate_hosts(subnet)
        timeout = options.timeout_ms / 1000
        logger.info(
            "Starting scan on %s (%d hosts, concurrency %d)",
            subnet,
            len(hosts),
            options.concurrency,
        )

        arp_table = await self.resolver.resolve()
        await self.classifier.prepare()

        results: list[Device] = []
        touched: dict[str, Device] = {}
        hosts_scanned = 0
        devices_found = 0

        async def scan_host(ip: str) -> None:
            nonlocal hosts_scanned, devices_found
            try:
                candidate = await self.probe_host(ip, arp_table.get(ip), timeout)
                if candidate is None:
                    return
                merged = self.registry.merge(candidate, persist=False)
                touched[merged.device.id] = merged.device
                if merged.outcome is MergeOutcome.INSERTED:
                    devices_found += 1
                    logger.info("Found device %s at %s", merged.device.id, ip)
                if merged.outcome is not MergeOutcome.REFRESHED:
                    results.append(merged.device)
            finally:
                hosts_scanned += 1
                if hosts_scanned % self.progress_interval == 0:
                    self._emit(
                        ScanProgress(
                            scanning=True,
                            progress=hosts_scanned / len(hosts) * 100,
                            current_host=ip,
                            devices_found=devices_found,
                            hosts_scanned=hosts_scanned,
                            total_hosts=len(hosts),
                        )
                    )

        try:
            for start in range(0, len(hosts), options.concurrency):
                batch = hosts[start : start + options.concurrency]
                outcomes = await asyncio.gather(
                    *(scan_host(ip) for ip in batch), return_exceptions=True
                )
                for ip, outcome in zip(batch, outcomes):
                    if isinstance(outcome, Exception):
                        logger.warning("Unexpected error scanning %s: %r", ip, outcome)
                await asyncio.sleep(self.batch_delay)
        finally:
            self.registry.persist_all(list(touched.values()))

        self._emit(
            ScanProgress(
                scanning=False,
                progress=100.0,
                current_host=None,
                devices_found=devices_found,
                hosts_scanned=hosts_scanned,
                total_hosts=len(hosts),
            )
        )
        logger.info("Scan complete. Found %d new devices", devices_found)
        return results

    async def probe_host(
        self, ip: str, mac_hint: str | None = None, timeout: float | None = None
    ) -> Device | None:
        """Candidate record for ``ip``, or None when nothing answers."""
        try:
            response = await self.client.probe(ip, timeout)
            if response is None:
                return None
            pilot = parse_pilot(response)
            if pilot is None:
                return None

            if mac_hint is None and pilot.mac is None:
                config = await self.client.get_system_config(ip)
                if config is not None and isinstance(config.get("mac"), str):
                    mac_hint = config["mac"]
        except WizError as exc:
            logger.debug("Ignoring %s: %s", ip, exc)
            return None

        return build_candidate(
            ip, pilot, self.classifier, mac_hint=mac_hint, now=self.registry.now()
        )

    async def refresh_devices(self) -> int:
        """Re-read state of every known device; returns how many answered."""
        devices = self.registry.list()

        async def refresh(device: Device) -> bool:
            state = await self.client.get_state(device.ip)
            if state is None:
                return False
            self.registry.update(device.id, {"state": state})
            return True

        answered = await asyncio.gather(*(refresh(device) for device in devices))
        return sum(answered)

    def _emit(self, progress: ScanProgress) -> None:
        callback = self._progress_callback
        if callback is None:
            return
        try:
            callback(progress)
        except Exception:
            logger.exception("Progress callback failed")
