"""MAC vendor (OUI) lookup used as a secondary trust signal."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

import aiohttp
from mac_vendor_lookup import AsyncMacLookup  # type: ignore[import]

logger = logging.getLogger(__name__)

DEFAULT_VENDOR_KEYWORDS = ("espressif", "wiz", "wizconnected", "signify")

# Chip and brand prefixes seen on WiZ-class bulbs, checked before the IEEE
# registry.
BUILTIN_OUI = {
    "A8BB50": "WiZ IoT Company Limited",
    "D8A011": "WiZ IoT Company Limited",
    "444F8E": "WiZ IoT Company Limited",
    "6C2990": "WiZ IoT Company Limited",
    "001788": "Signify Netherlands B.V.",
    "240AC4": "Espressif Inc.",
    "246F28": "Espressif Inc.",
    "24B2DE": "Espressif Inc.",
    "2C3AE8": "Espressif Inc.",
    "30AEA4": "Espressif Inc.",
    "3C71BF": "Espressif Inc.",
    "4C11AE": "Espressif Inc.",
    "5CCF7F": "Espressif Inc.",
    "600194": "Espressif Inc.",
    "68C63A": "Espressif Inc.",
    "807D3A": "Espressif Inc.",
    "840D8E": "Espressif Inc.",
    "84CCA8": "Espressif Inc.",
    "84F3EB": "Espressif Inc.",
    "8CAAB5": "Espressif Inc.",
    "98F4AB": "Espressif Inc.",
    "A020A6": "Espressif Inc.",
    "A4CF12": "Espressif Inc.",
    "AC67B2": "Espressif Inc.",
    "B4E62D": "Espressif Inc.",
    "BCDDC2": "Espressif Inc.",
    "C44F33": "Espressif Inc.",
    "C82B96": "Espressif Inc.",
    "CC50E3": "Espressif Inc.",
    "DC4F22": "Espressif Inc.",
    "E868E7": "Espressif Inc.",
    "ECFABC": "Espressif Inc.",
    "F4CFA2": "Espressif Inc.",
}


def _clean(mac: str) -> str:
    return mac.upper().replace(":", "").replace("-", "").replace(".", "")


@dataclass(frozen=True)
class VendorVerdict:
    is_known_vendor: bool
    vendor_name: str | None = None


class IEEERegistry:
    """The full IEEE MA-L registry, served by ``mac-vendor-lookup``.

    The registry is cached on disk by the library. It is loaded once, before
    the first lookup, through :meth:`load`; until then every lookup misses.
    """

    def __init__(
        self, backend: AsyncMacLookup | None = None, *, download: bool = True
    ) -> None:
        self._backend = backend or AsyncMacLookup()
        self._download = download
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> bool:
        if self._loaded:
            return True
        if not self._download and not Path(self._backend.cache_path).exists():
            logger.debug("No cached IEEE registry at %s", self._backend.cache_path)
            return False
        try:
            await self._backend.load_vendors()
        except (OSError, asyncio.TimeoutError, aiohttp.ClientError) as exc:
            logger.warning("Failed to load IEEE OUI registry: %s", exc)
            return False
        self._loaded = True
        logger.debug("IEEE OUI registry loaded: %d vendors", len(self))
        return True

    def __len__(self) -> int:
        return len(self._backend.prefixes or {})

    def lookup(self, mac: str) -> str | None:
        if not self._loaded:
            return None
        vendor = (self._backend.prefixes or {}).get(_clean(mac)[:6].encode())
        return vendor.decode("utf-8", errors="replace") if vendor else None


class OUIDatabase:
    """Prefix to vendor table, optionally extended from a JSON file.

    Entries here take precedence over ``registry`` when one is given. The file
    uses the maclookup.app export format:
    ``[{"macPrefix": "00:00:0C", "vendorName": "Cisco Systems, Inc"}, ...]``.
    """

    def __init__(
        self, path: Path | None = None, registry: IEEERegistry | None = None
    ) -> None:
        self._prefixes: dict[str, str] = dict(BUILTIN_OUI)
        self._registry = registry
        if path is not None:
            self._load(path)

    def __len__(self) -> int:
        return len(self._prefixes)

    async def load(self) -> None:
        if self._registry is not None:
            await self._registry.load()

    def _load(self, path: Path) -> None:
        try:
            with path.open("r") as handle:
                entries = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to load OUI database %s: %s", path, exc)
            return
        if not isinstance(entries, list):
            logger.warning("OUI database %s is not a JSON array", path)
            return

        loaded = 0
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            prefix = _clean(entry.get("macPrefix", ""))
            vendor = entry.get("vendorName", "")
            if prefix and vendor:
                self._prefixes[prefix] = vendor
                loaded += 1
        logger.debug("OUI database loaded: %d vendors from %s", loaded, path)

    def lookup(self, mac: str) -> str | None:
        cleaned = _clean(mac)
        # MA-L blocks first, then the longer MA-M and MA-S prefixes
        for length in (6, 7, 9):
            vendor = self._prefixes.get(cleaned[:length])
            if vendor:
                return vendor
        if self._registry is not None:
            return self._registry.lookup(mac)
        return None


class VendorClassifier:
    def __init__(
        self,
        lookup: OUIDatabase | Callable[[str], str | None] | None = None,
        keywords: Iterable[str] = DEFAULT_VENDOR_KEYWORDS,
    ) -> None:
        if lookup is None:
            lookup = OUIDatabase(registry=IEEERegistry(download=False))
        self._database = lookup if isinstance(lookup, OUIDatabase) else None
        self._lookup = lookup.lookup if isinstance(lookup, OUIDatabase) else lookup
        self._keywords = tuple(keyword.lower() for keyword in keywords)

    async def prepare(self) -> None:
        """Load any on-disk or remote vendor data ahead of :meth:`classify`."""
        if self._database is not None:
            await self._database.load()

    def classify(self, mac: str | None) -> VendorVerdict:
        if not mac:
            return VendorVerdict(is_known_vendor=False)
        try:
            vendor = self._lookup(mac)
        except (KeyError, ValueError) as exc:
            logger.debug("Vendor lookup for %s failed: %s", mac, exc)
            return VendorVerdict(is_known_vendor=False)
        if not vendor:
            return VendorVerdict(is_known_vendor=False)

        lowered = vendor.lower()
        is_known = any(keyword in lowered for keyword in self._keywords)
        return VendorVerdict(is_known_vendor=is_known, vendor_name=vendor)
