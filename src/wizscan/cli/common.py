from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import typer
from rich.console import Console

from wizscan.config import (
    Settings,
    data_dir_from_settings,
    get_settings,
    oui_path_from_settings,
    resolve_config_path,
)
from wizscan.core import (
    DeviceRegistry,
    IEEERegistry,
    NetworkScanner,
    OUIDatabase,
    StaticNeighborResolver,
    VendorClassifier,
    WizClient,
    WizError,
)
from wizscan.core.network import is_valid_ipv4
from wizscan.models import RGB, StateUpdate
from wizscan.storage import Database

T = TypeVar("T")


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def fail(message: str) -> NoReturn:
    Console(stderr=True).print(f"[red]{message}[/red]")
    raise typer.Exit(1)


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning library errors into a failed exit."""
    try:
        return asyncio.run(coro)
    except (WizError, ValueError) as exc:
        fail(str(exc))


def build_database(settings: Settings, data_dir: Path | None = None) -> Database:
    path = data_dir or data_dir_from_settings(settings)
    return Database(path)


def build_registry(settings: Settings, db: Database) -> DeviceRegistry:
    registry = DeviceRegistry(
        db,
        stale_after=settings.registry.stale_after,
        migrate_identities=settings.registry.migrate_identities,
    )
    registry.load()
    return registry


def build_client(settings: Settings) -> WizClient:
    return WizClient(port=settings.scanning.port, timeout=settings.scanning.timeout)


def build_scanner(
    settings: Settings, registry: DeviceRegistry, use_arp: bool = True
) -> NetworkScanner:
    vendor = settings.vendor
    ieee = None
    if vendor.ieee_registry:
        ieee = IEEERegistry(download=vendor.download_registry)
    oui = OUIDatabase(oui_path_from_settings(settings), registry=ieee)
    classifier = VendorClassifier(oui, keywords=vendor.keywords)
    return NetworkScanner(
        registry,
        client=build_client(settings),
        resolver=None if use_arp else StaticNeighborResolver({}),
        classifier=classifier,
        default_subnet=settings.scanning.default_network,
        batch_delay=settings.scanning.batch_delay,
        progress_interval=settings.scanning.progress_interval,
    )


def resolve_target(registry: DeviceRegistry, target: str) -> str:
    """IP address for a device id or a literal IP."""
    device = registry.get(target)
    if device is not None:
        return device.ip
    if is_valid_ipv4(target):
        return target
    fail(f"Unknown device '{target}'")


def parse_rgb(value: str | None) -> RGB | None:
    if value is None:
        return None
    parts = value.split(",")
    if len(parts) != 3:
        raise typer.BadParameter("Expected R,G,B", param_hint="--rgb")
    try:
        r, g, b = (int(part.strip()) for part in parts)
    except ValueError as exc:
        raise typer.BadParameter("Expected integers", param_hint="--rgb") from exc
    return RGB(r=r, g=g, b=b)


def build_update(
    power: bool | None,
    brightness: int | None,
    temp: int | None,
    rgb: str | None,
    speed: int | None,
    scene: int | None,
) -> StateUpdate:
    update = StateUpdate(
        power=power,
        brightness=brightness,
        color_temp=temp,
        rgb=parse_rgb(rgb),
        speed=speed,
        scene_id=scene,
    )
    if not update.model_dump(exclude_none=True):
        fail("Nothing to set")
    return update
