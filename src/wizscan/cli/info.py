from __future__ import annotations

import typer
from rich.console import Console

from wizscan.core.network import auto_detect_subnet, get_local_interfaces

from .common import build_database, load_settings_or_exit, resolve_config_path_or_exit


def register(app: typer.Typer) -> None:
    @app.command()
    def info() -> None:
        """Show data directory, configuration and network info."""
        settings = load_settings_or_exit()
        db = build_database(settings)
        devices = db.load_all_devices()
        groups = db.list_groups()

        config_path, config_exists = resolve_config_path_or_exit(allow_missing=True)

        console = Console()

        console.print("[bold]wizscan Info[/bold]\n")
        console.print(f"Data directory: {db.path}")
        console.print(f"Device store: {db.devices_path}")
        console.print(f"Group store: {db.groups_path}")
        console.print(f"Config file: {config_path if config_exists else 'defaults'}")

        console.print("\n[bold]Configuration[/bold]")
        network = settings.scanning.default_network
        console.print(f"Default network: {network or 'auto-detect'}")
        console.print(f"Port: {settings.scanning.port}")
        console.print(f"Timeout: {settings.scanning.timeout}s")
        console.print(f"Concurrency: {settings.scanning.concurrency}")
        console.print(f"Stale after: {settings.registry.stale_after_seconds}s")

        console.print("\n[bold]Network[/bold]")
        for interface in get_local_interfaces():
            console.print(f"{interface.name}: {interface.address} ({interface.cidr})")
        console.print(f"Auto-detected subnet: {auto_detect_subnet()}")

        console.print("\n[bold]Statistics[/bold]")
        console.print(f"Devices: {len(devices)}")
        console.print(f"Groups: {len(groups)}")
        if devices:
            latest = max(device.last_seen for device in devices)
            console.print(f"Last seen: {latest:%Y-%m-%d %H:%M:%S}")
