from __future__ import annotations

from datetime import timedelta

import typer
from rich.console import Console

from .common import (
    build_database,
    build_registry,
    build_scanner,
    fail,
    load_settings_or_exit,
    run,
)
from .scan import device_table


def register(app: typer.Typer) -> None:
    @app.command()
    def devices() -> None:
        """List stored devices."""
        settings = load_settings_or_exit()
        db = build_database(settings)
        registry = build_registry(settings, db)

        console = Console()
        known = registry.list()
        if not known:
            console.print("No devices stored yet. Run 'wizscan scan' first.")
            return

        console.print(device_table(known))
        for group in db.list_groups():
            if group.devices:
                members = ", ".join(group.devices)
                console.print(f"[bold]{group.name}[/bold] ({group.id}): {members}")

    @app.command()
    def rename(
        device_id: str = typer.Argument(..., help="Device id"),
        name: str = typer.Argument(..., help="Display name"),
    ) -> None:
        """Set the display name of a stored device."""
        settings = load_settings_or_exit()
        registry = build_registry(settings, build_database(settings))
        scanner = build_scanner(settings, registry)

        if scanner.update_device(device_id, {"name": name}) is None:
            fail(f"Unknown device '{device_id}'")
        Console().print(f"[green]✓[/green] Renamed '{device_id}' to '{name}'")

    @app.command()
    def refresh() -> None:
        """Re-read the state of every stored device."""
        settings = load_settings_or_exit()
        registry = build_registry(settings, build_database(settings))
        scanner = build_scanner(settings, registry)

        answered = run(scanner.refresh_devices())
        Console().print(f"{answered} of {len(registry)} device(s) answered")

    @app.command()
    def evict(
        older_than: int | None = typer.Option(
            None,
            "--older-than",
            help="Age in seconds (defaults to registry.stale_after_seconds)",
        ),
    ) -> None:
        """Remove stored devices that have not been seen recently."""
        settings = load_settings_or_exit()
        db = build_database(settings)
        seconds = settings.registry.stale_after_seconds
        if older_than is not None:
            seconds = older_than

        removed = db.delete_stale(timedelta(seconds=seconds))
        Console().print(f"Removed {removed} device(s) not seen for {seconds}s")
