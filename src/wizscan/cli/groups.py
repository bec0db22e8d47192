from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from wizscan.core import GroupNotFoundError, set_group_power, set_group_state
from wizscan.models import GroupControlResult

from .common import (
    build_client,
    build_database,
    build_registry,
    build_update,
    fail,
    load_settings_or_exit,
    run,
)
from .control import PowerChoice

app = typer.Typer(no_args_is_help=True, help="Manage device groups")


def _report(result: GroupControlResult) -> None:
    console = Console()
    console.print(
        f"{result.successes} of {result.total} device(s) succeeded"
        + (f", [red]{result.failures} failed[/red]" if result.failures else "")
    )
    if result.failures:
        raise typer.Exit(1)


@app.command("list")
def list_groups() -> None:
    """List groups and their members."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    groups = db.list_groups()

    console = Console()
    if not groups:
        console.print("No groups defined. Use 'wizscan group create' to add one.")
        return

    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Devices")
    table.add_column("Description")

    for group in groups:
        table.add_row(
            group.id, group.name, ", ".join(group.devices), group.description or ""
        )
    console.print(table)


@app.command("create")
def create_group(
    name: str = typer.Argument(..., help="Group name"),
    group_id: str | None = typer.Option(None, "--id", help="Explicit group id"),
    description: str | None = typer.Option(None, "--description", "-d"),
    color: str | None = typer.Option(None, "--color"),
    icon: str | None = typer.Option(None, "--icon"),
) -> None:
    """Create a group."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    try:
        group = db.create_group(
            name, description=description, color=color, icon=icon, group_id=group_id
        )
    except ValueError as exc:
        fail(str(exc))
    Console().print(f"[green]✓[/green] Created group '{group.name}' ({group.id})")


@app.command("delete")
def delete_group(group_id: str = typer.Argument(..., help="Group id")) -> None:
    """Delete a group."""
    db = build_database(load_settings_or_exit())
    if not db.delete_group(group_id):
        fail(str(GroupNotFoundError(group_id)))
    Console().print(f"[green]✓[/green] Deleted group '{group_id}'")


@app.command("add")
def add_device(
    group_id: str = typer.Argument(..., help="Group id"),
    device_id: str = typer.Argument(..., help="Device id"),
) -> None:
    """Add a device to a group."""
    db = build_database(load_settings_or_exit())
    if not db.add_device_to_group(device_id, group_id):
        fail(str(GroupNotFoundError(group_id)))
    Console().print(f"[green]✓[/green] Added '{device_id}' to '{group_id}'")


@app.command("remove")
def remove_device(
    group_id: str = typer.Argument(..., help="Group id"),
    device_id: str = typer.Argument(..., help="Device id"),
) -> None:
    """Remove a device from a group."""
    db = build_database(load_settings_or_exit())
    if not db.remove_device_from_group(device_id, group_id):
        fail(f"'{device_id}' is not in group '{group_id}'")
    Console().print(f"[green]✓[/green] Removed '{device_id}' from '{group_id}'")


@app.command("power")
def group_power(
    group_id: str = typer.Argument(..., help="Group id"),
    value: PowerChoice = typer.Argument(..., help="on or off"),
) -> None:
    """Switch every device in a group on or off."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    registry = build_registry(settings, db)
    client = build_client(settings)

    try:
        result = run(
            set_group_power(db, registry, client, group_id, value is PowerChoice.ON)
        )
    except GroupNotFoundError as exc:
        fail(str(exc))
    _report(result)


@app.command("set")
def group_set(
    group_id: str = typer.Argument(..., help="Group id"),
    on: bool | None = typer.Option(None, "--on/--off", help="Power state"),
    brightness: int | None = typer.Option(None, "--brightness", "-b"),
    temp: int | None = typer.Option(None, "--temp"),
    rgb: str | None = typer.Option(None, "--rgb", help="Colour as R,G,B"),
    speed: int | None = typer.Option(None, "--speed"),
    scene: int | None = typer.Option(None, "--scene"),
) -> None:
    """Apply the same state change to every device in a group."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    registry = build_registry(settings, db)
    update = build_update(on, brightness, temp, rgb, speed, scene)

    try:
        result = run(
            set_group_state(db, registry, build_client(settings), group_id, update)
        )
    except GroupNotFoundError as exc:
        fail(str(exc))
    _report(result)
