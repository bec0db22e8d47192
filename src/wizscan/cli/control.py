from __future__ import annotations

from enum import Enum

import typer
from rich.console import Console
from rich.table import Table

from wizscan.models import DeviceState

from .common import (
    build_client,
    build_database,
    build_registry,
    build_update,
    fail,
    load_settings_or_exit,
    resolve_target,
    run,
)


class PowerChoice(str, Enum):
    ON = "on"
    OFF = "off"


def state_table(ip: str, state: DeviceState) -> Table:
    table = Table(title=ip)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Power", "on" if state.power else "off")
    if state.brightness is not None:
        table.add_row("Brightness", f"{state.brightness}%")
    if state.color_temp is not None:
        table.add_row("Color temp", f"{state.color_temp}K")
    if state.rgb is not None:
        table.add_row("RGB", f"{state.rgb.r},{state.rgb.g},{state.rgb.b}")
    if state.scene_id:
        table.add_row("Scene", str(state.scene_id))
    if state.speed is not None:
        table.add_row("Speed", str(state.speed))
    return table


def _report(ok: bool, target: str, action: str) -> None:
    if not ok:
        fail(f"{target} did not accept {action}")
    Console().print(f"[green]✓[/green] {target}: {action}")


def register(app: typer.Typer) -> None:
    @app.command()
    def state(
        target: str = typer.Argument(..., help="Device id or IP address"),
    ) -> None:
        """Read the current state of a bulb."""
        settings = load_settings_or_exit()
        registry = build_registry(settings, build_database(settings))
        ip = resolve_target(registry, target)

        current = run(build_client(settings).get_state(ip))
        if current is None:
            fail(f"No response from {ip}")

        device = registry.find_by_ip(ip)
        if device is not None:
            registry.update(device.id, {"state": current})
        Console().print(state_table(ip, current))

    @app.command()
    def power(
        target: str = typer.Argument(..., help="Device id or IP address"),
        value: PowerChoice = typer.Argument(..., help="on or off"),
    ) -> None:
        """Switch a bulb on or off."""
        settings = load_settings_or_exit()
        registry = build_registry(settings, build_database(settings))
        ip = resolve_target(registry, target)

        ok = run(build_client(settings).set_power(ip, value is PowerChoice.ON))
        _report(ok, target, f"power {value.value}")

    @app.command("set")
    def set_state(
        target: str = typer.Argument(..., help="Device id or IP address"),
        on: bool | None = typer.Option(None, "--on/--off", help="Power state"),
        brightness: int | None = typer.Option(
            None, "--brightness", "-b", help="Brightness percent (10-100)"
        ),
        temp: int | None = typer.Option(
            None, "--temp", help="Colour temperature in kelvin (2200-6500)"
        ),
        rgb: str | None = typer.Option(None, "--rgb", help="Colour as R,G,B"),
        speed: int | None = typer.Option(
            None, "--speed", help="Scene speed (0-200)"
        ),
        scene: int | None = typer.Option(None, "--scene", help="Scene id"),
    ) -> None:
        """Change several state fields of a bulb in one request."""
        settings = load_settings_or_exit()
        registry = build_registry(settings, build_database(settings))
        ip = resolve_target(registry, target)
        update = build_update(on, brightness, temp, rgb, speed, scene)

        ok = run(build_client(settings).set_state(ip, update))
        fields = ", ".join(sorted(update.model_dump(exclude_none=True)))
        _report(ok, target, f"set {fields}")

    @app.command()
    def scene(
        target: str = typer.Argument(..., help="Device id or IP address"),
        scene_id: int = typer.Argument(..., help="Scene id"),
        speed: int = typer.Option(100, "--speed", help="Scene speed (0-200)"),
    ) -> None:
        """Start a built-in scene on a bulb."""
        settings = load_settings_or_exit()
        registry = build_registry(settings, build_database(settings))
        ip = resolve_target(registry, target)

        ok = run(build_client(settings).set_scene(ip, scene_id, speed=speed))
        _report(ok, target, f"scene {scene_id}")
