from __future__ import annotations

import logging

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from wizscan.core import NetworkScanner
from wizscan.models import Device, ScanOptions, ScanProgress

from .common import (
    build_database,
    build_registry,
    build_scanner,
    fail,
    load_settings_or_exit,
    run,
)

logger = logging.getLogger(__name__)


def device_table(devices: list[Device]) -> Table:
    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("IP", style="green")
    table.add_column("MAC")
    table.add_column("Name", style="yellow")
    table.add_column("Confidence")
    table.add_column("Power")
    table.add_column("Brightness")
    table.add_column("Last seen")

    for device in sorted(devices, key=lambda d: d.ip):
        state = device.state
        table.add_row(
            device.id,
            device.ip,
            device.mac or "",
            device.name or "",
            device.confidence.value,
            "on" if state.power else "off",
            "" if state.brightness is None else f"{state.brightness}%",
            device.last_seen.strftime("%Y-%m-%d %H:%M:%S"),
        )
    return table


async def _scan_with_progress(
    scanner: NetworkScanner, options: ScanOptions, console: Console
) -> list[Device]:
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("{task.fields[found]} found"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Scanning", total=None, found=0)

        def update(snapshot: ScanProgress) -> None:
            progress.update(
                task,
                total=snapshot.total_hosts,
                completed=snapshot.hosts_scanned,
                found=snapshot.devices_found,
            )

        unsubscribe = scanner.on_progress(update)
        try:
            return await scanner.scan(options)
        finally:
            unsubscribe()


def register(app: typer.Typer) -> None:
    @app.command()
    def scan(
        subnet: str | None = typer.Argument(
            None,
            help=(
                "Subnet to scan (e.g., 192.168.1.0/24). "
                "Uses config default or the local interface if omitted."
            ),
        ),
        concurrency: int | None = typer.Option(
            None, "--concurrency", "-c", help="Hosts probed at once (5-50)"
        ),
        timeout: float | None = typer.Option(
            None, "--timeout", "-t", help="Per-host reply timeout in seconds"
        ),
        no_arp: bool = typer.Option(
            False, "--no-arp", help="Skip reading the system neighbour table"
        ),
    ) -> None:
        """Scan a subnet for WiZ bulbs."""
        console = Console()

        settings = load_settings_or_exit()
        db = build_database(settings)
        registry = build_registry(settings, db)
        scanner = build_scanner(settings, registry, use_arp=not no_arp)

        if concurrency is None:
            concurrency = settings.scanning.concurrency
        if timeout is None:
            timeout = settings.scanning.timeout
        try:
            options = ScanOptions(
                subnet=subnet,
                concurrency=concurrency,
                timeout_ms=int(timeout * 1000),
            )
        except ValidationError as exc:
            fail(str(exc))

        logger.info(
            "Scan settings: timeout=%dms, concurrency=%d",
            options.timeout_ms,
            options.concurrency,
        )
        found = run(_scan_with_progress(scanner, options, console))

        if not found:
            console.print("No new or updated bulbs found.")
        else:
            console.print(device_table(found))
            console.print(f"\n[green]Found {len(found)} bulb(s)[/green]")
        console.print(f"Known devices: {len(registry)} (stored in {db.devices_path})")
