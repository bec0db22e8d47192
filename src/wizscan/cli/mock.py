from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from wizscan.core.protocol import WIZ_PORT
from wizscan.mock_device import run_mock_bulb


def register(app: typer.Typer) -> None:
    @app.command()
    def mock(
        host: str = typer.Option("0.0.0.0", "--host", help="Address to bind"),
        port: int = typer.Option(WIZ_PORT, "--port", "-p", help="Port to listen on"),
        mac: str = typer.Option("a8bb50aabbcc", "--mac", help="MAC address to report"),
    ) -> None:
        """Run a mock WiZ bulb for development."""
        console = Console()
        console.print(f"Starting mock bulb {mac} on {host}:{port}...")
        console.print("Press Ctrl+C to stop.\n")

        try:
            asyncio.run(run_mock_bulb(host=host, port=port, mac=mac))
        except KeyboardInterrupt:
            console.print("\n[green]Mock bulb stopped.[/green]")
