from __future__ import annotations

from typing import Annotated

import typer

from wizscan.utils.logging import setup_logging

from . import config as config_cmd
from . import groups as groups_cmd
from .control import register as register_control
from .devices import register as register_devices
from .info import register as register_info
from .init_cmd import register as register_init
from .mock import register as register_mock
from .scan import register as register_scan

app = typer.Typer(
    help="wizscan - discover and control WiZ smart bulbs on the local network",
    no_args_is_help=True,
)

app.add_typer(config_cmd.app, name="config")
app.add_typer(groups_cmd.app, name="group")

register_init(app)
register_scan(app)
register_devices(app)
register_control(app)
register_info(app)
register_mock(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
) -> None:
    """wizscan CLI."""
    setup_logging()

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"wizscan version {get_version('wizscan')}")
        raise typer.Exit()
