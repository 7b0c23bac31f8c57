"""Devices command implementation.

Lists attached Android devices.
"""

from typing import Annotated

import typer
from rich.table import Table

from debloatctl.cli.session import get_engine
from debloatctl.core.errors import ExecutionFailure
from debloatctl.utils.formatting import console, print_error, print_info, print_warning

app = typer.Typer(
    help="List attached devices.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def list_attached(
    ctx: typer.Context,
    details: Annotated[
        bool,
        typer.Option(
            "--details",
            "-d",
            help="Read manufacturer and Android version from each device.",
        ),
    ] = False,
) -> None:
    """List attached devices that are ready for commands.

    Offline and unauthorized devices are not shown.

    Examples:
        debloatctl devices
        debloatctl devices --details
    """
    if ctx.invoked_subcommand is not None:
        return

    engine = get_engine()
    try:
        attached = engine.devices()
    except ExecutionFailure as e:
        print_error(f"Cannot list devices: {e}")
        raise typer.Exit(code=1) from None

    if not attached:
        print_info("No devices attached.")
        return

    table = Table(
        title="Attached Devices",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Serial", no_wrap=True)
    table.add_column("Manufacturer")
    table.add_column("Model")
    table.add_column("Android", justify="right")

    for device in attached:
        info = device
        if details:
            try:
                info = engine.device_info(device.serial)
            except ExecutionFailure as e:
                print_warning(f"Cannot read properties of {device.serial}: {e}")
        table.add_row(
            info.serial,
            info.manufacturer or "-",
            info.model or device.model or "-",
            info.android_version or "-",
        )

    console.print(table)
