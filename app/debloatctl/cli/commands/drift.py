"""Drift command implementation.

Compares a device with the local model and lists unexpected changes,
for example apps re-enabled by a system update.
"""

import json
from typing import Annotated

import typer
from rich.table import Table

from debloatctl.cli.session import get_engine, resolve_device
from debloatctl.core.errors import ExecutionFailure
from debloatctl.utils.formatting import (
    console,
    format_state,
    print_error,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Detect packages changed outside debloatctl.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def drift(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Check a device for drift.

    Nothing on the device is changed; use 'debloatctl apply' to correct.

    Examples:
        debloatctl drift
        debloatctl drift --json
    """
    if ctx.invoked_subcommand is not None:
        return

    engine = get_engine()
    device_id = resolve_device(ctx, engine)

    try:
        report = engine.reconcile(device_id)
    except ExecutionFailure as e:
        print_error(f"Drift check of {device_id} failed: {e}")
        raise typer.Exit(code=1) from None

    if json_output:
        console.print_json(json.dumps(report.to_dict()))
        return

    if not report.has_drift:
        print_success(f"No drift on {device_id}.")
        return

    table = Table(
        title=f"Drift on {device_id}",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Package", no_wrap=True)
    table.add_column("Expected")
    table.add_column("Actual")

    for change in report.unexpected_changes:
        table.add_row(change.package_id, format_state(change.expected), format_state(change.actual))

    console.print(table)
    print_warning(f"{len(report.unexpected_changes)} package(s) changed outside debloatctl.")
