"""History command for viewing recorded operations.

This module provides the `debloatctl history` command for viewing the
undo ledger of a device.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from debloatctl.cli.session import get_engine, resolve_device
from debloatctl.models.ledger import LedgerEntry
from debloatctl.utils.formatting import console, format_state, print_error, print_info

app = typer.Typer(
    name="history",
    help="View recorded operations.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def history(
    ctx: typer.Context,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            help="Maximum number of entries to show.",
        ),
    ] = 20,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
    export_path: Annotated[
        Path | None,
        typer.Option(
            "--export",
            "-e",
            help="Write the full history as a text audit log.",
        ),
    ] = None,
) -> None:
    """Show recorded operations, newest first.

    Examples:
        debloatctl history               # Last 20 entries
        debloatctl history -n 50         # Last 50 entries
        debloatctl history --json        # JSON output for scripting
        debloatctl history --export log.txt
    """
    if ctx.invoked_subcommand is not None:
        return

    engine = get_engine()
    device_id = resolve_device(ctx, engine)

    if export_path is not None:
        try:
            export_path.write_text(engine.ledger.export_text(device_id), encoding="utf-8")
        except OSError as e:
            print_error(f"Cannot write {export_path}: {e}")
            raise typer.Exit(code=1) from None
        print_info(f"History exported to {export_path}")
        return

    entries = list(reversed(engine.history(device_id)))[:limit]
    if not entries:
        print_info("No history entries found.")
        return

    if json_output:
        console.print_json(json.dumps([e.to_dict() for e in entries]))
        return

    reversed_ids = engine.ledger.reversed_ids(device_id)
    _print_table(device_id, entries, reversed_ids)


def _print_table(device_id: str, entries: list[LedgerEntry], reversed_ids: set[str]) -> None:
    """Print history as Rich table."""
    table = Table(
        title=f"History of {device_id}",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("ID", style="muted")
    table.add_column("Timestamp")
    table.add_column("Package", no_wrap=True)
    table.add_column("From")
    table.add_column("To")
    table.add_column("Note", style="muted")

    for entry in entries:
        if entry.is_undo:
            note = f"undo of {entry.reverses}"
        elif entry.id in reversed_ids:
            note = "undone"
        else:
            note = ""
        table.add_row(
            entry.id,
            _format_timestamp(entry.timestamp),
            entry.package_id,
            format_state(entry.inverse_operation.to_state),
            format_state(entry.operation.requested_state),
            note,
        )

    console.print(table)


def _format_timestamp(iso_timestamp: str) -> str:
    """Format ISO timestamp as YYYY-MM-DD HH:MM:SS."""
    try:
        dt = datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00"))
    except ValueError:
        return iso_timestamp
    return dt.strftime("%Y-%m-%d %H:%M:%S")
