"""Undo command for reverting recorded operations.

This module provides the `debloatctl undo` command, which reverses the
most recent operations recorded in the device's ledger.
"""

from pathlib import Path
from typing import Annotated

import typer

from debloatctl.cli.commands.apply import report_results, run_plan
from debloatctl.cli.session import get_engine, resolve_device
from debloatctl.core.restore import write_restore_scripts
from debloatctl.utils.formatting import console, create_plan_table, print_error, print_info

app = typer.Typer(
    name="undo",
    help="Undo the last recorded operations.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def undo(
    ctx: typer.Context,
    count: Annotated[
        int,
        typer.Option(
            "--count",
            "-c",
            min=0,
            help="Number of operations to undo.",
        ),
    ] = 1,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            "-n",
            help="Show what would be undone without executing.",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation prompt.",
        ),
    ] = False,
    script: Annotated[
        bool,
        typer.Option(
            "--script",
            help="Write restore.sh/restore.bat instead of executing.",
        ),
    ] = False,
    dest: Annotated[
        Path | None,
        typer.Option(
            "--dest",
            help="Directory for --script output. Defaults to a new state directory.",
        ),
    ] = None,
) -> None:
    """Undo the last recorded operations, most recent first.

    Operations that were already undone are skipped.

    Examples:
        debloatctl undo                  # Undo the last operation
        debloatctl undo -c 5             # Undo the last five
        debloatctl undo -c 5 --dry-run   # Preview only
        debloatctl undo -c 5 --script    # Write restore scripts
        debloatctl undo --script --dest ./restore
    """
    if ctx.invoked_subcommand is not None:
        return

    if dest is not None and not script:
        print_error("--dest requires --script.")
        raise typer.Exit(code=1)

    engine = get_engine()
    device_id = resolve_device(ctx, engine)

    plan = engine.plan_undo(device_id, count)
    if plan.is_empty:
        print_info("Nothing to undo.")
        return

    console.print(create_plan_table(plan, title=f"Undo on {device_id}"))

    if script:
        try:
            paths = write_restore_scripts(plan, dest, adb=engine.config.adb_path)
        except (OSError, RuntimeError) as e:
            print_error(f"Cannot write restore scripts: {e}")
            raise typer.Exit(code=1) from None
        for path in paths:
            print_info(f"Wrote {path}")
        return

    if dry_run:
        print_info("\\[dry-run] No changes made.")
        return

    if not yes and not typer.confirm(f"Undo {len(plan)} operation(s)?"):
        print_info("Cancelled.")
        return

    results = run_plan(engine, plan)
    report_results(results, len(plan))
