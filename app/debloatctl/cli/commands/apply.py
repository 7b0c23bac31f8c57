"""Apply command implementation.

Changes the state of selected packages on a device. Every change is
planned against the latest snapshot first; risky packages need an
explicit --override.
"""

from typing import Annotated

import typer

from debloatctl.cli.session import get_engine, resolve_device
from debloatctl.core.engine import DebloatEngine
from debloatctl.core.errors import (
    ExecutionFailure,
    LedgerWriteError,
    PlanError,
    StaleSnapshotError,
    UnsafeWithoutOverrideError,
)
from debloatctl.models.operation import OperationPlan, OperationResult, TargetState
from debloatctl.utils.formatting import (
    console,
    create_plan_table,
    print_error,
    print_info,
    print_result,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Disable, enable, uninstall or restore packages.",
    no_args_is_help=True,
)

PackagesArg = Annotated[
    list[str],
    typer.Argument(help="Package IDs to change."),
]
OverrideOpt = Annotated[
    list[str] | None,
    typer.Option(
        "--override",
        "-o",
        help="Confirm a risky (unsafe or unknown) package. Repeat per package.",
    ),
]
RefreshOpt = Annotated[
    bool,
    typer.Option(
        "--refresh",
        "-r",
        help="Take a fresh snapshot before planning.",
    ),
]
DryRunOpt = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        "-n",
        help="Show what would be done without making changes.",
    ),
]
YesOpt = Annotated[
    bool,
    typer.Option(
        "--yes",
        "-y",
        help="Skip confirmation prompt.",
    ),
]


def run_plan(engine: DebloatEngine, plan: OperationPlan) -> list[OperationResult]:
    """Execute a plan, printing each result as it arrives.

    Raises:
        typer.Exit: If the ledger cannot be written.
    """
    results: list[OperationResult] = []
    try:
        for result in engine.execute(plan):
            print_result(result)
            results.append(result)
    except LedgerWriteError as e:
        print_error(f"{e}. Batch stopped; run 'debloatctl drift' to check the device.")
        raise typer.Exit(code=1) from None
    return results


def report_results(results: list[OperationResult], planned: int) -> None:
    """Print a batch summary and exit non-zero if anything failed."""
    succeeded = sum(1 for r in results if r.success)
    failed = len(results) - succeeded
    skipped = planned - len(results)

    console.print()
    if failed == 0 and skipped == 0:
        print_success(f"{succeeded} operation(s) completed.")
        return

    print_warning(f"{succeeded} succeeded, {failed} failed, {skipped} not run.")
    raise typer.Exit(code=1)


def _apply(
    ctx: typer.Context,
    target: TargetState,
    packages: list[str],
    overrides: list[str] | None,
    refresh: bool,
    dry_run: bool,
    yes: bool,
) -> None:
    engine = get_engine()
    device_id = resolve_device(ctx, engine)

    if refresh:
        try:
            engine.refresh_snapshot(device_id)
        except ExecutionFailure as e:
            print_error(f"Scan of {device_id} failed: {e}")
            raise typer.Exit(code=1) from None

    try:
        plan = engine.plan(device_id, packages, target, overrides or [])
    except UnsafeWithoutOverrideError as e:
        print_error(str(e))
        print_info("Review these packages, then repeat with --override <package> for each.")
        raise typer.Exit(code=1) from None
    except StaleSnapshotError as e:
        print_error(f"{e} (use --refresh or run 'debloatctl scan')")
        raise typer.Exit(code=1) from None
    except PlanError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None

    if plan.is_empty:
        print_info(f"Nothing to do: all selected packages are already {target.resolve().value}.")
        return

    title = "Planned Operations (Dry Run)" if dry_run else "Planned Operations"
    console.print(create_plan_table(plan, title=title))

    destructive = sum(1 for op in plan if op.is_destructive)
    if destructive:
        print_warning(f"{destructive} operation(s) will disable or uninstall packages.")

    if dry_run:
        print_info("\\[dry-run] No changes made.")
        return

    if not yes and not typer.confirm(f"Apply {len(plan)} operation(s) to {device_id}?"):
        print_info("Cancelled.")
        return

    results = run_plan(engine, plan)
    report_results(results, len(plan))


@app.command("disable")
def disable(
    ctx: typer.Context,
    packages: PackagesArg,
    override: OverrideOpt = None,
    refresh: RefreshOpt = False,
    dry_run: DryRunOpt = False,
    yes: YesOpt = False,
) -> None:
    """Disable packages for the primary user.

    Examples:
        debloatctl apply disable com.facebook.katana
        debloatctl apply disable com.vendor.bloat1 --override com.vendor.bloat1
    """
    _apply(ctx, TargetState.DISABLED, packages, override, refresh, dry_run, yes)


@app.command("enable")
def enable(
    ctx: typer.Context,
    packages: PackagesArg,
    override: OverrideOpt = None,
    refresh: RefreshOpt = False,
    dry_run: DryRunOpt = False,
    yes: YesOpt = False,
) -> None:
    """Enable previously disabled packages."""
    _apply(ctx, TargetState.ENABLED, packages, override, refresh, dry_run, yes)


@app.command("uninstall")
def uninstall(
    ctx: typer.Context,
    packages: PackagesArg,
    override: OverrideOpt = None,
    refresh: RefreshOpt = False,
    dry_run: DryRunOpt = False,
    yes: YesOpt = False,
) -> None:
    """Uninstall packages for the primary user (the APK stays on the device)."""
    _apply(ctx, TargetState.UNINSTALLED, packages, override, refresh, dry_run, yes)


@app.command("restore")
def restore(
    ctx: typer.Context,
    packages: PackagesArg,
    override: OverrideOpt = None,
    refresh: RefreshOpt = False,
    dry_run: DryRunOpt = False,
    yes: YesOpt = False,
) -> None:
    """Bring packages back to enabled, whether disabled or uninstalled."""
    _apply(ctx, TargetState.RESTORED, packages, override, refresh, dry_run, yes)
