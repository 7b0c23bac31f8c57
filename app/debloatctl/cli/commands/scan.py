"""Scan command implementation.

Takes a fresh package snapshot of a device and displays it.
"""

import json
from typing import Annotated

import typer

from debloatctl.cli.session import get_engine, resolve_device
from debloatctl.core.errors import ExecutionFailure
from debloatctl.models.package import DeviceSnapshot, Package, PackageState, SafetyTier
from debloatctl.utils.formatting import (
    console,
    create_package_table,
    format_package_row,
    print_error,
    print_info,
    print_warning,
)

app = typer.Typer(
    help="Scan a device for installed packages.",
    invoke_without_command=True,
)


def _filter_packages(
    snapshot: DeviceSnapshot,
    state: PackageState | None,
    tier: SafetyTier | None,
    system_only: bool,
) -> list[Package]:
    packages = sorted(snapshot.packages.values(), key=lambda p: p.package_id)
    if state is not None:
        packages = [p for p in packages if p.state == state]
    if tier is not None:
        packages = [p for p in packages if p.tier == tier]
    if system_only:
        packages = [p for p in packages if p.is_system]
    return packages


def _changed_since(previous: DeviceSnapshot, snapshot: DeviceSnapshot) -> list[str]:
    """Packages added, removed, or in a different state than before."""
    ids = previous.packages.keys() | snapshot.packages.keys()
    changed = []
    for package_id in sorted(ids):
        before = previous.get(package_id)
        after = snapshot.get(package_id)
        if before is None or after is None or before.state != after.state:
            changed.append(package_id)
    return changed


@app.callback(invoke_without_command=True)
def scan_packages(
    ctx: typer.Context,
    state: Annotated[
        PackageState | None,
        typer.Option(
            "--state",
            help="Only show packages in this state.",
            case_sensitive=False,
        ),
    ] = None,
    tier: Annotated[
        SafetyTier | None,
        typer.Option(
            "--tier",
            "-t",
            help="Only show packages of this safety tier.",
            case_sensitive=False,
        ),
    ] = None,
    system_only: Annotated[
        bool,
        typer.Option(
            "--system",
            help="Only show pre-installed packages.",
        ),
    ] = False,
    count_only: Annotated[
        bool,
        typer.Option(
            "--count",
            "-c",
            help="Only show package counts.",
        ),
    ] = False,
    limit: Annotated[
        int | None,
        typer.Option(
            "--limit",
            "-n",
            help="Limit number of packages to display.",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Scan a device and display its packages.

    The snapshot is stored and used by later apply commands.

    Examples:
        debloatctl scan                    # All packages
        debloatctl scan --tier safe        # Safe to remove
        debloatctl scan --state disabled   # Currently disabled
        debloatctl scan --json             # JSON output for scripting
    """
    if ctx.invoked_subcommand is not None:
        return

    engine = get_engine()
    device_id = resolve_device(ctx, engine)

    try:
        snapshot = engine.refresh_snapshot(device_id)
    except ExecutionFailure as e:
        print_error(f"Scan of {device_id} failed: {e}")
        raise typer.Exit(code=1) from None

    classifier = engine.classifier_for(device_id)
    if classifier.degraded:
        print_warning("Safety catalog unavailable; every package is treated as unknown.")

    packages = _filter_packages(snapshot, state, tier, system_only)

    if json_output:
        data = {
            "device_id": snapshot.device_id,
            "captured_at": snapshot.captured_at.isoformat(),
            "catalog_version": classifier.catalog_version,
            "packages": [p.to_dict() for p in packages[:limit]],
        }
        console.print_json(json.dumps(data))
        return

    if count_only:
        counts = snapshot.count_by_state()
        console.print(f"[bold]{device_id}[/]: {len(snapshot.packages)} packages")
        for pkg_state, count in counts.items():
            console.print(f"  {pkg_state.value}: {count}")
        console.print(f"  matching filters: {len(packages)}")
        return

    if not packages:
        print_info("No packages match the given filters.")
        return

    table = create_package_table(title=f"Packages on {device_id}")
    for pkg in packages[:limit]:
        table.add_row(*format_package_row(pkg))
    console.print(table)

    if limit is not None and len(packages) > limit:
        print_info(f"Showing {limit} of {len(packages)} packages.")

    previous = engine.previous_snapshot(device_id)
    if previous is not None:
        changed = _changed_since(previous, snapshot)
        print_info(f"{len(changed)} package(s) changed since the previous scan.")
