"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from debloatctl.core.theme import get_theme

if TYPE_CHECKING:
    from debloatctl.models.operation import OperationPlan, OperationResult
    from debloatctl.models.package import Package, PackageState, SafetyTier


def _detect_color_system() -> str | None:
    """Use truecolor on interactive terminals, otherwise let Rich decide."""
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def format_tier(tier: SafetyTier) -> str:
    """Format a safety tier with its color."""
    return f"[tier.{tier.value}]{tier.value}[/]"


def format_state(state: PackageState | None) -> str:
    """Format a package state with its color; None means the package is gone."""
    if state is None:
        return "[error]missing[/]"
    return f"[state.{state.value}]{state.value}[/]"


def create_package_table(title: str = "Packages") -> Table:
    """Create a pre-configured table for displaying packages.

    Args:
        title: Table title.

    Returns:
        Rich Table configured for package display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("Package", no_wrap=True)
    table.add_column("Label", style="muted")
    table.add_column("Origin", style="muted")
    table.add_column("State")
    table.add_column("Tier")
    return table


def format_package_row(pkg: Package) -> tuple[str, str, str, str, str]:
    """Format a package as a table row."""
    return (
        f"[text]{pkg.package_id}[/]",
        pkg.label,
        pkg.origin.value,
        format_state(pkg.state),
        format_tier(pkg.tier),
    )


def create_plan_table(plan: OperationPlan, title: str = "Planned Operations") -> Table:
    """Create a table listing the operations of a plan in execution order."""
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("#", justify="right", style="muted")
    table.add_column("Package", no_wrap=True)
    table.add_column("From")
    table.add_column("To")
    table.add_column("Tier")
    table.add_column("Override", justify="center")

    for index, op in enumerate(plan, start=1):
        table.add_row(
            str(index),
            op.package_id,
            format_state(op.from_state),
            format_state(op.to_state),
            format_tier(op.tier),
            "[warning]yes[/]" if op.override_confirmed else "",
        )
    return table


def print_result(result: OperationResult) -> None:
    """Print one line per executed operation."""
    if result.success:
        console.print(f"  [success]✓[/] {result.package_id} -> {result.requested_state.value}")
        return
    detail = result.raw_output.strip().splitlines()
    reason = detail[-1] if detail else result.outcome.value
    console.print(
        f"  [error]✗[/] {result.package_id} ({result.outcome.value}): [muted]{escape(reason)}[/]"
    )


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
