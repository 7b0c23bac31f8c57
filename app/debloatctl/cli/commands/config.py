"""Config command implementation.

Shows and edits the engine configuration and the user's safety tier
overrides.
"""

from typing import Annotated

import typer
from pydantic import ValidationError
from rich.table import Table

from debloatctl.classifier.catalog import (
    UserOverride,
    load_overrides,
    save_overrides,
    validate_pattern,
)
from debloatctl.core.config import EngineConfig, load_config, save_config
from debloatctl.core.errors import CatalogLoadError, ConfigError
from debloatctl.core.paths import get_config_path, get_overrides_path
from debloatctl.models.package import SafetyTier
from debloatctl.utils.formatting import (
    console,
    format_tier,
    print_error,
    print_info,
    print_success,
)

app = typer.Typer(
    help="Show and edit configuration and tier overrides.",
    no_args_is_help=True,
)


def _load_config_or_exit() -> EngineConfig:
    try:
        return load_config()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None


@app.command("show")
def show() -> None:
    """Show the effective configuration and tier overrides."""
    config = _load_config_or_exit()

    table = Table(
        title=f"Configuration ({get_config_path()})",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Key", no_wrap=True)
    table.add_column("Value")
    table.add_column("Description", style="muted")

    for name, field in EngineConfig.model_fields.items():
        value = getattr(config, name)
        table.add_row(name, "-" if value is None else str(value), field.description or "")
    console.print(table)

    try:
        overrides = load_overrides()
    except CatalogLoadError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None

    if not overrides:
        print_info("No tier overrides.")
        return

    override_table = Table(
        title=f"Tier Overrides ({get_overrides_path()})",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    override_table.add_column("Pattern", no_wrap=True)
    override_table.add_column("Tier")
    override_table.add_column("Rationale", style="muted")
    for pattern, override in sorted(overrides.items()):
        override_table.add_row(pattern, format_tier(override.tier), override.rationale)
    console.print(override_table)


@app.command("set")
def set_value(
    key: Annotated[str, typer.Argument(help="Configuration key.")],
    value: Annotated[str, typer.Argument(help="New value.")],
) -> None:
    """Set a configuration value.

    Examples:
        debloatctl config set command_timeout_seconds 60
        debloatctl config set stop_on_failure true
    """
    config = _load_config_or_exit()

    if key not in EngineConfig.model_fields:
        known = ", ".join(EngineConfig.model_fields)
        print_error(f"Unknown key '{key}'. Known keys: {known}")
        raise typer.Exit(code=1)

    data = config.model_dump()
    data[key] = value
    try:
        updated = EngineConfig.model_validate(data)
    except ValidationError as e:
        print_error(f"Invalid value for {key}: {e.errors()[0]['msg']}")
        raise typer.Exit(code=1) from None

    try:
        path = save_config(updated)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None
    print_success(f"{key} = {getattr(updated, key)} (saved to {path})")


@app.command("override")
def override(
    pattern: Annotated[str, typer.Argument(help="Package ID or prefix ending in '*'.")],
    tier: Annotated[
        SafetyTier,
        typer.Argument(help="Tier to assign.", case_sensitive=False),
    ],
    rationale: Annotated[
        str,
        typer.Option("--rationale", "-m", help="Why the tier is changed."),
    ] = "",
) -> None:
    """Assign a safety tier to a package or prefix.

    Overrides take precedence over the bundled catalog.

    Examples:
        debloatctl config override com.vendor.bloat1 safe -m "vendor promo app"
        debloatctl config override "com.vendor.core*" unsafe
    """
    try:
        normalized = validate_pattern(pattern)
        overrides = load_overrides()
        overrides[normalized] = UserOverride(tier=tier, rationale=rationale)
        path = save_overrides(overrides)
    except (ValueError, CatalogLoadError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None
    print_success(f"{normalized} -> {tier.value} (saved to {path})")


@app.command("unoverride")
def unoverride(
    pattern: Annotated[str, typer.Argument(help="Pattern of the override to remove.")],
) -> None:
    """Remove a tier override."""
    try:
        overrides = load_overrides()
        if overrides.pop(pattern.strip(), None) is None:
            print_error(f"No override for '{pattern}'.")
            raise typer.Exit(code=1)
        save_overrides(overrides)
    except CatalogLoadError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None
    print_success(f"Removed override for {pattern.strip()}.")
