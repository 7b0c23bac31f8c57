"""Shared helpers for CLI commands.

Builds the engine from the user's configuration and picks the device a
command should act on.
"""

import typer

from debloatctl.core.config import load_config
from debloatctl.core.engine import DebloatEngine
from debloatctl.core.errors import ConfigError, ExecutionFailure
from debloatctl.utils.formatting import print_error


def get_engine() -> DebloatEngine:
    """Create an engine from the user configuration.

    Raises:
        typer.Exit: If the configuration is invalid.
    """
    try:
        config = load_config()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None
    return DebloatEngine(config)


def resolve_device(ctx: typer.Context, engine: DebloatEngine) -> str:
    """Pick the target device.

    Uses ``--device`` if given, otherwise the only attached device.

    Raises:
        typer.Exit: If no device or more than one device is attached.
    """
    obj = ctx.obj or {}
    serial: str | None = obj.get("device")
    if serial:
        return serial

    try:
        attached = engine.devices()
    except ExecutionFailure as e:
        print_error(f"Cannot list devices: {e}")
        raise typer.Exit(code=1) from None

    if not attached:
        print_error("No device attached. Connect a device and enable USB debugging.")
        raise typer.Exit(code=1)
    if len(attached) > 1:
        serials = ", ".join(d.serial for d in attached)
        print_error(f"Several devices attached ({serials}); choose one with --device.")
        raise typer.Exit(code=1)
    return attached[0].serial
