"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from debloatctl import __version__
from debloatctl.cli.commands import apply, config, devices, drift, history, scan, undo
from debloatctl.utils.formatting import err_console

app = typer.Typer(
    name="debloatctl",
    help="Safely disable and remove Android bloatware over ADB.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"debloatctl version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool, quiet: bool) -> None:
    """Route library logging through Rich on stderr."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    handler = RichHandler(console=err_console, show_path=False, rich_tracebacks=verbose)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    device: Annotated[
        str | None,
        typer.Option(
            "--device",
            "-s",
            envvar="ANDROID_SERIAL",
            help="Serial of the device to use (required if several are attached).",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
) -> None:
    """debloatctl - Safely disable and remove Android bloatware.

    Classifies installed packages by removal risk, applies changes in
    batches, and records every change so it can be undone.
    """
    configure_logging(verbose, quiet)

    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["device"] = device
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


# Register commands
app.add_typer(devices.app, name="devices")
app.add_typer(scan.app, name="scan")
app.add_typer(apply.app, name="apply")
app.add_typer(undo.app, name="undo")
app.add_typer(history.app, name="history")
app.add_typer(drift.app, name="drift")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
