"""CLI commands for debloatctl.

This package contains all subcommand implementations.
"""

from debloatctl.cli.commands import apply, config, devices, drift, history, scan, undo

__all__ = ["apply", "config", "devices", "drift", "history", "scan", "undo"]
