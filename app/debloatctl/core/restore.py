"""Restore script generation.

Writes shell and batch scripts that replay an undo plan with plain adb,
so packages can be brought back on a machine without debloatctl.
"""

from __future__ import annotations

import logging
import shlex
from datetime import UTC, datetime
from pathlib import Path

from debloatctl.core.commands import commands_for
from debloatctl.core.paths import device_filename, ensure_dir, get_restore_dir
from debloatctl.models.operation import OperationPlan

logger = logging.getLogger(__name__)

SHELL_SCRIPT = "restore.sh"
BATCH_SCRIPT = "restore.bat"


def default_restore_dir(device_id: str, now: datetime | None = None) -> Path:
    """Directory for a new set of restore scripts.

    Example:
        ~/.local/state/debloatctl/restore/20261019-142501-R58M123ABC
    """
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%d-%H%M%S")
    return get_restore_dir() / f"{stamp}-{device_filename(device_id, '')}"


def _command_lines(plan: OperationPlan, adb: str) -> list[list[str]]:
    lines: list[list[str]] = []
    for operation in plan:
        for argv in commands_for(operation):
            lines.append([adb, "-s", plan.device_id, *argv])
    return lines


def render_shell_script(plan: OperationPlan, adb: str = "adb") -> str:
    """Render a POSIX shell script replaying the plan."""
    lines = [
        "#!/bin/sh",
        f"# debloatctl restore script for {plan.device_id}",
        "set -u",
        "",
    ]
    lines.extend(shlex.join(argv) for argv in _command_lines(plan, adb))
    return "\n".join(lines) + "\n"


def render_batch_script(plan: OperationPlan, adb: str = "adb") -> str:
    """Render a Windows batch script replaying the plan."""
    lines = [
        "@echo off",
        f"REM debloatctl restore script for {plan.device_id}",
        "",
    ]
    for argv in _command_lines(plan, adb):
        lines.append(" ".join(f'"{arg}"' if " " in arg else arg for arg in argv))
    lines.append("pause")
    return "\r\n".join(lines) + "\r\n"


def write_restore_scripts(
    plan: OperationPlan,
    dest_dir: Path | None = None,
    adb: str = "adb",
) -> list[Path]:
    """Write restore.sh and restore.bat for a plan.

    Args:
        plan: Plan to replay, typically an undo plan.
        dest_dir: Target directory. If None, a timestamped directory under
                  the state dir is used.
        adb: adb executable to call from the scripts.

    Returns:
        Paths of the written scripts.

    Raises:
        RuntimeError: If the directory cannot be created.
    """
    target = dest_dir if dest_dir is not None else default_restore_dir(plan.device_id)
    ensure_dir(target, "restore")

    shell_path = target / SHELL_SCRIPT
    shell_path.write_text(render_shell_script(plan, adb), encoding="utf-8")
    shell_path.chmod(0o755)

    batch_path = target / BATCH_SCRIPT
    # Batch files need CRLF line endings; newline="" keeps them as rendered
    with batch_path.open("w", encoding="utf-8", newline="") as f:
        f.write(render_batch_script(plan, adb))

    logger.info("Wrote restore scripts for %d operation(s) to %s", len(plan), target)
    return [shell_path, batch_path]
