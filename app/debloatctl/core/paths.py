"""XDG-compliant path management for debloatctl.

This module provides standardized paths following the XDG Base Directory
Specification for configuration and state storage.

XDG defaults:
- Config: ~/.config/debloatctl/
- State: ~/.local/state/debloatctl/
"""

import os
import re
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "debloatctl"

# Characters allowed in per-device file names (serials may contain ':')
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/debloatctl/ (or XDG_CONFIG_HOME/debloatctl/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_state_dir() -> Path:
    """Get the state directory path.

    State data includes the undo ledger and device snapshots that
    must persist between runs but are not configuration.

    Returns:
        Path to ~/.local/state/debloatctl/ (or XDG_STATE_HOME/debloatctl/).
    """
    return _get_xdg_dir("XDG_STATE_HOME", ".local/state")


def get_config_path() -> Path:
    """Get the engine configuration file path.

    Returns:
        Path to ~/.config/debloatctl/config.toml.
    """
    return get_config_dir() / "config.toml"


def get_overrides_path() -> Path:
    """Get the user safety-tier overrides file path.

    Returns:
        Path to ~/.config/debloatctl/overrides.toml.
    """
    return get_config_dir() / "overrides.toml"


def get_ledger_dir() -> Path:
    """Get the directory holding per-device ledger files.

    Returns:
        Path to ~/.local/state/debloatctl/ledger/.
    """
    return get_state_dir() / "ledger"


def get_snapshot_dir() -> Path:
    """Get the directory holding per-device snapshot files.

    Returns:
        Path to ~/.local/state/debloatctl/snapshots/.
    """
    return get_state_dir() / "snapshots"


def get_restore_dir() -> Path:
    """Get the directory where restore scripts are written.

    Returns:
        Path to ~/.local/state/debloatctl/restore/.
    """
    return get_state_dir() / "restore"


def device_filename(device_id: str, suffix: str) -> str:
    """Build a filesystem-safe file name for a device.

    Args:
        device_id: Device serial (e.g. "emulator-5554" or "10.0.0.5:5555").
        suffix: File suffix including the dot (e.g. ".jsonl").

    Returns:
        File name with unsafe characters replaced by underscores.

    Raises:
        ValueError: If device_id is empty.
    """
    if not device_id:
        msg = "Device ID cannot be empty"
        raise ValueError(msg)
    return _UNSAFE_FILENAME_CHARS.sub("_", device_id) + suffix


def ensure_dir(path: Path, name: str) -> Path:
    """Create directory if it doesn't exist.

    Args:
        path: Directory path to create.
        name: Human-readable name for error messages.

    Returns:
        The created/existing directory path.

    Raises:
        RuntimeError: If directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        msg = f"Cannot create {name} directory {path}: Permission denied"
        raise RuntimeError(msg) from e
    except OSError as e:
        msg = f"Cannot create {name} directory {path}: {e}"
        raise RuntimeError(msg) from e
    return path
