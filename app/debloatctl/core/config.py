"""Engine configuration and settings.

This module provides the configuration model and I/O functions for the
debloat engine. Configuration is stored in ~/.config/debloatctl/config.toml;
a missing file means all defaults apply.
"""

import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from debloatctl.core.errors import ConfigError
from debloatctl.core.paths import get_config_path


class EngineConfig(BaseModel):
    """Configuration for the debloat engine.

    Attributes:
        adb_path: Path or name of the adb executable.
        command_timeout_seconds: Timeout for a single device command.
        max_retries: Retries for a timed-out operation (non-zero exits are never retried).
        stop_on_failure: Stop a batch at the first failed operation.
        snapshot_max_age_seconds: Oldest snapshot the planner accepts.
        catalog_path: Custom safety catalog. If None, the bundled catalog is used.
    """

    model_config = ConfigDict(extra="forbid")

    adb_path: Annotated[str, Field(min_length=1, description="adb executable")] = "adb"
    command_timeout_seconds: Annotated[
        float,
        Field(gt=0, le=600, description="Timeout per device command in seconds"),
    ] = 30.0
    max_retries: Annotated[
        int,
        Field(ge=0, le=5, description="Retries for timed-out operations"),
    ] = 2
    stop_on_failure: Annotated[
        bool,
        Field(description="Stop a batch at the first failure"),
    ] = False
    snapshot_max_age_seconds: Annotated[
        int,
        Field(ge=1, description="Maximum snapshot age accepted by the planner"),
    ] = 900
    catalog_path: Annotated[
        Path | None,
        Field(description="Custom safety catalog file"),
    ] = None


def load_config(path: Path | None = None) -> EngineConfig:
    """Load engine configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated EngineConfig. Defaults if the file does not exist.

    Raises:
        ConfigError: If the file cannot be read or its content is invalid.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        return EngineConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return EngineConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def save_config(config: EngineConfig, path: Path | None = None) -> Path:
    """Save engine configuration to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        config: The EngineConfig object to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    # TOML has no null; leave unset optional values out
    data = config.model_dump(mode="json", exclude_none=True)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path
