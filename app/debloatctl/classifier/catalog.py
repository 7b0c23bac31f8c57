"""Safety catalog models and file I/O.

The safety catalog is a versioned TOML dataset bundled with the package
that maps package identifiers (exact or prefix patterns) to safety tiers.
Manufacturer packs in ``data/oem/`` refine it for specific vendors, and
user overrides in ~/.config/debloatctl/overrides.toml take precedence.
"""

import logging
import os
import re
import tomllib
from importlib import resources
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated, Any, Literal

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from debloatctl.core.errors import CatalogLoadError
from debloatctl.core.paths import get_overrides_path
from debloatctl.models.package import SafetyTier

logger = logging.getLogger(__name__)

RecommendedAction = Literal["disable", "uninstall", "keep"]

PREFIX_WILDCARD = "*"


def validate_pattern(pattern: str) -> str:
    """Normalize a catalog pattern, rejecting misplaced or bare wildcards."""
    pattern = pattern.strip()
    if not pattern:
        msg = "pattern cannot be empty"
        raise ValueError(msg)
    if PREFIX_WILDCARD in pattern[:-1]:
        msg = f"'{pattern}': wildcard is only allowed at the end"
        raise ValueError(msg)
    if pattern == PREFIX_WILDCARD:
        msg = "a bare '*' pattern would match every package"
        raise ValueError(msg)
    return pattern


class CatalogEntry(BaseModel):
    """One rule in the safety catalog.

    Attributes:
        pattern: Exact package ID, or a prefix followed by '*'.
        tier: Safety tier for matching packages.
        rationale: Why the package has this tier.
        recommended_action: Suggested action for matching packages.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    pattern: Annotated[str, Field(description="Package ID or prefix pattern ending in '*'")]
    tier: Annotated[SafetyTier, Field(description="Safety tier")]
    rationale: Annotated[str, Field(description="Reason for the tier")] = ""
    recommended_action: Annotated[
        RecommendedAction | None,
        Field(description="Suggested action"),
    ] = None

    @field_validator("pattern")
    @classmethod
    def check_pattern(cls, v: str) -> str:
        """Validate wildcard placement."""
        return validate_pattern(v)

    @field_validator("tier")
    @classmethod
    def validate_tier(cls, v: SafetyTier) -> SafetyTier:
        """Catalog entries must assign a concrete tier."""
        if v == SafetyTier.UNKNOWN:
            msg = "catalog entries cannot use the 'unknown' tier"
            raise ValueError(msg)
        return v

    @property
    def is_prefix(self) -> bool:
        """Check if this entry matches by prefix."""
        return self.pattern.endswith(PREFIX_WILDCARD)

    @property
    def prefix(self) -> str:
        """Pattern without the trailing wildcard."""
        return self.pattern.rstrip(PREFIX_WILDCARD)


class SafetyCatalog(BaseModel):
    """Versioned list of catalog entries.

    Attributes:
        version: Dataset version string.
        entries: Catalog rules in file order.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    version: Annotated[str, Field(min_length=1, description="Catalog version")]
    entries: Annotated[tuple[CatalogEntry, ...], Field(description="Catalog rules")] = ()

    def merged_with(self, pack: "SafetyCatalog") -> "SafetyCatalog":
        """Layer another catalog on top of this one.

        Entries of ``pack`` replace entries of this catalog with the same
        pattern. The result's version records both versions.
        """
        by_pattern: dict[str, CatalogEntry] = {e.pattern: e for e in self.entries}
        for entry in pack.entries:
            by_pattern[entry.pattern] = entry
        return SafetyCatalog(
            version=f"{self.version}+{pack.version}",
            entries=tuple(by_pattern.values()),
        )


class UserOverride(BaseModel):
    """User-defined tier for a package or prefix.

    The tier is always explicit; there is no default.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    tier: Annotated[SafetyTier, Field(description="Tier chosen by the user")]
    rationale: Annotated[str, Field(description="Why the user changed the tier")] = ""


def get_bundled_catalog_path() -> Path:
    """Get the bundled catalog path.

    Returns:
        Path to the bundled data/catalog.toml
    """
    return resources.files("debloatctl.data").joinpath("catalog.toml")  # type: ignore[return-value]


def get_bundled_oem_dir() -> Path:
    """Get the directory holding bundled manufacturer packs."""
    return resources.files("debloatctl.data").joinpath("oem")  # type: ignore[return-value]


def normalize_manufacturer(manufacturer: str) -> str:
    """Normalize a manufacturer name for use as a pack file name.

    Example:
        >>> normalize_manufacturer("Xiaomi Inc.")
        'xiaomi-inc'
    """
    norm = re.sub(r"\s+", "-", manufacturer.strip().lower())
    return re.sub(r"[^a-z0-9-]", "", norm)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise CatalogLoadError(f"Catalog not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise CatalogLoadError(f"Invalid TOML syntax in {path}: {e}") from e
    except OSError as e:
        raise CatalogLoadError(f"Failed to read {path}: {e}") from e


def load_catalog(path: Path | None = None) -> SafetyCatalog:
    """Load and validate a safety catalog.

    Args:
        path: Catalog file. If None, uses the bundled catalog.

    Returns:
        Validated SafetyCatalog.

    Raises:
        CatalogLoadError: If the file is missing, unparsable, or invalid.
    """
    catalog_path = path or get_bundled_catalog_path()
    data = _read_toml(Path(catalog_path))

    try:
        catalog = SafetyCatalog.model_validate(data)
    except ValidationError as e:
        raise CatalogLoadError(f"Invalid catalog content in {catalog_path}: {e}") from e

    logger.debug("Loaded catalog %s with %d entries", catalog.version, len(catalog.entries))
    return catalog


def load_oem_pack(manufacturer: str, oem_dir: Path | None = None) -> SafetyCatalog | None:
    """Load the manufacturer pack for a device, if one exists.

    Args:
        manufacturer: Value of ro.product.manufacturer.
        oem_dir: Directory of packs. If None, uses the bundled packs.

    Returns:
        SafetyCatalog for the manufacturer, or None if there is no pack.

    Raises:
        CatalogLoadError: If a pack exists but cannot be loaded.
    """
    norm = normalize_manufacturer(manufacturer)
    if not norm:
        logger.debug("Manufacturer %r normalized to empty string, no OEM pack", manufacturer)
        return None

    pack_path = Path(oem_dir or get_bundled_oem_dir()) / f"{norm}.toml"
    if not pack_path.is_file():
        logger.debug("No OEM pack for '%s' at %s", norm, pack_path)
        return None

    return load_catalog(pack_path)


def load_overrides(path: Path | None = None) -> dict[str, UserOverride]:
    """Load user tier overrides.

    Args:
        path: Overrides file. If None, uses the default overrides path.

    Returns:
        Mapping of pattern to override. Empty if the file does not exist.

    Raises:
        CatalogLoadError: If the file exists but is invalid. Ignoring a broken
            overrides file could silently drop a user's 'unsafe' marking.
    """
    overrides_path = path or get_overrides_path()
    if not overrides_path.exists():
        return {}

    data = _read_toml(overrides_path)
    raw: object = data.get("overrides", {})
    if not isinstance(raw, dict):
        raise CatalogLoadError(f"Invalid 'overrides' section in {overrides_path}")

    overrides: dict[str, UserOverride] = {}
    try:
        for pattern, value in raw.items():
            overrides[validate_pattern(pattern)] = UserOverride.model_validate(value)
    except (ValueError, ValidationError) as e:
        raise CatalogLoadError(f"Invalid override in {overrides_path}: {e}") from e

    return overrides


def save_overrides(overrides: dict[str, UserOverride], path: Path | None = None) -> Path:
    """Save user tier overrides atomically.

    Args:
        overrides: Mapping of pattern to override.
        path: Destination. If None, uses the default overrides path.

    Returns:
        Path where the overrides were saved.

    Raises:
        CatalogLoadError: If the file cannot be written.
    """
    overrides_path = path or get_overrides_path()
    overrides_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "overrides": {
            pattern: {"tier": o.tier.value, "rationale": o.rationale}
            for pattern, o in sorted(overrides.items())
        }
    }

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=overrides_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(overrides_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise CatalogLoadError(f"Failed to write overrides: {e}") from e

    return overrides_path
