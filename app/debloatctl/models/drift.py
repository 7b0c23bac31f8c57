"""Drift report models.

A drift report lists the packages whose state on the device no longer
matches what the engine last knew about them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from debloatctl.models.package import PackageState


@dataclass(frozen=True, slots=True)
class DriftChange:
    """A single unexpected package state.

    Attributes:
        package_id: Package that drifted.
        expected: State the engine expected.
        actual: State found on the device, or None if the package vanished.
    """

    package_id: str
    expected: PackageState
    actual: PackageState | None

    @property
    def vanished(self) -> bool:
        """Check if the package is no longer known to the device."""
        return self.actual is None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "package_id": self.package_id,
            "expected": self.expected.value,
            "actual": self.actual.value if self.actual is not None else None,
        }


@dataclass(frozen=True, slots=True)
class DriftReport:
    """Result of reconciling a device against the persisted model.

    Attributes:
        device_id: ADB serial of the device.
        checked_at: When the check ran (timezone-aware).
        unexpected_changes: Drifted packages, sorted by package ID.
    """

    device_id: str
    checked_at: datetime
    unexpected_changes: tuple[DriftChange, ...] = field(default_factory=tuple)

    @property
    def has_drift(self) -> bool:
        """Check if any package drifted."""
        return bool(self.unexpected_changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "device_id": self.device_id,
            "checked_at": self.checked_at.isoformat(),
            "unexpected_changes": [c.to_dict() for c in self.unexpected_changes],
        }
