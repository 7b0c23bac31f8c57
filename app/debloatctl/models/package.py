"""Package models for device inventory and classification.

This module defines the core data structures for representing
Android packages and point-in-time snapshots of a device.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any


class PackageOrigin(str, Enum):
    """Where a package was installed from.

    Attributes:
        SYSTEM: Pre-installed on a read-only partition (system, product, vendor).
        USER: Installed by the user into /data.
    """

    SYSTEM = "system"
    USER = "user"


class PackageState(str, Enum):
    """Current state of a package for the primary user.

    Attributes:
        ENABLED: Installed and enabled.
        DISABLED: Installed but disabled for the user.
        UNINSTALLED: Uninstalled for the user; the APK stays on the device.
    """

    ENABLED = "enabled"
    DISABLED = "disabled"
    UNINSTALLED = "uninstalled"


class SafetyTier(str, Enum):
    """How risky it is to disable or remove a package.

    Attributes:
        SAFE: Removal has no known side effects.
        ADVANCED: Removal may break features the user relies on.
        UNSAFE: Core system component; removal can brick the device.
        UNKNOWN: Not in the catalog.
    """

    SAFE = "safe"
    ADVANCED = "advanced"
    UNSAFE = "unsafe"
    UNKNOWN = "unknown"

    @property
    def risk_rank(self) -> int:
        """Ordering key, lowest risk first."""
        return _RISK_RANK[self]

    @property
    def requires_override(self) -> bool:
        """Check if operations on this tier need explicit confirmation."""
        return self in (SafetyTier.UNSAFE, SafetyTier.UNKNOWN)


_RISK_RANK: dict[SafetyTier, int] = {
    SafetyTier.SAFE: 0,
    SafetyTier.ADVANCED: 1,
    SafetyTier.UNKNOWN: 2,
    SafetyTier.UNSAFE: 3,
}


@dataclass(frozen=True, slots=True)
class Package:
    """Represents a package discovered on a device.

    Attributes:
        package_id: Reverse-domain identifier (e.g., 'com.facebook.katana').
        label: Human-readable display name.
        origin: Whether the package ships with the system image.
        state: Current enabled/disabled/uninstalled state.
        tier: Safety tier assigned by the classifier.
        apk_path: Path of the base APK on the device (if known).
    """

    package_id: str
    label: str
    origin: PackageOrigin
    state: PackageState
    tier: SafetyTier = SafetyTier.UNKNOWN
    apk_path: str | None = field(default=None)

    def __post_init__(self) -> None:
        """Validate package data after initialization."""
        if not self.package_id:
            msg = "Package ID cannot be empty"
            raise ValueError(msg)

    @property
    def is_system(self) -> bool:
        """Check if the package ships with the system image."""
        return self.origin == PackageOrigin.SYSTEM

    def with_state(self, state: PackageState) -> Package:
        """Return a copy of this package in a new state."""
        return replace(self, state=state)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        result: dict[str, Any] = {
            "package_id": self.package_id,
            "label": self.label,
            "origin": self.origin.value,
            "state": self.state.value,
            "tier": self.tier.value,
        }
        if self.apk_path is not None:
            result["apk_path"] = self.apk_path
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Package:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If an enum value is invalid.
        """
        return cls(
            package_id=data["package_id"],
            label=data.get("label", ""),
            origin=PackageOrigin(data["origin"]),
            state=PackageState(data["state"]),
            tier=SafetyTier(data.get("tier", SafetyTier.UNKNOWN.value)),
            apk_path=data.get("apk_path"),
        )


@dataclass(frozen=True, slots=True)
class DeviceSnapshot:
    """Immutable point-in-time view of the packages on one device.

    A snapshot is never modified; successful operations produce a new
    snapshot that supersedes the previous one.

    Attributes:
        device_id: ADB serial of the device.
        captured_at: When the inventory was taken (timezone-aware).
        packages: Read-only mapping from package ID to Package.
    """

    device_id: str
    captured_at: datetime
    packages: MappingProxyType[str, Package]

    def __post_init__(self) -> None:
        """Validate snapshot data and freeze the package mapping."""
        if not self.device_id:
            msg = "Device ID cannot be empty"
            raise ValueError(msg)
        if self.captured_at.tzinfo is None:
            msg = "Snapshot timestamp must be timezone-aware"
            raise ValueError(msg)
        if not isinstance(self.packages, MappingProxyType):
            object.__setattr__(self, "packages", MappingProxyType(dict(self.packages)))

    @classmethod
    def create(
        cls,
        device_id: str,
        packages: list[Package],
        captured_at: datetime | None = None,
    ) -> DeviceSnapshot:
        """Build a snapshot from a list of packages."""
        return cls(
            device_id=device_id,
            captured_at=captured_at or datetime.now(UTC),
            packages=MappingProxyType({p.package_id: p for p in packages}),
        )

    def get(self, package_id: str) -> Package | None:
        """Look up a package by ID."""
        return self.packages.get(package_id)

    def age_seconds(self, now: datetime | None = None) -> float:
        """Seconds elapsed since this snapshot was captured."""
        current = now or datetime.now(UTC)
        return (current - self.captured_at).total_seconds()

    def count_by_state(self) -> dict[PackageState, int]:
        """Count packages per state."""
        counts = dict.fromkeys(PackageState, 0)
        for pkg in self.packages.values():
            counts[pkg.state] += 1
        return counts

    def with_package_state(
        self,
        package_id: str,
        state: PackageState,
        captured_at: datetime | None = None,
    ) -> DeviceSnapshot:
        """Return a superseding snapshot with one package in a new state.

        Raises:
            KeyError: If the package is not part of this snapshot.
        """
        packages = dict(self.packages)
        packages[package_id] = packages[package_id].with_state(state)
        return DeviceSnapshot(
            device_id=self.device_id,
            captured_at=captured_at or datetime.now(UTC),
            packages=MappingProxyType(packages),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "device_id": self.device_id,
            "captured_at": self.captured_at.isoformat(),
            "packages": [p.to_dict() for p in self.packages.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeviceSnapshot:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        return cls.create(
            device_id=data["device_id"],
            packages=[Package.from_dict(p) for p in data["packages"]],
            captured_at=datetime.fromisoformat(data["captured_at"]),
        )
