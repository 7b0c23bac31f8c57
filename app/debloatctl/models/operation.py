"""Operation models for planned and executed package changes.

This module defines data structures for representing package state
changes (disable, enable, uninstall, restore), the plans that group
them, and their execution results.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from debloatctl.models.package import PackageState, SafetyTier


class TargetState(str, Enum):
    """State a user asks a selection of packages to end up in.

    Attributes:
        DISABLED: Disable the package for the user.
        ENABLED: Enable the package.
        UNINSTALLED: Uninstall the package for the user (APK is kept).
        RESTORED: Bring the package back to enabled, whatever its state.
    """

    DISABLED = "disabled"
    ENABLED = "enabled"
    UNINSTALLED = "uninstalled"
    RESTORED = "restored"

    def resolve(self) -> PackageState:
        """Map the requested target to a concrete package state."""
        if self == TargetState.RESTORED:
            return PackageState.ENABLED
        return PackageState(self.value)


class Outcome(str, Enum):
    """Outcome of a single executed operation."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class PlannedOperation:
    """A single package state transition to perform.

    Attributes:
        package_id: Package to operate on.
        from_state: State observed in the snapshot the plan was built from.
        to_state: State the package should end up in.
        tier: Safety tier at planning time.
        override_confirmed: Whether the user confirmed a risky operation.
        reverses: ID of the ledger entry this operation undoes, if any.
    """

    package_id: str
    from_state: PackageState
    to_state: PackageState
    tier: SafetyTier
    override_confirmed: bool = False
    reverses: str | None = None

    def __post_init__(self) -> None:
        """Validate operation data after initialization."""
        if not self.package_id:
            msg = "Package ID cannot be empty"
            raise ValueError(msg)
        if self.from_state == self.to_state:
            msg = f"Operation on {self.package_id} does not change its state"
            raise ValueError(msg)

    @property
    def is_destructive(self) -> bool:
        """Check if this operation disables or uninstalls a package."""
        return self.to_state in (PackageState.DISABLED, PackageState.UNINSTALLED)

    @property
    def is_blocked(self) -> bool:
        """Check if this operation needs an override that was not given."""
        return self.tier.requires_override and not self.override_confirmed

    def inverse(self, reverses: str | None = None) -> PlannedOperation:
        """Build the operation that undoes this one.

        Args:
            reverses: Ledger entry ID the inverse operation will undo.

        Returns:
            PlannedOperation going from to_state back to from_state.
        """
        return PlannedOperation(
            package_id=self.package_id,
            from_state=self.to_state,
            to_state=self.from_state,
            tier=self.tier,
            override_confirmed=self.override_confirmed,
            reverses=reverses,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        result: dict[str, Any] = {
            "package_id": self.package_id,
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "tier": self.tier.value,
            "override_confirmed": self.override_confirmed,
        }
        if self.reverses is not None:
            result["reverses"] = self.reverses
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlannedOperation:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        return cls(
            package_id=data["package_id"],
            from_state=PackageState(data["from_state"]),
            to_state=PackageState(data["to_state"]),
            tier=SafetyTier(data["tier"]),
            override_confirmed=data.get("override_confirmed", False),
            reverses=data.get("reverses"),
        )


@dataclass(frozen=True, slots=True)
class OperationPlan:
    """Ordered sequence of operations for one device.

    Attributes:
        device_id: ADB serial of the target device.
        operations: Operations in execution order (lowest risk first).
    """

    device_id: str
    operations: tuple[PlannedOperation, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Reject plans that contain unconfirmed risky operations."""
        blocked = [op.package_id for op in self.operations if op.is_blocked]
        if blocked:
            msg = f"Plan contains unconfirmed risky operations: {', '.join(blocked)}"
            raise ValueError(msg)

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self) -> Iterator[PlannedOperation]:
        return iter(self.operations)

    @property
    def is_empty(self) -> bool:
        """Check if the plan has nothing to do."""
        return not self.operations

    @property
    def package_ids(self) -> list[str]:
        """Package IDs in execution order."""
        return [op.package_id for op in self.operations]


@dataclass(frozen=True, slots=True)
class OperationResult:
    """Result of executing a single planned operation.

    Attributes:
        package_id: Package the operation targeted.
        requested_state: State the operation tried to reach.
        outcome: Whether the operation succeeded, failed, or timed out.
        raw_output: Combined device output (or error text).
        timestamp: When the operation finished (ISO 8601 with timezone).
        attempts: Number of command attempts, including retries.
    """

    package_id: str
    requested_state: PackageState
    outcome: Outcome
    raw_output: str
    timestamp: str
    attempts: int = 1

    @property
    def success(self) -> bool:
        """Check if the operation succeeded."""
        return self.outcome == Outcome.SUCCESS

    @property
    def failed(self) -> bool:
        """Check if the operation did not succeed."""
        return not self.success

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "package_id": self.package_id,
            "requested_state": self.requested_state.value,
            "outcome": self.outcome.value,
            "raw_output": self.raw_output,
            "timestamp": self.timestamp,
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OperationResult:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        return cls(
            package_id=data["package_id"],
            requested_state=PackageState(data["requested_state"]),
            outcome=Outcome(data["outcome"]),
            raw_output=data.get("raw_output", ""),
            timestamp=data["timestamp"],
            attempts=data.get("attempts", 1),
        )


def create_result(
    operation: PlannedOperation,
    outcome: Outcome,
    raw_output: str,
    attempts: int = 1,
) -> OperationResult:
    """Factory function to create an OperationResult stamped with the current time.

    Args:
        operation: The operation that was executed.
        outcome: Execution outcome.
        raw_output: Device output or error text.
        attempts: Number of command attempts made.

    Returns:
        New OperationResult.
    """
    return OperationResult(
        package_id=operation.package_id,
        requested_state=operation.to_state,
        outcome=outcome,
        raw_output=raw_output,
        timestamp=datetime.now(UTC).isoformat(),
        attempts=attempts,
    )
