"""Data models for debloatctl."""

from debloatctl.models.drift import DriftChange, DriftReport
from debloatctl.models.execution import (
    ErrorKind,
    ExecutionError,
    ExecutionOutcome,
    ExecutionOutput,
)
from debloatctl.models.ledger import LedgerEntry, create_ledger_entry
from debloatctl.models.operation import (
    OperationPlan,
    OperationResult,
    Outcome,
    PlannedOperation,
    TargetState,
    create_result,
)
from debloatctl.models.package import (
    DeviceSnapshot,
    Package,
    PackageOrigin,
    PackageState,
    SafetyTier,
)

__all__ = [
    "DeviceSnapshot",
    "DriftChange",
    "DriftReport",
    "ErrorKind",
    "ExecutionError",
    "ExecutionOutcome",
    "ExecutionOutput",
    "LedgerEntry",
    "OperationPlan",
    "OperationResult",
    "Outcome",
    "Package",
    "PackageOrigin",
    "PackageState",
    "PlannedOperation",
    "SafetyTier",
    "TargetState",
    "create_ledger_entry",
    "create_result",
]
