"""Ledger entry model for tracking executed operations.

This module defines the record written to the undo ledger for every
successful operation, enabling undo functionality.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any

from debloatctl.models.operation import OperationResult, PlannedOperation


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """Record of a single successful operation on a device.

    Entries are never modified after being appended. An undo appends a
    new entry whose ``reverses`` field points at the entry it undid.

    Attributes:
        id: Unique identifier (12-character hex string from UUID).
        device_id: ADB serial of the device.
        operation: Result of the executed operation.
        inverse_operation: Operation that would undo this one.
        reverses: ID of the entry this one reverses, if it is an undo.
    """

    id: str
    device_id: str
    operation: OperationResult
    inverse_operation: PlannedOperation
    reverses: str | None = None

    def __post_init__(self) -> None:
        """Validate entry data after initialization."""
        if not self.id:
            msg = "Ledger entry ID cannot be empty"
            raise ValueError(msg)
        if not self.device_id:
            msg = "Device ID cannot be empty"
            raise ValueError(msg)
        if not self.operation.success:
            msg = "Only successful operations can be recorded in the ledger"
            raise ValueError(msg)

    @property
    def package_id(self) -> str:
        """Package affected by this entry."""
        return self.operation.package_id

    @property
    def timestamp(self) -> str:
        """When the operation completed."""
        return self.operation.timestamp

    @property
    def is_undo(self) -> bool:
        """Check if this entry records an undo of an earlier entry."""
        return self.reverses is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        result: dict[str, Any] = {
            "id": self.id,
            "device_id": self.device_id,
            "operation": self.operation.to_dict(),
            "inverse_operation": self.inverse_operation.to_dict(),
        }
        if self.reverses is not None:
            result["reverses"] = self.reverses
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerEntry:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        return cls(
            id=data["id"],
            device_id=data["device_id"],
            operation=OperationResult.from_dict(data["operation"]),
            inverse_operation=PlannedOperation.from_dict(data["inverse_operation"]),
            reverses=data.get("reverses"),
        )

    def to_json_line(self) -> str:
        """Serialize to JSON line for JSONL storage.

        Returns:
            Single JSON line (no trailing newline).
        """
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json_line(cls, line: str) -> LedgerEntry:
        """Deserialize from JSON line.

        Raises:
            json.JSONDecodeError: If line is not valid JSON.
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        data = json.loads(line.strip())
        return cls.from_dict(data)


def create_ledger_entry(
    device_id: str,
    operation: OperationResult,
    inverse_operation: PlannedOperation,
    reverses: str | None = None,
) -> LedgerEntry:
    """Factory function to create a new LedgerEntry with a fresh ID.

    Args:
        device_id: ADB serial of the device.
        operation: Successful operation result.
        inverse_operation: Operation that would undo it.
        reverses: ID of the entry being undone, if this is an undo.

    Returns:
        New LedgerEntry.
    """
    return LedgerEntry(
        id=uuid.uuid4().hex[:12],
        device_id=device_id,
        operation=operation,
        inverse_operation=inverse_operation,
        reverses=reverses,
    )
