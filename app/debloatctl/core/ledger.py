"""Undo ledger.

This module provides the UndoLedger class for durably recording executed
operations in per-device JSONL files and building undo plans from them.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

from debloatctl.core.errors import LedgerWriteError
from debloatctl.core.paths import device_filename, get_ledger_dir
from debloatctl.models.ledger import LedgerEntry, create_ledger_entry
from debloatctl.models.operation import OperationPlan, OperationResult, PlannedOperation

logger = logging.getLogger(__name__)


class UndoLedger:
    """Append-only, per-device history of successful operations.

    Storage location: ~/.local/state/debloatctl/ledger/<device>.jsonl

    Each line is a complete JSON object representing a LedgerEntry. Lines
    are flushed and fsync'd before record_success() returns, so after a
    crash the file holds exactly the operations that completed. A torn
    final line is skipped when reading.

    Entries are never rewritten or deleted. Undoing appends new entries
    whose ``reverses`` field references the entry they undid.

    Attributes:
        ledger_dir: Directory containing the ledger files.
    """

    def __init__(self, ledger_dir: Path | None = None) -> None:
        """Initialize UndoLedger.

        Args:
            ledger_dir: Optional override for the ledger directory.
                       Default: ~/.local/state/debloatctl/ledger
        """
        self._ledger_dir = ledger_dir if ledger_dir is not None else get_ledger_dir()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def ledger_dir(self) -> Path:
        return self._ledger_dir

    def path_for(self, device_id: str) -> Path:
        """Path to the ledger file of a device."""
        return self._ledger_dir / device_filename(device_id, ".jsonl")

    def device_lock(self, device_id: str) -> threading.Lock:
        """Get the lock serializing ledger writes and undo planning for a device."""
        with self._locks_guard:
            lock = self._locks.get(device_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[device_id] = lock
            return lock

    def record_success(
        self,
        device_id: str,
        result: OperationResult,
        inverse: PlannedOperation,
        reverses: str | None = None,
    ) -> LedgerEntry:
        """Durably append a successful operation.

        Args:
            device_id: ADB serial of the device.
            result: Successful operation result.
            inverse: Operation that would undo it.
            reverses: ID of the entry this operation undoes, if any.

        Returns:
            The committed LedgerEntry.

        Raises:
            LedgerWriteError: If the entry cannot be written durably.
        """
        try:
            entry = create_ledger_entry(device_id, result, inverse, reverses)
        except ValueError as e:
            raise LedgerWriteError(f"Refusing to record entry: {e}") from e

        line = entry.to_json_line()
        path = self.path_for(device_id)

        with self.device_lock(device_id):
            try:
                self._ledger_dir.mkdir(parents=True, exist_ok=True)
                with path.open(mode="a+b") as f:
                    data = (line + "\n").encode("utf-8")
                    # Start a fresh line after a torn write from a crash
                    if f.seek(0, os.SEEK_END) > 0:
                        f.seek(-1, os.SEEK_END)
                        if f.read(1) != b"\n":
                            data = b"\n" + data
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise LedgerWriteError(f"Failed to write ledger {path}: {e}") from e

        logger.debug("Recorded %s for %s (%s)", entry.id, entry.package_id, device_id)
        return entry

    def history(self, device_id: str) -> list[LedgerEntry]:
        """Read all entries for a device, oldest first.

        Returns:
            List of LedgerEntry in append order.
            Returns empty list if the device has no ledger.
        """
        path = self.path_for(device_id)
        if not path.exists():
            return []

        entries: list[LedgerEntry] = []

        with path.open(encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue

                try:
                    entries.append(LedgerEntry.from_json_line(line))
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    logger.warning(
                        "Skipping corrupt ledger line %d in %s: %s",
                        line_num,
                        path,
                        str(e),
                    )
                    continue

        return entries

    def reversed_ids(self, device_id: str) -> set[str]:
        """IDs of entries that have already been undone."""
        return {e.reverses for e in self.history(device_id) if e.reverses is not None}

    def undo_candidates(self, device_id: str) -> list[LedgerEntry]:
        """Forward entries not yet undone, newest first.

        Undo entries themselves are never candidates.
        """
        history = self.history(device_id)
        reversed_ids = {e.reverses for e in history if e.reverses is not None}
        return [e for e in reversed(history) if not e.is_undo and e.id not in reversed_ids]

    def undo_last(self, device_id: str, n: int = 1) -> OperationPlan:
        """Build the plan undoing the last ``n`` forward entries.

        The plan runs through the normal operation runner; each executed
        inverse is recorded as a new entry referencing the original.

        Args:
            device_id: ADB serial of the device.
            n: Number of entries to undo (0 yields an empty plan).

        Returns:
            OperationPlan with inverse operations, most recent first.

        Raises:
            ValueError: If n is negative.
        """
        if n < 0:
            msg = f"Cannot undo a negative number of entries: {n}"
            raise ValueError(msg)

        with self.device_lock(device_id):
            candidates = self.undo_candidates(device_id)[:n]

        operations = tuple(
            PlannedOperation(
                package_id=e.inverse_operation.package_id,
                from_state=e.inverse_operation.from_state,
                to_state=e.inverse_operation.to_state,
                tier=e.inverse_operation.tier,
                override_confirmed=e.inverse_operation.override_confirmed,
                reverses=e.id,
            )
            for e in candidates
        )
        return OperationPlan(device_id=device_id, operations=operations)

    def export_text(self, device_id: str) -> str:
        """Render the ledger of a device as a human-readable audit log."""
        lines = [f"debloatctl - Action history for {device_id}", "=" * 80, ""]
        for entry in self.history(device_id):
            op = entry.operation
            inverse = entry.inverse_operation
            suffix = f" (undo of {entry.reverses})" if entry.reverses else ""
            lines.append(
                f"[{op.timestamp}] {entry.id} {op.package_id}: "
                f"{inverse.to_state.value} -> {op.requested_state.value}{suffix}"
            )
        return "\n".join(lines) + "\n"
