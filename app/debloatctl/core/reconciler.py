"""Session reconciliation.

Compares what a device actually looks like with what the engine expects
after the last snapshot and the operations recorded since then. Drift
is only reported; nothing on the device is changed.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from debloatctl.core.ledger import UndoLedger
from debloatctl.core.snapshots import SnapshotStore
from debloatctl.models.drift import DriftChange, DriftReport
from debloatctl.models.package import DeviceSnapshot, PackageState
from debloatctl.scanners.inventory import PackageInventory

logger = logging.getLogger(__name__)


def _parse_timestamp(value: str) -> datetime | None:
    try:
        ts = datetime.fromisoformat(value)
    except ValueError:
        return None
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=UTC)


class SessionReconciler:
    """Detects drift between the local model and a device.

    Example:
        >>> reconciler = SessionReconciler(inventory, ledger, snapshots)
        >>> report = reconciler.reconcile("R58M123ABC")
        >>> for change in report.unexpected_changes:
        ...     print(change.package_id, change.expected, change.actual)
    """

    def __init__(
        self,
        inventory: PackageInventory,
        ledger: UndoLedger,
        snapshots: SnapshotStore,
    ) -> None:
        self._inventory = inventory
        self._ledger = ledger
        self._snapshots = snapshots

    def expected_states(self, device_id: str) -> dict[str, PackageState]:
        """Compute the state every known package should be in.

        Starts from the latest persisted snapshot and applies, in order,
        every ledger entry recorded after it. Without a snapshot only the
        ledger is used.
        """
        previous = self._snapshots.latest(device_id)
        expected: dict[str, PackageState] = {}
        since: datetime | None = None

        if previous is not None:
            expected = {pid: pkg.state for pid, pkg in previous.packages.items()}
            since = previous.captured_at

        for entry in self._ledger.history(device_id):
            if since is not None:
                ts = _parse_timestamp(entry.timestamp)
                if ts is None or ts <= since:
                    continue
            expected[entry.package_id] = entry.operation.requested_state

        return expected

    def reconcile(self, device_id: str) -> DriftReport:
        """Check a device for drift.

        Takes a fresh snapshot and persists it so that it supersedes the
        previous one.

        Args:
            device_id: ADB serial of the device.

        Returns:
            DriftReport listing every package in an unexpected state.

        Raises:
            ExecutionFailure: If the device cannot be queried.
        """
        expected = self.expected_states(device_id)
        current: DeviceSnapshot = self._inventory.snapshot(device_id)
        self._snapshots.save(current)

        changes: list[DriftChange] = []
        for package_id in sorted(expected):
            package = current.get(package_id)
            actual = package.state if package is not None else None
            if actual != expected[package_id]:
                changes.append(DriftChange(package_id, expected[package_id], actual))

        if changes:
            logger.info("Found %d drifted package(s) on %s", len(changes), device_id)
        else:
            logger.debug("No drift on %s", device_id)

        return DriftReport(
            device_id=device_id,
            checked_at=datetime.now(UTC),
            unexpected_changes=tuple(changes),
        )
