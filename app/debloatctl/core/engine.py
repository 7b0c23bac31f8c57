"""Debloat engine facade.

Wires the command executor, inventory, classifier, planner, runner,
ledger and snapshot store together behind one object. The CLI talks to
devices only through this class.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from datetime import datetime
from pathlib import Path

from debloatctl.bridge.adb import AdbBridge, Transport
from debloatctl.bridge.devices import DeviceInfo, device_info, list_devices
from debloatctl.bridge.executor import CommandExecutor
from debloatctl.classifier.catalog import (
    SafetyCatalog,
    UserOverride,
    load_catalog,
    load_oem_pack,
    load_overrides,
    normalize_manufacturer,
)
from debloatctl.classifier.classifier import SafetyClassifier
from debloatctl.core.config import EngineConfig
from debloatctl.core.errors import CatalogLoadError, ExecutionFailure
from debloatctl.core.ledger import UndoLedger
from debloatctl.core.planner import ActionPlanner
from debloatctl.core.reconciler import SessionReconciler
from debloatctl.core.runner import OperationRunner
from debloatctl.core.snapshots import SnapshotStore
from debloatctl.models.drift import DriftReport
from debloatctl.models.ledger import LedgerEntry
from debloatctl.models.operation import (
    OperationPlan,
    OperationResult,
    PlannedOperation,
    TargetState,
)
from debloatctl.models.package import DeviceSnapshot
from debloatctl.scanners.inventory import PackageInventory

logger = logging.getLogger(__name__)


class DebloatEngine:
    """Orchestrates debloat sessions across attached devices.

    Example:
        >>> engine = DebloatEngine(load_config())
        >>> engine.refresh_snapshot("R58M123ABC")
        >>> plan = engine.plan("R58M123ABC", ["com.facebook.katana"], TargetState.DISABLED)
        >>> for result in engine.execute(plan):
        ...     print(result.package_id, result.outcome.value)
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        transport: Transport | None = None,
        classifier: SafetyClassifier | None = None,
        ledger: UndoLedger | None = None,
        snapshots: SnapshotStore | None = None,
        overrides_path: Path | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Engine configuration. Defaults apply if None.
            transport: Device transport. Defaults to the adb binary.
            classifier: Classifier used for every device. If None, the
                        catalog is loaded once and merged per device with
                        the matching OEM pack.
            ledger: Undo ledger. Defaults to the XDG state directory.
            snapshots: Snapshot store. Defaults to the XDG state directory.
            overrides_path: User overrides file. Defaults to the config dir.
        """
        self._config = config or EngineConfig()
        self._executor = CommandExecutor(
            transport or AdbBridge(self._config.adb_path),
            default_timeout=self._config.command_timeout_seconds,
        )
        self._ledger = ledger or UndoLedger()
        self._snapshots = snapshots or SnapshotStore()
        self._overrides_path = overrides_path
        self._shared_classifier = classifier
        self._classifiers: dict[str, SafetyClassifier] = {}
        self._oem_packs: dict[str, SafetyCatalog | None] = {}
        self._classifiers_guard = threading.Lock()
        self._generation = 0
        self._catalog: SafetyCatalog | None = None
        self._overrides: dict[str, UserOverride] | None = None
        if classifier is None:
            self._catalog = self._read_catalog()
            self._overrides = self._read_overrides()
        self._runner = OperationRunner(
            self._executor,
            self._ledger,
            max_retries=self._config.max_retries,
            stop_on_failure=self._config.stop_on_failure,
            on_success=self._supersede_snapshot,
        )

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def ledger(self) -> UndoLedger:
        return self._ledger

    # Devices

    def devices(self) -> list[DeviceInfo]:
        """List attached devices that are ready for commands.

        Raises:
            ExecutionFailure: If adb cannot be run.
        """
        return list_devices(self._executor)

    def device_info(self, device_id: str) -> DeviceInfo:
        """Read manufacturer, model and Android version of a device."""
        return device_info(self._executor, device_id)

    def classifier_for(self, device_id: str) -> SafetyClassifier:
        """Get the classifier for a device, building it on first use.

        The device manufacturer selects the OEM catalog pack, which is
        merged over the catalog loaded at startup. If the manufacturer
        cannot be read, the generic catalog is used.
        """
        if self._shared_classifier is not None:
            return self._shared_classifier

        with self._classifiers_guard:
            classifier = self._classifiers.get(device_id)
            generation = self._generation
        if classifier is not None:
            return classifier

        # No device I/O under the guard
        manufacturer: str | None = None
        try:
            manufacturer = self.device_info(device_id).manufacturer or None
        except ExecutionFailure as e:
            logger.warning("Cannot read manufacturer of %s: %s", device_id, e)

        classifier = self._build_classifier(manufacturer)
        with self._classifiers_guard:
            if generation != self._generation:
                # Overrides were reloaded meanwhile
                return self._classifiers.get(device_id) or classifier
            return self._classifiers.setdefault(device_id, classifier)

    def reload_classifiers(self) -> None:
        """Re-read user overrides and drop cached classifiers."""
        if self._shared_classifier is not None:
            return
        overrides = self._read_overrides()
        with self._classifiers_guard:
            self._overrides = overrides
            self._generation += 1
            self._classifiers.clear()

    def _read_catalog(self) -> SafetyCatalog | None:
        try:
            return load_catalog(self._config.catalog_path)
        except CatalogLoadError as e:
            logger.error("Failed to load safety catalog: %s", e)
            return None

    def _read_overrides(self) -> dict[str, UserOverride] | None:
        try:
            return load_overrides(self._overrides_path)
        except CatalogLoadError as e:
            # None degrades every classifier until the file is fixed
            logger.error("Failed to load user overrides: %s", e)
            return None

    def _oem_pack(self, manufacturer: str) -> SafetyCatalog | None:
        key = normalize_manufacturer(manufacturer)
        with self._classifiers_guard:
            if key in self._oem_packs:
                return self._oem_packs[key]

        pack = load_oem_pack(key)
        with self._classifiers_guard:
            return self._oem_packs.setdefault(key, pack)

    def _build_classifier(self, manufacturer: str | None) -> SafetyClassifier:
        with self._classifiers_guard:
            catalog, overrides = self._catalog, self._overrides
        if catalog is None or overrides is None:
            return SafetyClassifier(None)

        if manufacturer:
            try:
                pack = self._oem_pack(manufacturer)
            except CatalogLoadError as e:
                logger.error("Failed to load OEM pack for %s: %s", manufacturer, e)
                return SafetyClassifier(None)
            if pack is not None:
                catalog = catalog.merged_with(pack)

        return SafetyClassifier(catalog, overrides)

    # Snapshots

    def _inventory(self, device_id: str) -> PackageInventory:
        return PackageInventory(self._executor, self.classifier_for(device_id))

    def refresh_snapshot(self, device_id: str) -> DeviceSnapshot:
        """Take and persist a fresh snapshot of a device.

        Raises:
            ExecutionFailure: If any inventory query fails; nothing is persisted.
        """
        snapshot = self._inventory(device_id).snapshot(device_id)
        self._snapshots.save(snapshot)
        return snapshot

    def latest_snapshot(self, device_id: str) -> DeviceSnapshot | None:
        """Most recent persisted snapshot of a device."""
        return self._snapshots.latest(device_id)

    def previous_snapshot(self, device_id: str) -> DeviceSnapshot | None:
        """Snapshot that the latest one replaced, if any."""
        return self._snapshots.previous(device_id)

    def _supersede_snapshot(
        self,
        device_id: str,
        operation: PlannedOperation,
        result: OperationResult,
    ) -> None:
        snapshot = self._snapshots.latest(device_id)
        if snapshot is None or snapshot.get(operation.package_id) is None:
            return
        # Keep the capture time so the snapshot still ages toward a refresh
        updated = snapshot.with_package_state(
            operation.package_id,
            result.requested_state,
            captured_at=snapshot.captured_at,
        )
        try:
            self._snapshots.save(updated)
        except OSError as e:
            logger.warning("Cannot update snapshot of %s: %s", device_id, e)

    # Planning and execution

    def plan(
        self,
        device_id: str,
        selection: Iterable[str],
        target: TargetState,
        confirmed_overrides: Iterable[str] = (),
        now: datetime | None = None,
    ) -> OperationPlan:
        """Plan a change against the latest persisted snapshot.

        Raises:
            PlanError: If the plan is rejected; the device is untouched.
        """
        planner = ActionPlanner(
            self.classifier_for(device_id),
            max_age_seconds=self._config.snapshot_max_age_seconds,
        )
        return planner.plan(
            self._snapshots.latest(device_id),
            selection,
            target,
            confirmed_overrides,
            now=now,
        )

    def execute(
        self,
        plan: OperationPlan,
        cancel: threading.Event | None = None,
    ) -> Iterator[OperationResult]:
        """Execute a plan, yielding each result as it completes.

        Raises:
            LedgerWriteError: If a success cannot be recorded.
        """
        return self._runner.execute(plan, cancel)

    def plan_undo(self, device_id: str, n: int = 1) -> OperationPlan:
        """Build the plan reversing the last ``n`` recorded operations."""
        return self._ledger.undo_last(device_id, n)

    def undo(
        self,
        device_id: str,
        n: int = 1,
        cancel: threading.Event | None = None,
    ) -> Iterator[OperationResult]:
        """Reverse the last ``n`` recorded operations."""
        return self.execute(self.plan_undo(device_id, n), cancel)

    # Session

    def reconcile(self, device_id: str) -> DriftReport:
        """Report packages whose device state differs from the local model."""
        reconciler = SessionReconciler(self._inventory(device_id), self._ledger, self._snapshots)
        return reconciler.reconcile(device_id)

    def history(self, device_id: str) -> list[LedgerEntry]:
        """Ledger entries of a device, oldest first."""
        return self._ledger.history(device_id)
