"""Action planning.

Turns a user's selection into an ordered OperationPlan, rejecting the
whole plan before any device change when it is unsafe or out of date.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from debloatctl.classifier.classifier import SafetyClassifier
from debloatctl.core.errors import (
    StaleSnapshotError,
    UnknownPackageError,
    UnsafeWithoutOverrideError,
)
from debloatctl.models.operation import OperationPlan, PlannedOperation, TargetState
from debloatctl.models.package import DeviceSnapshot

logger = logging.getLogger(__name__)


class ActionPlanner:
    """Plans package state changes against a snapshot.

    Planning is all-or-nothing. If any selected package is risky (``unsafe``
    or ``unknown``) and has no confirmed override, no plan is returned, so a
    warning cannot get lost in a long batch.

    Example:
        >>> planner = ActionPlanner(classifier, max_age_seconds=900)
        >>> plan = planner.plan(snapshot, {"com.facebook.katana"}, TargetState.DISABLED)
    """

    def __init__(self, classifier: SafetyClassifier, max_age_seconds: float = 900) -> None:
        """Initialize the planner.

        Args:
            classifier: Classifier used to compute tiers.
            max_age_seconds: Oldest snapshot accepted for planning.
        """
        self._classifier = classifier
        self._max_age_seconds = max_age_seconds

    def plan(
        self,
        snapshot: DeviceSnapshot | None,
        selection: Iterable[str],
        target: TargetState,
        confirmed_overrides: Iterable[str] = (),
        now: datetime | None = None,
    ) -> OperationPlan:
        """Build an operation plan.

        Args:
            snapshot: Latest snapshot of the device.
            selection: Package IDs to change.
            target: Desired state for every selected package.
            confirmed_overrides: Package IDs the user explicitly confirmed.
            now: Current time (for testing).

        Returns:
            OperationPlan ordered by ascending risk; empty if nothing changes.

        Raises:
            StaleSnapshotError: If there is no snapshot or it is too old.
            UnknownPackageError: If a selected package is not on the device.
            UnsafeWithoutOverrideError: If risky packages lack an override.
        """
        if snapshot is None:
            msg = "No snapshot available; refresh the package list first"
            raise StaleSnapshotError(msg)

        age = snapshot.age_seconds(now)
        if age > self._max_age_seconds:
            msg = (
                f"Snapshot of {snapshot.device_id} is {age:.0f}s old "
                f"(limit {self._max_age_seconds:.0f}s); refresh the package list first"
            )
            raise StaleSnapshotError(msg)

        selected = set(selection)
        confirmed = set(confirmed_overrides)
        to_state = target.resolve()

        missing = [pid for pid in selected if snapshot.get(pid) is None]
        if missing:
            raise UnknownPackageError(missing)

        operations: list[PlannedOperation] = []
        blocked: list[str] = []

        for package_id in selected:
            package = snapshot.packages[package_id]
            if package.state == to_state:
                logger.debug("Skipping %s: already %s", package_id, to_state.value)
                continue

            tier = self._classifier.classify(package_id)
            override = package_id in confirmed
            if tier.requires_override and not override:
                blocked.append(package_id)
                continue

            operations.append(
                PlannedOperation(
                    package_id=package_id,
                    from_state=package.state,
                    to_state=to_state,
                    tier=tier,
                    override_confirmed=override,
                )
            )

        if blocked:
            logger.info("Plan rejected: %d package(s) need an override", len(blocked))
            raise UnsafeWithoutOverrideError(blocked)

        # Lowest risk first: a failure midway leaves the riskiest work undone
        operations.sort(key=lambda op: (op.tier.risk_rank, op.package_id))

        plan = OperationPlan(device_id=snapshot.device_id, operations=tuple(operations))
        logger.debug("Planned %d operation(s) for %s", len(plan), snapshot.device_id)
        return plan
