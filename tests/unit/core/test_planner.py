"""Unit tests for the action planner."""

from datetime import UTC, datetime, timedelta

import pytest
from debloatctl.classifier.classifier import SafetyClassifier
from debloatctl.core.errors import (
    StaleSnapshotError,
    UnknownPackageError,
    UnsafeWithoutOverrideError,
)
from debloatctl.core.planner import ActionPlanner
from debloatctl.models.operation import TargetState
from debloatctl.models.package import PackageState, SafetyTier

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)

STATES = {
    "com.android.systemui": PackageState.ENABLED,
    "com.facebook.katana": PackageState.ENABLED,
    "com.facebook.appmanager": PackageState.DISABLED,
    "com.google.android.apps.maps": PackageState.ENABLED,
    "com.vendor.bloat1": PackageState.ENABLED,
    "com.vendor.bloat2": PackageState.UNINSTALLED,
}


@pytest.fixture
def snapshot(make_snapshot):
    """Fresh snapshot taken one minute before NOW."""
    return make_snapshot(STATES, captured_at=NOW - timedelta(minutes=1))


@pytest.fixture
def planner(classifier: SafetyClassifier) -> ActionPlanner:
    """Planner accepting snapshots up to 15 minutes old."""
    return ActionPlanner(classifier, max_age_seconds=900)


class TestSnapshotChecks:
    """Tests for snapshot validation."""

    def test_no_snapshot(self, planner: ActionPlanner) -> None:
        """Planning needs a snapshot."""
        with pytest.raises(StaleSnapshotError, match="No snapshot"):
            planner.plan(None, ["com.facebook.katana"], TargetState.DISABLED, now=NOW)

    def test_stale_snapshot(self, planner: ActionPlanner, make_snapshot) -> None:
        """Snapshots older than the limit are refused."""
        old = make_snapshot(STATES, captured_at=NOW - timedelta(hours=1))
        with pytest.raises(StaleSnapshotError, match="3600s old"):
            planner.plan(old, ["com.facebook.katana"], TargetState.DISABLED, now=NOW)

    def test_unknown_package(self, planner: ActionPlanner, snapshot) -> None:
        """Selected packages must exist on the device."""
        with pytest.raises(UnknownPackageError) as exc_info:
            planner.plan(
                snapshot, ["com.b.missing", "com.a.missing"], TargetState.DISABLED, now=NOW
            )
        assert exc_info.value.package_ids == ["com.a.missing", "com.b.missing"]


class TestOverrides:
    """Tests for the override rule."""

    def test_unknown_without_override_rejected(self, planner: ActionPlanner, snapshot) -> None:
        """An unknown package blocks the plan."""
        with pytest.raises(UnsafeWithoutOverrideError) as exc_info:
            planner.plan(snapshot, ["com.vendor.bloat1"], TargetState.DISABLED, now=NOW)
        assert exc_info.value.package_ids == ["com.vendor.bloat1"]

    def test_rejected_in_full(self, planner: ActionPlanner, snapshot) -> None:
        """Safe packages in the same selection are not planned either."""
        with pytest.raises(UnsafeWithoutOverrideError) as exc_info:
            planner.plan(
                snapshot,
                ["com.facebook.katana", "com.android.systemui", "com.vendor.bloat1"],
                TargetState.DISABLED,
                now=NOW,
            )
        assert exc_info.value.package_ids == ["com.android.systemui", "com.vendor.bloat1"]

    def test_override_for_one_is_not_enough(self, planner: ActionPlanner, snapshot) -> None:
        """Every risky package needs its own override."""
        with pytest.raises(UnsafeWithoutOverrideError) as exc_info:
            planner.plan(
                snapshot,
                ["com.android.systemui", "com.vendor.bloat1"],
                TargetState.DISABLED,
                confirmed_overrides=["com.vendor.bloat1"],
                now=NOW,
            )
        assert exc_info.value.package_ids == ["com.android.systemui"]

    def test_override_confirmed(self, planner: ActionPlanner, snapshot) -> None:
        """Confirmed overrides are carried on the operation."""
        plan = planner.plan(
            snapshot,
            ["com.vendor.bloat1"],
            TargetState.DISABLED,
            confirmed_overrides=["com.vendor.bloat1"],
            now=NOW,
        )
        assert len(plan) == 1
        op = plan.operations[0]
        assert op.tier == SafetyTier.UNKNOWN
        assert op.override_confirmed

    def test_restore_of_unknown_needs_override(self, planner: ActionPlanner, snapshot) -> None:
        """Unknown packages need an override for restore too."""
        with pytest.raises(UnsafeWithoutOverrideError):
            planner.plan(snapshot, ["com.vendor.bloat2"], TargetState.RESTORED, now=NOW)

    def test_override_not_needed_for_safe(self, planner: ActionPlanner, snapshot) -> None:
        """Overrides on safe packages are harmless."""
        plan = planner.plan(
            snapshot,
            ["com.facebook.katana"],
            TargetState.DISABLED,
            confirmed_overrides=["com.facebook.katana"],
            now=NOW,
        )
        assert plan.operations[0].tier == SafetyTier.SAFE


class TestPlanShape:
    """Tests for plan content and order."""

    def test_ordered_by_risk(self, planner: ActionPlanner, snapshot) -> None:
        """Safe first, unsafe last; ties by package ID."""
        plan = planner.plan(
            snapshot,
            [
                "com.android.systemui",
                "com.vendor.bloat1",
                "com.google.android.apps.maps",
                "com.facebook.katana",
            ],
            TargetState.DISABLED,
            confirmed_overrides=["com.android.systemui", "com.vendor.bloat1"],
            now=NOW,
        )
        assert plan.package_ids == [
            "com.facebook.katana",
            "com.google.android.apps.maps",
            "com.vendor.bloat1",
            "com.android.systemui",
        ]

    def test_skips_packages_already_in_target(self, planner: ActionPlanner, snapshot) -> None:
        """No operation is planned for a package already in the target state."""
        plan = planner.plan(
            snapshot,
            ["com.facebook.katana", "com.facebook.appmanager"],
            TargetState.DISABLED,
            now=NOW,
        )
        assert plan.package_ids == ["com.facebook.katana"]

    def test_nothing_to_do(self, planner: ActionPlanner, snapshot) -> None:
        """An all-skipped selection gives an empty plan."""
        plan = planner.plan(snapshot, ["com.facebook.appmanager"], TargetState.DISABLED, now=NOW)
        assert plan.is_empty

    def test_restore_resolves_to_enabled(self, planner: ActionPlanner, snapshot) -> None:
        """Restore turns into an enable of the disabled package."""
        plan = planner.plan(snapshot, ["com.facebook.appmanager"], TargetState.RESTORED, now=NOW)
        op = plan.operations[0]
        assert (op.from_state, op.to_state) == (PackageState.DISABLED, PackageState.ENABLED)

    def test_tier_comes_from_classifier(self, planner: ActionPlanner, snapshot) -> None:
        """The snapshot's stored tier is not trusted."""
        # make_snapshot leaves every tier as unknown
        plan = planner.plan(snapshot, ["com.facebook.katana"], TargetState.UNINSTALLED, now=NOW)
        assert plan.operations[0].tier == SafetyTier.SAFE
        assert plan.device_id == snapshot.device_id
