"""Unit tests for plan execution."""

import threading
from unittest.mock import MagicMock

import pytest
from debloatctl.bridge.executor import CommandExecutor
from debloatctl.core.errors import LedgerWriteError
from debloatctl.core.ledger import UndoLedger
from debloatctl.core.runner import OperationRunner
from debloatctl.models.operation import OperationPlan, Outcome, PlannedOperation
from debloatctl.models.package import PackageState, SafetyTier

DEVICE = "R58M123ABC"


def _disable(*package_ids: str) -> OperationPlan:
    return OperationPlan(
        device_id=DEVICE,
        operations=tuple(
            PlannedOperation(pid, PackageState.ENABLED, PackageState.DISABLED, SafetyTier.SAFE)
            for pid in package_ids
        ),
    )


A, B, C = "com.facebook.katana", "com.google.android.apps.maps", "org.example.notes"


class TestExecute:
    """Tests for OperationRunner.execute."""

    def test_success_recorded(
        self, executor: CommandExecutor, ledger: UndoLedger, fake_device
    ) -> None:
        """Each success lands on the device and in the ledger."""
        results = list(OperationRunner(executor, ledger).execute(_disable(A, B)))

        assert [r.outcome for r in results] == [Outcome.SUCCESS, Outcome.SUCCESS]
        assert fake_device.state_of(A) == PackageState.DISABLED
        assert len(ledger.history(DEVICE)) == 2

    def test_partial_batch_continues(
        self, executor: CommandExecutor, ledger: UndoLedger, fake_device
    ) -> None:
        """[A ok, B fail, C ok] gives three results and two entries."""
        fake_device.fail[B] = "Error: java.lang.SecurityException: not allowed"

        results = list(OperationRunner(executor, ledger).execute(_disable(A, B, C)))

        assert [(r.package_id, r.outcome) for r in results] == [
            (A, Outcome.SUCCESS),
            (B, Outcome.FAILURE),
            (C, Outcome.SUCCESS),
        ]
        assert [e.package_id for e in ledger.history(DEVICE)] == [A, C]
        assert "SecurityException" in results[1].raw_output

    def test_stop_on_failure(
        self, executor: CommandExecutor, ledger: UndoLedger, fake_device
    ) -> None:
        """With stop_on_failure the batch ends at the first failure."""
        fake_device.fail[B] = "Error: boom"

        runner = OperationRunner(executor, ledger, stop_on_failure=True)
        results = list(runner.execute(_disable(A, B, C)))

        assert [r.package_id for r in results] == [A, B]
        assert fake_device.state_of(C) == PackageState.ENABLED

    def test_ledger_written_before_next_operation(
        self, executor: CommandExecutor, ledger: UndoLedger
    ) -> None:
        """The entry exists as soon as the result is yielded."""
        results = OperationRunner(executor, ledger).execute(_disable(A, B))

        next(results)
        assert [e.package_id for e in ledger.history(DEVICE)] == [A]

    def test_failure_output_with_zero_exit(self, ledger: UndoLedger) -> None:
        """pm printing Failure with exit code 0 is a failure."""

        def transport(device_id: str, argv: list[str], timeout: float) -> tuple[int, str, str]:
            return 0, "Failure [not installed for 0]\n", ""

        results = list(OperationRunner(CommandExecutor(transport), ledger).execute(_disable(A)))

        assert results[0].outcome == Outcome.FAILURE
        assert ledger.history(DEVICE) == []

    def test_device_not_found_is_failure(
        self, executor: CommandExecutor, ledger: UndoLedger, fake_device
    ) -> None:
        """A lost device yields failures, not exceptions."""
        fake_device.disconnect_after = 0

        results = list(OperationRunner(executor, ledger).execute(_disable(A, B)))

        assert [r.outcome for r in results] == [Outcome.FAILURE, Outcome.FAILURE]
        assert "not found" in results[0].raw_output

    def test_ledger_error_halts_batch(self, executor: CommandExecutor, fake_device) -> None:
        """LedgerWriteError propagates and nothing else runs."""
        broken = MagicMock(spec=UndoLedger)
        broken.record_success.side_effect = LedgerWriteError("disk full")

        results = OperationRunner(executor, broken).execute(_disable(A, B))

        with pytest.raises(LedgerWriteError):
            next(results)
        assert fake_device.state_of(B) == PackageState.ENABLED

    def test_on_success_callback(self, executor: CommandExecutor, ledger: UndoLedger) -> None:
        """The hook sees each committed success."""
        seen: list[str] = []
        runner = OperationRunner(
            executor, ledger, on_success=lambda device, op, result: seen.append(op.package_id)
        )
        list(runner.execute(_disable(A, B)))
        assert seen == [A, B]

    def test_undo_plan_sets_reverses(self, executor: CommandExecutor, ledger: UndoLedger) -> None:
        """Executing an undo plan records entries that reference the originals."""
        runner = OperationRunner(executor, ledger)
        list(runner.execute(_disable(A)))
        original = ledger.history(DEVICE)[0]

        list(runner.execute(ledger.undo_last(DEVICE, 1)))

        undo_entry = ledger.history(DEVICE)[-1]
        assert undo_entry.reverses == original.id
        assert undo_entry.operation.requested_state == PackageState.ENABLED
        assert ledger.undo_last(DEVICE, 1).is_empty


class TestRetries:
    """Tests for timeout retries."""

    def test_timeout_retried(
        self, executor: CommandExecutor, ledger: UndoLedger, fake_device
    ) -> None:
        """A command that times out twice succeeds on the third attempt."""
        fake_device.timeouts[A] = 2

        results = list(OperationRunner(executor, ledger, max_retries=2).execute(_disable(A)))

        assert results[0].outcome == Outcome.SUCCESS
        assert results[0].attempts == 3

    def test_timeout_exhausted(
        self, executor: CommandExecutor, ledger: UndoLedger, fake_device
    ) -> None:
        """Too many timeouts give a TIMEOUT result."""
        fake_device.timeouts[A] = 5

        results = list(OperationRunner(executor, ledger, max_retries=1).execute(_disable(A)))

        assert results[0].outcome == Outcome.TIMEOUT
        assert results[0].attempts == 2
        assert ledger.history(DEVICE) == []

    def test_non_zero_exit_not_retried(
        self, executor: CommandExecutor, ledger: UndoLedger, fake_device
    ) -> None:
        """Definitive device errors are tried once."""
        fake_device.fail[A] = "Error: nope"

        results = list(OperationRunner(executor, ledger, max_retries=2).execute(_disable(A)))

        assert results[0].attempts == 1
        assert len(fake_device.calls) == 1


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_before_start(
        self, executor: CommandExecutor, ledger: UndoLedger, fake_device
    ) -> None:
        """A set event stops the batch before the first operation."""
        cancel = threading.Event()
        cancel.set()

        results = list(OperationRunner(executor, ledger).execute(_disable(A, B), cancel))

        assert results == []
        assert fake_device.calls == []

    def test_cancel_between_operations(self, executor: CommandExecutor, ledger: UndoLedger) -> None:
        """Operations already done stay done; the rest are not started."""
        cancel = threading.Event()
        results = OperationRunner(executor, ledger).execute(_disable(A, B, C), cancel)

        first = next(results)
        cancel.set()
        rest = list(results)

        assert first.package_id == A
        assert rest == []
        assert len(ledger.history(DEVICE)) == 1


class TestMultiCommandOperations:
    """Tests for operations that need several commands."""

    def test_reinstall_then_disable(
        self, executor: CommandExecutor, ledger: UndoLedger, fake_device
    ) -> None:
        """uninstalled -> disabled runs install-existing then disable-user."""
        fake_device.packages[A].state = PackageState.UNINSTALLED
        plan = OperationPlan(
            DEVICE,
            (
                PlannedOperation(
                    A, PackageState.UNINSTALLED, PackageState.DISABLED, SafetyTier.SAFE
                ),
            ),
        )

        results = list(OperationRunner(executor, ledger).execute(plan))

        assert results[0].success
        assert results[0].attempts == 2
        assert fake_device.state_of(A) == PackageState.DISABLED

    def test_second_step_failure(
        self, executor: CommandExecutor, ledger: UndoLedger, fake_device
    ) -> None:
        """A failure after install-existing is reported and not recorded."""
        fake_device.packages[A].state = PackageState.UNINSTALLED
        plan = OperationPlan(
            DEVICE,
            (
                PlannedOperation(
                    A, PackageState.UNINSTALLED, PackageState.DISABLED, SafetyTier.SAFE
                ),
            ),
        )

        def flaky_disable(device_id: str, argv: list[str], timeout: float):
            if "disable-user" in argv:
                return 1, "", "Error: cannot disable"
            return fake_device(device_id, argv, timeout)

        results = list(OperationRunner(CommandExecutor(flaky_disable), ledger).execute(plan))

        assert results[0].outcome == Outcome.FAILURE
        assert "installed for user" in results[0].raw_output
        assert ledger.history(DEVICE) == []
