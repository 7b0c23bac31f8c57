"""Plan execution.

Runs an OperationPlan one operation at a time, retrying timeouts,
recording every success in the undo ledger before moving on, and
yielding each result as soon as it is known.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator

from debloatctl.bridge.executor import CommandExecutor
from debloatctl.core.commands import commands_for, output_reports_failure
from debloatctl.core.ledger import UndoLedger
from debloatctl.models.execution import ErrorKind, ExecutionError, ExecutionOutcome
from debloatctl.models.operation import (
    OperationPlan,
    OperationResult,
    Outcome,
    PlannedOperation,
    create_result,
)

logger = logging.getLogger(__name__)

# Called after a success has been committed to the ledger
SuccessCallback = Callable[[str, PlannedOperation, OperationResult], None]


class OperationRunner:
    """Executes plans against a device.

    Semantics:
    - Timeouts are retried up to ``max_retries`` times; a non-zero exit
      is the device's definitive answer and is never retried.
    - A success is written to the ledger before the next operation
      starts. LedgerWriteError aborts the batch.
    - A failed operation yields a failure result and the batch goes on,
      unless ``stop_on_failure`` is set.
    - Cancellation is checked before each operation; a command already
      running on the device is always allowed to finish.

    Example:
        >>> runner = OperationRunner(executor, ledger)
        >>> for result in runner.execute(plan):
        ...     print(result.package_id, result.outcome.value)
    """

    def __init__(
        self,
        executor: CommandExecutor,
        ledger: UndoLedger,
        *,
        max_retries: int = 2,
        stop_on_failure: bool = False,
        timeout: float | None = None,
        on_success: SuccessCallback | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            executor: Command executor for device commands.
            ledger: Ledger receiving successful operations.
            max_retries: Retries per command after a timeout.
            stop_on_failure: Stop at the first failed operation.
            timeout: Per-command timeout in seconds.
            on_success: Hook invoked after each committed success.
        """
        self._executor = executor
        self._ledger = ledger
        self._max_retries = max_retries
        self._stop_on_failure = stop_on_failure
        self._timeout = timeout
        self._on_success = on_success
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _device_lock(self, device_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(device_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[device_id] = lock
            return lock

    def execute(
        self,
        plan: OperationPlan,
        cancel: threading.Event | None = None,
    ) -> Iterator[OperationResult]:
        """Execute a plan lazily.

        Args:
            plan: Plan to execute.
            cancel: Event that, once set, stops the batch before the next operation.

        Yields:
            One OperationResult per executed operation, in plan order.

        Raises:
            LedgerWriteError: If a success cannot be recorded; the batch halts.
        """
        device_id = plan.device_id
        total = len(plan)

        for index, operation in enumerate(plan.operations, start=1):
            if cancel is not None and cancel.is_set():
                logger.info("Cancelled %s before operation %d of %d", device_id, index, total)
                return

            logger.info(
                "[%d/%d] %s: %s -> %s",
                index,
                total,
                operation.package_id,
                operation.from_state.value,
                operation.to_state.value,
            )

            # The lock spans the commands and the ledger write so that no
            # other plan can touch this device in between.
            with self._device_lock(device_id):
                result = self._run_operation(device_id, operation)
                if result.success:
                    inverse = operation.inverse()
                    self._ledger.record_success(
                        device_id,
                        result,
                        inverse,
                        reverses=operation.reverses,
                    )

            if result.success and self._on_success is not None:
                self._on_success(device_id, operation, result)

            yield result

            if result.failed and self._stop_on_failure:
                logger.warning(
                    "Stopping batch on %s after failure of %s", device_id, operation.package_id
                )
                return

    def _run_operation(self, device_id: str, operation: PlannedOperation) -> OperationResult:
        """Run every command of an operation, stopping at the first failure."""
        outputs: list[str] = []
        attempts = 0

        for argv in commands_for(operation):
            outcome, tries = self._run_with_retries(device_id, argv)
            attempts += tries

            if isinstance(outcome, ExecutionError):
                if outputs:
                    # An earlier step (install-existing) already changed the device
                    logger.warning(
                        "%s partially applied on %s; run a drift check",
                        operation.package_id,
                        device_id,
                    )
                outputs.append(outcome.message)
                result_outcome = Outcome.TIMEOUT if outcome.is_timeout else Outcome.FAILURE
                return create_result(operation, result_outcome, "\n".join(outputs), attempts)

            text = outcome.text
            outputs.append(text)
            if output_reports_failure(text):
                logger.warning("Device rejected %s: %s", operation.package_id, text)
                return create_result(operation, Outcome.FAILURE, "\n".join(outputs), attempts)

        return create_result(operation, Outcome.SUCCESS, "\n".join(outputs), attempts)

    def _run_with_retries(
        self,
        device_id: str,
        argv: list[str],
    ) -> tuple[ExecutionOutcome, int]:
        """Run one command, retrying only on timeout."""
        attempt = 0
        while True:
            attempt += 1
            outcome = self._executor.execute(device_id, argv, self._timeout)
            if not (isinstance(outcome, ExecutionError) and outcome.kind == ErrorKind.TIMEOUT):
                return outcome, attempt
            if attempt > self._max_retries:
                return outcome, attempt
            logger.info(
                "Timeout on %s (attempt %d of %d), retrying",
                device_id,
                attempt,
                self._max_retries + 1,
            )
