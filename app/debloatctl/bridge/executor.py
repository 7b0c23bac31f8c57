"""Device command executor.

Wraps a Transport with timeout handling, per-device serialization and
error classification. Failures are returned as ExecutionError values;
nothing here retries.
"""

from __future__ import annotations

import logging
import subprocess
import threading

from debloatctl.bridge.adb import Transport
from debloatctl.models.execution import (
    ErrorKind,
    ExecutionError,
    ExecutionOutcome,
    ExecutionOutput,
)

logger = logging.getLogger(__name__)

# adb messages meaning the target device cannot be reached
_DEVICE_MISSING_MARKERS: tuple[str, ...] = (
    "device '",
    "device not found",
    "no devices/emulators found",
    "no devices found",
    "device offline",
    "device unauthorized",
    "device still authorizing",
    "error: closed",
)

# adb returns 255 when it could not talk to the device at all
_ADB_TRANSPORT_EXIT = 255


class CommandExecutor:
    """Runs single adb commands with a bounded wait.

    Commands against the same device never overlap: the underlying
    channel is a single connection and interleaved output is unparseable.
    Different devices run concurrently.

    Example:
        >>> executor = CommandExecutor(AdbBridge())
        >>> outcome = executor.execute("emulator-5554", ["shell", "pm", "list", "packages"])
        >>> if outcome.ok:
        ...     print(outcome.stdout)
    """

    def __init__(self, transport: Transport, default_timeout: float = 30.0) -> None:
        """Initialize the executor.

        Args:
            transport: Callable that runs one adb command.
            default_timeout: Timeout in seconds when none is given per call.
        """
        self._transport = transport
        self._default_timeout = default_timeout
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    def device_lock(self, device_id: str) -> threading.Lock:
        """Get the lock that serializes commands to a device."""
        with self._locks_guard:
            lock = self._locks.get(device_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[device_id] = lock
            return lock

    def execute(
        self,
        device_id: str,
        argv: list[str],
        timeout: float | None = None,
    ) -> ExecutionOutcome:
        """Run one command against a device.

        Args:
            device_id: ADB serial; empty string for global commands.
            argv: Arguments passed after ``adb -s <serial>``.
            timeout: Wall-clock limit in seconds.

        Returns:
            ExecutionOutput on exit code 0, otherwise an ExecutionError.
        """
        limit = timeout if timeout is not None else self._default_timeout

        with self.device_lock(device_id):
            try:
                exit_code, stdout, stderr = self._transport(device_id, argv, limit)
            except subprocess.TimeoutExpired:
                logger.warning("Command timed out after %.1fs on %s: %s", limit, device_id, argv)
                return ExecutionError(
                    kind=ErrorKind.TIMEOUT,
                    device_id=device_id,
                    message=f"Command timed out after {limit:.0f}s",
                )
            except FileNotFoundError as e:
                return ExecutionError(
                    kind=ErrorKind.DEVICE_NOT_FOUND,
                    device_id=device_id,
                    message=f"adb executable not found: {e}",
                )

        if exit_code == 0:
            return ExecutionOutput(stdout=stdout, stderr=stderr)

        return self._classify_failure(device_id, exit_code, stdout, stderr)

    def _classify_failure(
        self,
        device_id: str,
        exit_code: int,
        stdout: str,
        stderr: str,
    ) -> ExecutionError:
        """Map a non-zero exit to DEVICE_NOT_FOUND or NON_ZERO_EXIT."""
        detail = stderr.strip() or stdout.strip()
        lowered = detail.lower()

        # "error: device 'X' not found" and friends come from adb itself,
        # not from the command running on the device.
        is_adb_error = lowered.startswith(("error:", "adb:")) or exit_code == _ADB_TRANSPORT_EXIT
        if is_adb_error and any(marker in lowered for marker in _DEVICE_MISSING_MARKERS):
            logger.info("Device %s not reachable: %s", device_id, detail)
            return ExecutionError(
                kind=ErrorKind.DEVICE_NOT_FOUND,
                device_id=device_id,
                message=detail or f"Device {device_id} not found",
                exit_code=exit_code,
                stderr=stderr,
            )

        return ExecutionError(
            kind=ErrorKind.NON_ZERO_EXIT,
            device_id=device_id,
            message=detail or f"Command exited with code {exit_code}",
            exit_code=exit_code,
            stderr=stderr,
        )
