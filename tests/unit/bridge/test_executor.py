"""Unit tests for the device command executor."""

import subprocess
import threading
import time

import pytest
from debloatctl.bridge.executor import CommandExecutor
from debloatctl.models.execution import ErrorKind, ExecutionError, ExecutionOutput


def _transport(code: int = 0, stdout: str = "", stderr: str = ""):
    def transport(device_id: str, argv: list[str], timeout: float) -> tuple[int, str, str]:
        return code, stdout, stderr

    return transport


class TestExecute:
    """Tests for CommandExecutor.execute."""

    def test_success(self) -> None:
        """Exit code 0 yields ExecutionOutput."""
        executor = CommandExecutor(_transport(0, "package:com.a\n"))
        outcome = executor.execute("serial", ["shell", "pm", "list", "packages"])
        assert isinstance(outcome, ExecutionOutput)
        assert outcome.ok
        assert outcome.stdout == "package:com.a\n"

    def test_timeout(self) -> None:
        """TimeoutExpired is returned as a TIMEOUT error, not raised."""

        def slow(device_id: str, argv: list[str], timeout: float) -> tuple[int, str, str]:
            raise subprocess.TimeoutExpired(["adb"], timeout)

        outcome = CommandExecutor(slow).execute("serial", ["shell", "true"], timeout=3)
        assert isinstance(outcome, ExecutionError)
        assert outcome.kind == ErrorKind.TIMEOUT
        assert outcome.is_timeout
        assert outcome.device_id == "serial"

    def test_default_timeout_is_passed(self) -> None:
        """The default timeout applies when none is given."""
        seen: list[float] = []

        def transport(device_id: str, argv: list[str], timeout: float) -> tuple[int, str, str]:
            seen.append(timeout)
            return 0, "", ""

        executor = CommandExecutor(transport, default_timeout=12.5)
        executor.execute("serial", ["shell", "true"])
        executor.execute("serial", ["shell", "true"], timeout=2)
        assert seen == [12.5, 2]

    def test_missing_adb_binary(self) -> None:
        """A missing adb executable means no device can be reached."""

        def missing(device_id: str, argv: list[str], timeout: float) -> tuple[int, str, str]:
            raise FileNotFoundError("adb")

        outcome = CommandExecutor(missing).execute("serial", ["devices"])
        assert isinstance(outcome, ExecutionError)
        assert outcome.kind == ErrorKind.DEVICE_NOT_FOUND

    @pytest.mark.parametrize(
        "stderr",
        [
            "error: device 'serial' not found",
            "adb: no devices/emulators found",
            "error: device offline",
            "error: device unauthorized.\nThis adb server's $ADB_VENDOR_KEYS is not set",
        ],
    )
    def test_device_not_found(self, stderr: str) -> None:
        """adb connection errors map to DEVICE_NOT_FOUND."""
        outcome = CommandExecutor(_transport(1, "", stderr)).execute("serial", ["shell", "true"])
        assert isinstance(outcome, ExecutionError)
        assert outcome.kind == ErrorKind.DEVICE_NOT_FOUND

    def test_package_error_is_non_zero_exit(self) -> None:
        """Package manager errors are not mistaken for a missing device."""
        executor = CommandExecutor(_transport(1, "", "Error: package com.x not found"))
        outcome = executor.execute("serial", ["shell", "pm", "enable", "com.x"])
        assert isinstance(outcome, ExecutionError)
        assert outcome.kind == ErrorKind.NON_ZERO_EXIT
        assert outcome.exit_code == 1
        assert "com.x" in outcome.message

    def test_non_zero_exit_uses_stdout_without_stderr(self) -> None:
        """When stderr is empty the message comes from stdout."""
        executor = CommandExecutor(_transport(1, "Failure [DELETE_FAILED_INTERNAL_ERROR]", ""))
        outcome = executor.execute("serial", ["shell", "pm", "uninstall", "com.x"])
        assert isinstance(outcome, ExecutionError)
        assert outcome.message == "Failure [DELETE_FAILED_INTERNAL_ERROR]"


class TestDeviceSerialization:
    """Tests for per-device locking."""

    def test_same_device_commands_do_not_overlap(self) -> None:
        """Two threads on one device never run commands concurrently."""
        active = 0
        peak = 0
        guard = threading.Lock()

        def transport(device_id: str, argv: list[str], timeout: float) -> tuple[int, str, str]:
            nonlocal active, peak
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.02)
            with guard:
                active -= 1
            return 0, "", ""

        executor = CommandExecutor(transport)
        threads = [
            threading.Thread(target=executor.execute, args=("serial", ["shell", "true"]))
            for _ in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert peak == 1

    def test_lock_is_per_device(self) -> None:
        """Each device has its own lock."""
        executor = CommandExecutor(_transport())
        assert executor.device_lock("a") is executor.device_lock("a")
        assert executor.device_lock("a") is not executor.device_lock("b")
