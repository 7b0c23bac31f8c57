"""Unit tests for the exception hierarchy."""

import pytest
from debloatctl.core.errors import (
    CommandTimeoutError,
    DebloatError,
    DeviceNotFoundError,
    ExecutionFailure,
    NonZeroExitError,
    PlanError,
    UnknownPackageError,
    UnsafeWithoutOverrideError,
    failure_from_error,
)
from debloatctl.models.execution import ErrorKind, ExecutionError


class TestFailureFromError:
    """Tests for failure_from_error."""

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            (ErrorKind.DEVICE_NOT_FOUND, DeviceNotFoundError),
            (ErrorKind.TIMEOUT, CommandTimeoutError),
            (ErrorKind.NON_ZERO_EXIT, NonZeroExitError),
        ],
    )
    def test_maps_kind(self, kind: ErrorKind, expected: type[ExecutionFailure]) -> None:
        """Each error kind maps to its exception type."""
        error = ExecutionError(kind=kind, device_id="R58M123ABC", message="boom")

        failure = failure_from_error(error)

        assert type(failure) is expected
        assert failure.error is error
        assert failure.device_id == "R58M123ABC"
        assert str(failure) == "boom"
        assert isinstance(failure, DebloatError)


class TestPlanErrors:
    """Tests for plan rejection errors."""

    def test_unsafe_lists_sorted_ids(self) -> None:
        """Package IDs are sorted and named in the message."""
        error = UnsafeWithoutOverrideError(["com.b", "com.a"])

        assert error.package_ids == ["com.a", "com.b"]
        assert "com.a, com.b" in str(error)
        assert isinstance(error, PlanError)

    def test_unknown_package(self) -> None:
        """Missing packages are named in the message."""
        error = UnknownPackageError(["com.missing"])
        assert "com.missing" in str(error)
