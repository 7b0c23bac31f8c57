"""Exception hierarchy for debloatctl.

Device-level failures travel as ExecutionError values inside the engine
and are only raised (wrapped in ExecutionFailure) where a caller cannot
continue, such as a failed inventory query.
"""

from debloatctl.models.execution import ErrorKind, ExecutionError


class DebloatError(Exception):
    """Base exception for all debloatctl errors."""


class ConfigError(DebloatError):
    """Raised when the configuration file cannot be read or is invalid."""


class CatalogLoadError(DebloatError):
    """Raised when the safety catalog cannot be loaded."""


class LedgerWriteError(DebloatError):
    """Raised when a ledger entry cannot be durably written.

    Fatal to the current batch: continuing without a durable record
    would break undo.
    """


class ExecutionFailure(DebloatError):
    """Raised when a device command fails and the caller cannot continue.

    Attributes:
        error: The underlying ExecutionError value.
    """

    def __init__(self, error: ExecutionError) -> None:
        super().__init__(error.message)
        self.error = error

    @property
    def device_id(self) -> str:
        return self.error.device_id


class DeviceNotFoundError(ExecutionFailure):
    """Raised when the device is not attached or not reachable."""


class CommandTimeoutError(ExecutionFailure):
    """Raised when a device command timed out."""


class NonZeroExitError(ExecutionFailure):
    """Raised when a device command exited with a failure status."""


_FAILURE_BY_KIND: dict[ErrorKind, type[ExecutionFailure]] = {
    ErrorKind.DEVICE_NOT_FOUND: DeviceNotFoundError,
    ErrorKind.TIMEOUT: CommandTimeoutError,
    ErrorKind.NON_ZERO_EXIT: NonZeroExitError,
}


def failure_from_error(error: ExecutionError) -> ExecutionFailure:
    """Wrap an ExecutionError value in the matching exception type."""
    return _FAILURE_BY_KIND[error.kind](error)


class PlanError(DebloatError):
    """Base exception for plans rejected before any device change."""


class StaleSnapshotError(PlanError):
    """Raised when there is no snapshot or it is too old to plan against."""


class UnknownPackageError(PlanError):
    """Raised when a selected package is not part of the snapshot.

    Attributes:
        package_ids: Sorted IDs missing from the snapshot.
    """

    def __init__(self, package_ids: list[str]) -> None:
        self.package_ids = sorted(package_ids)
        super().__init__(f"Packages not found on device: {', '.join(self.package_ids)}")


class UnsafeWithoutOverrideError(PlanError):
    """Raised when risky packages were selected without a confirmed override.

    Attributes:
        package_ids: Sorted IDs that need an override.
    """

    def __init__(self, package_ids: list[str]) -> None:
        self.package_ids = sorted(package_ids)
        super().__init__(
            "Unsafe or unclassified packages require explicit override: "
            + ", ".join(self.package_ids)
        )
