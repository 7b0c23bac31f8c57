"""Result values returned by the device command executor.

The executor never raises for device-level failures; it returns either
an ExecutionOutput or an ExecutionError so callers can apply their own
retry policy.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Category of a failed device command.

    Attributes:
        DEVICE_NOT_FOUND: Device is not attached, offline, or unauthorized.
        TIMEOUT: Command exceeded its timeout and was killed.
        NON_ZERO_EXIT: Device reported a failure through its exit status.
    """

    DEVICE_NOT_FOUND = "device_not_found"
    TIMEOUT = "timeout"
    NON_ZERO_EXIT = "non_zero_exit"


@dataclass(frozen=True, slots=True)
class ExecutionOutput:
    """Captured output of a successful device command.

    Attributes:
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        exit_code: Exit code (always 0).
    """

    stdout: str
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return True

    @property
    def text(self) -> str:
        """Combined output, stdout first."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


@dataclass(frozen=True, slots=True)
class ExecutionError:
    """Description of a failed device command.

    Attributes:
        kind: Error category.
        device_id: Device the command targeted.
        message: Human-readable summary.
        exit_code: Exit code for NON_ZERO_EXIT errors.
        stderr: Captured error output, if any.
    """

    kind: ErrorKind
    device_id: str
    message: str
    exit_code: int | None = None
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return False

    @property
    def is_timeout(self) -> bool:
        """Check if the command timed out."""
        return self.kind == ErrorKind.TIMEOUT


ExecutionOutcome = ExecutionOutput | ExecutionError
