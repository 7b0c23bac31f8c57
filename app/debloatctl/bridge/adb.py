"""ADB transport.

Runs one ``adb`` invocation per call and hands back the raw exit code and
output. Everything above this layer depends only on the Transport shape,
so tests can substitute a fake device.
"""

import logging
from collections.abc import Callable

from debloatctl.utils.shell import command_exists, run_command

logger = logging.getLogger(__name__)

# (device_id, argv, timeout_seconds) -> (exit_code, stdout, stderr)
# Implementations raise subprocess.TimeoutExpired when the timeout elapses.
Transport = Callable[[str, list[str], float], tuple[int, str, str]]


class AdbBridge:
    """Transport that shells out to the adb binary.

    Attributes:
        adb_path: Path or name of the adb executable.
    """

    def __init__(self, adb_path: str = "adb") -> None:
        """Initialize the bridge.

        Args:
            adb_path: Path or name of the adb executable.
        """
        self.adb_path = adb_path

    def is_available(self) -> bool:
        """Check if the adb executable can be found."""
        return command_exists(self.adb_path)

    def build_args(self, device_id: str, argv: list[str]) -> list[str]:
        """Build the full adb command line.

        An empty device_id runs a global command (e.g. ``adb devices``).
        """
        if device_id:
            return [self.adb_path, "-s", device_id, *argv]
        return [self.adb_path, *argv]

    def __call__(self, device_id: str, argv: list[str], timeout: float) -> tuple[int, str, str]:
        """Run an adb command.

        Raises:
            subprocess.TimeoutExpired: If the command exceeds the timeout.
            FileNotFoundError: If the adb executable is not found.
        """
        args = self.build_args(device_id, argv)
        logger.debug("Executing: %s", " ".join(args))
        result = run_command(args, timeout=timeout)
        if not result.success:
            logger.debug(
                "adb exited with %d: %s",
                result.returncode,
                (result.stderr or result.stdout)[:500],
            )
        return result.returncode, result.stdout, result.stderr
