"""Android package inventory.

Builds a DeviceSnapshot from ``pm list packages`` queries.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from debloatctl.bridge.executor import CommandExecutor
from debloatctl.classifier.classifier import SafetyClassifier
from debloatctl.core.errors import failure_from_error
from debloatctl.models.execution import ExecutionError
from debloatctl.models.package import DeviceSnapshot, Package, PackageOrigin, PackageState

logger = logging.getLogger(__name__)

# Primary user; multi-user profiles are not managed
USER_ID = "0"

# Read-only partitions holding pre-installed APKs
_SYSTEM_PARTITIONS: tuple[str, ...] = (
    "/system/",
    "/product/",
    "/system_ext/",
    "/vendor/",
    "/odm/",
    "/apex/",
)

_PACKAGE_PREFIX = "package:"


def parse_package_paths(output: str) -> dict[str, str]:
    """Parse ``pm list packages -f`` output.

    Lines look like ``package:/system/app/Foo/Foo.apk=com.vendor.foo``.
    The APK path may itself contain '=', so the ID is taken after the
    last one.

    Args:
        output: Raw command output.

    Returns:
        Mapping of package ID to APK path.
    """
    paths: dict[str, str] = {}
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line.startswith(_PACKAGE_PREFIX):
            continue
        path, sep, package_id = line[len(_PACKAGE_PREFIX) :].rpartition("=")
        package_id = package_id.strip()
        if not sep or not package_id:
            continue
        paths[package_id] = path
    return paths


def parse_package_ids(output: str) -> set[str]:
    """Parse plain ``pm list packages`` output into a set of IDs."""
    ids: set[str] = set()
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if line.startswith(_PACKAGE_PREFIX):
            package_id = line[len(_PACKAGE_PREFIX) :].strip()
            if package_id:
                ids.add(package_id)
    return ids


def is_system_path(apk_path: str) -> bool:
    """Check if an APK path lives on a read-only system partition."""
    return any(part in apk_path for part in _SYSTEM_PARTITIONS)


def label_from_id(package_id: str) -> str:
    """Derive a display name from a package ID.

    Example:
        >>> label_from_id("com.oneplus.weather")
        'Weather'
    """
    last = package_id.rsplit(".", 1)[-1]
    if not last:
        return package_id
    return last[:1].upper() + last[1:]


class PackageInventory:
    """Enumerates packages on a device.

    A snapshot is either complete or not returned at all: if any of the
    queries fails (for example because the device was unplugged between
    two of them) the whole call raises and nothing is merged.

    Example:
        >>> inventory = PackageInventory(executor, classifier)
        >>> snapshot = inventory.snapshot("emulator-5554")
        >>> snapshot.count_by_state()
    """

    def __init__(
        self,
        executor: CommandExecutor,
        classifier: SafetyClassifier | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the inventory.

        Args:
            executor: Command executor used for queries.
            classifier: Optional classifier to fill in package tiers.
            timeout: Per-query timeout in seconds.
        """
        self._executor = executor
        self._classifier = classifier
        self._timeout = timeout

    def snapshot(self, device_id: str) -> DeviceSnapshot:
        """Take a complete package snapshot of a device.

        Args:
            device_id: ADB serial.

        Returns:
            New DeviceSnapshot.

        Raises:
            DeviceNotFoundError: If the device is not reachable.
            CommandTimeoutError: If a query timed out.
            NonZeroExitError: If the package manager reported an error.
        """
        # -u includes packages uninstalled for the user (APK still present)
        all_paths = parse_package_paths(
            self._query(device_id, ["list", "packages", "-f", "-u", "--user", USER_ID])
        )
        installed = parse_package_ids(
            self._query(device_id, ["list", "packages", "--user", USER_ID])
        )
        disabled = parse_package_ids(
            self._query(device_id, ["list", "packages", "-d", "--user", USER_ID])
        )

        packages: list[Package] = []
        for package_id, apk_path in sorted(all_paths.items()):
            if package_id not in installed:
                state = PackageState.UNINSTALLED
            elif package_id in disabled:
                state = PackageState.DISABLED
            else:
                state = PackageState.ENABLED

            package = Package(
                package_id=package_id,
                label=label_from_id(package_id),
                origin=PackageOrigin.SYSTEM if is_system_path(apk_path) else PackageOrigin.USER,
                state=state,
                apk_path=apk_path or None,
            )
            if self._classifier is not None:
                package = self._classifier.classify_package(package)
            packages.append(package)

        snapshot = DeviceSnapshot.create(
            device_id=device_id,
            packages=packages,
            captured_at=datetime.now(UTC),
        )
        logger.info("Snapshot of %s: %d packages", device_id, len(packages))
        return snapshot

    def _query(self, device_id: str, pm_args: list[str]) -> str:
        """Run one ``pm`` query, raising on any failure."""
        outcome = self._executor.execute(device_id, ["shell", "pm", *pm_args], self._timeout)
        if isinstance(outcome, ExecutionError):
            logger.warning("Inventory query failed on %s: %s", device_id, outcome.message)
            raise failure_from_error(outcome)
        return outcome.stdout
