"""Device commands for package state transitions.

Every transition targets the primary user (0). Uninstalling keeps the
APK on the system partition, so ``install-existing`` can bring it back.
"""

from debloatctl.models.operation import PlannedOperation
from debloatctl.models.package import PackageState

USER_ID = "0"


def _disable(package_id: str) -> list[str]:
    return ["shell", "pm", "disable-user", "--user", USER_ID, package_id]


def _enable(package_id: str) -> list[str]:
    return ["shell", "pm", "enable", "--user", USER_ID, package_id]


def _uninstall(package_id: str) -> list[str]:
    # -k keeps data and cache so a later restore gets the app back intact
    return ["shell", "pm", "uninstall", "-k", "--user", USER_ID, package_id]


def _install_existing(package_id: str) -> list[str]:
    return ["shell", "cmd", "package", "install-existing", "--user", USER_ID, package_id]


def commands_for(operation: PlannedOperation) -> list[list[str]]:
    """Build the adb argument lists that perform an operation.

    Args:
        operation: The planned transition.

    Returns:
        One or more argv lists (passed after ``adb -s <serial>``) to run in order.

    Raises:
        ValueError: If the transition is not supported.
    """
    pkg = operation.package_id
    source, target = operation.from_state, operation.to_state

    if target == PackageState.UNINSTALLED:
        return [_uninstall(pkg)]

    if source == PackageState.UNINSTALLED:
        if target == PackageState.ENABLED:
            return [_install_existing(pkg)]
        # Cannot disable a package that is not installed for the user
        return [_install_existing(pkg), _disable(pkg)]

    if target == PackageState.DISABLED:
        return [_disable(pkg)]
    if target == PackageState.ENABLED:
        return [_enable(pkg)]

    msg = f"Unsupported transition {source.value} -> {target.value} for {pkg}"
    raise ValueError(msg)


def output_reports_failure(output: str) -> bool:
    """Check if package manager output reports a failure despite exit code 0.

    Older adb versions and some vendor builds do not propagate the exit
    status of ``adb shell``; ``pm`` still prints ``Failure [...]`` or an
    exception on stdout.
    """
    for line in output.splitlines():
        stripped = line.strip()
        if stripped.startswith(("Failure", "Error:")) or stripped.startswith("Exception occurred"):
            return True
        if "SecurityException" in stripped:
            return True
    return False
