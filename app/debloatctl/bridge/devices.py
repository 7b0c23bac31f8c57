"""Connected device discovery and properties.

Lists attached devices via ``adb devices -l`` and reads identifying
properties with ``getprop``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from debloatctl.bridge.executor import CommandExecutor
from debloatctl.core.errors import failure_from_error
from debloatctl.models.execution import ExecutionError

logger = logging.getLogger(__name__)

# "<serial>   device usb:1-1 product:x model:y device:z transport_id:1"
_DEVICE_LINE = re.compile(r"^(\S+)\s+device(?:\s+(.*))?$")
_DEVICE_ATTR = re.compile(r"(\w+):(\S+)")


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    """Identifying details for an attached device.

    Attributes:
        serial: ADB serial.
        manufacturer: Value of ro.product.manufacturer.
        model: Value of ro.product.model.
        android_version: Value of ro.build.version.release.
    """

    serial: str
    manufacturer: str = ""
    model: str = ""
    android_version: str = ""

    @property
    def display_name(self) -> str:
        """Human-readable name, e.g. 'Samsung SM-G991B (R58N12345)'."""
        manufacturer = self.manufacturer.capitalize() if self.manufacturer else "Unknown"
        model = self.model or "Device"
        return f"{manufacturer} {model} ({self.serial})"


def parse_devices_output(output: str) -> list[DeviceInfo]:
    """Parse ``adb devices -l`` output.

    Only devices in the ``device`` state are returned; offline and
    unauthorized entries are skipped.

    Args:
        output: Raw command output.

    Returns:
        DeviceInfo per attached device, with model filled from the listing.
    """
    devices: list[DeviceInfo] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("List of devices", "*")):
            continue
        match = _DEVICE_LINE.match(line)
        if match is None:
            continue
        attrs = dict(_DEVICE_ATTR.findall(match.group(2) or ""))
        devices.append(
            DeviceInfo(
                serial=match.group(1),
                model=attrs.get("model", "").replace("_", " "),
            )
        )
    return devices


def list_devices(executor: CommandExecutor) -> list[DeviceInfo]:
    """List attached devices.

    Raises:
        ExecutionFailure: If adb itself cannot be run.
    """
    outcome = executor.execute("", ["devices", "-l"])
    if isinstance(outcome, ExecutionError):
        raise failure_from_error(outcome)
    return parse_devices_output(outcome.stdout)


def get_prop(executor: CommandExecutor, serial: str, prop: str) -> str:
    """Read one system property from a device.

    Raises:
        ExecutionFailure: If the device cannot be queried.
    """
    outcome = executor.execute(serial, ["shell", "getprop", prop])
    if isinstance(outcome, ExecutionError):
        raise failure_from_error(outcome)
    return outcome.stdout.strip()


def device_info(executor: CommandExecutor, serial: str) -> DeviceInfo:
    """Read manufacturer, model and Android version of a device.

    Properties are read one call at a time; batching several names into
    one getprop call is not reliable across vendors.

    Raises:
        ExecutionFailure: If the device cannot be queried.
    """
    info = DeviceInfo(
        serial=serial,
        manufacturer=get_prop(executor, serial, "ro.product.manufacturer"),
        model=get_prop(executor, serial, "ro.product.model"),
        android_version=get_prop(executor, serial, "ro.build.version.release"),
    )
    logger.debug("Device info for %s: %s", serial, info)
    return info
