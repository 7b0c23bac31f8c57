"""Device bridge layer.

This module exports the ADB transport and the command executor.
"""

from debloatctl.bridge.adb import AdbBridge, Transport
from debloatctl.bridge.devices import DeviceInfo, device_info, list_devices
from debloatctl.bridge.executor import CommandExecutor

__all__ = [
    "AdbBridge",
    "CommandExecutor",
    "DeviceInfo",
    "Transport",
    "device_info",
    "list_devices",
]
