"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules, including a
fake device transport that behaves like ``adb`` against a small package
database.
"""

import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import pytest
from debloatctl.bridge.executor import CommandExecutor
from debloatctl.classifier.catalog import CatalogEntry, SafetyCatalog
from debloatctl.classifier.classifier import SafetyClassifier
from debloatctl.core.config import EngineConfig
from debloatctl.core.engine import DebloatEngine
from debloatctl.core.ledger import UndoLedger
from debloatctl.core.snapshots import SnapshotStore
from debloatctl.models.package import (
    DeviceSnapshot,
    Package,
    PackageOrigin,
    PackageState,
    SafetyTier,
)

SERIAL = "R58M123ABC"


@dataclass
class FakePackage:
    apk_path: str
    state: PackageState = PackageState.ENABLED


@dataclass
class FakeDevice:
    """In-memory device answering the adb commands the engine issues.

    Failures can be injected per package (``fail``), as timeouts per
    package (``timeouts``: number of timeouts before the command works),
    or as a disconnect after a number of calls (``disconnect_after``).
    """

    serial: str = SERIAL
    manufacturer: str = "samsung"
    model: str = "SM-G991B"
    android_version: str = "14"
    packages: dict[str, FakePackage] = field(default_factory=dict)
    fail: dict[str, str] = field(default_factory=dict)
    timeouts: dict[str, int] = field(default_factory=dict)
    disconnect_after: int | None = None
    calls: list[tuple[str, list[str]]] = field(default_factory=list)

    def __call__(self, device_id: str, argv: list[str], timeout: float) -> tuple[int, str, str]:
        self.calls.append((device_id, list(argv)))

        if argv == ["devices", "-l"]:
            return 0, self._devices_output(), ""

        if self.disconnect_after is not None and len(self.calls) > self.disconnect_after:
            return 1, "", f"error: device '{device_id}' not found"
        if device_id != self.serial:
            return 1, "", f"error: device '{device_id}' not found"

        package_id = argv[-1]
        if package_id in self.timeouts and self.timeouts[package_id] > 0:
            self.timeouts[package_id] -= 1
            raise subprocess.TimeoutExpired(["adb", *argv], timeout)

        match argv:
            case ["shell", "getprop", prop]:
                return 0, self._getprop(prop) + "\n", ""
            case ["shell", "pm", "list", "packages", *flags]:
                return 0, self._list_packages(flags), ""
            case ["shell", "pm", "disable-user", "--user", "0", pkg]:
                return self._change(
                    pkg, PackageState.DISABLED, f"Package {pkg} new state: disabled-user"
                )
            case ["shell", "pm", "enable", "--user", "0", pkg]:
                return self._change(pkg, PackageState.ENABLED, f"Package {pkg} new state: enabled")
            case ["shell", "pm", "uninstall", "-k", "--user", "0", pkg]:
                return self._change(pkg, PackageState.UNINSTALLED, "Success")
            case ["shell", "cmd", "package", "install-existing", "--user", "0", pkg]:
                return self._install_existing(pkg)

        return 1, "", f"unsupported command: {' '.join(argv)}"

    def _devices_output(self) -> str:
        return (
            "List of devices attached\n"
            f"{self.serial}          device usb:1-1 product:o1s model:{self.model} "
            "device:o1s transport_id:3\n"
        )

    def _getprop(self, prop: str) -> str:
        return {
            "ro.product.manufacturer": self.manufacturer,
            "ro.product.model": self.model,
            "ro.build.version.release": self.android_version,
        }.get(prop, "")

    def _list_packages(self, flags: list[str]) -> str:
        lines = []
        for pid, pkg in sorted(self.packages.items()):
            if "-u" not in flags and pkg.state == PackageState.UNINSTALLED:
                continue
            if "-d" in flags and pkg.state != PackageState.DISABLED:
                continue
            lines.append(f"package:{pkg.apk_path}={pid}" if "-f" in flags else f"package:{pid}")
        return "\n".join(lines) + "\n"

    def _change(self, package_id: str, state: PackageState, message: str) -> tuple[int, str, str]:
        if package_id in self.fail:
            return 1, "", self.fail[package_id]
        pkg = self.packages.get(package_id)
        if pkg is None:
            return 1, "", f"Error: package {package_id} not found"
        pkg.state = state
        return 0, message + "\n", ""

    def _install_existing(self, package_id: str) -> tuple[int, str, str]:
        if package_id in self.fail:
            return 1, "", self.fail[package_id]
        pkg = self.packages.get(package_id)
        if pkg is None:
            return 1, "", f"Error: package {package_id} not found"
        # An installed package keeps its enabled/disabled state
        if pkg.state == PackageState.UNINSTALLED:
            pkg.state = PackageState.ENABLED
        return 0, f"Package {package_id} installed for user: 0\n", ""

    def state_of(self, package_id: str) -> PackageState:
        return self.packages[package_id].state


@pytest.fixture
def fake_device() -> FakeDevice:
    """A Samsung device with a handful of packages in every tier."""
    return FakeDevice(
        packages={
            "com.android.systemui": FakePackage("/system_ext/priv-app/SystemUI/SystemUI.apk"),
            "com.facebook.katana": FakePackage("/product/app/Facebook/Facebook.apk"),
            "com.facebook.appmanager": FakePackage("/product/app/FBAppManager/FBAppManager.apk"),
            "com.google.android.apps.maps": FakePackage("/product/app/Maps/Maps.apk"),
            "com.netflix.mediaclient": FakePackage(
                "/product/app/Netflix/Netflix.apk", PackageState.DISABLED
            ),
            "com.vendor.bloat1": FakePackage("/vendor/app/Bloat1/Bloat1.apk"),
            "org.example.notes": FakePackage("/data/app/~~abc==/org.example.notes-1/base.apk"),
        }
    )


@pytest.fixture
def catalog() -> SafetyCatalog:
    """Small catalog covering every tier."""
    return SafetyCatalog(
        version="test-1",
        entries=(
            CatalogEntry(
                pattern="com.android.systemui", tier=SafetyTier.UNSAFE, recommended_action="keep"
            ),
            CatalogEntry(
                pattern="com.facebook.*", tier=SafetyTier.SAFE, recommended_action="disable"
            ),
            CatalogEntry(pattern="com.google.android.apps.*", tier=SafetyTier.ADVANCED),
            CatalogEntry(
                pattern="com.netflix.*", tier=SafetyTier.SAFE, recommended_action="uninstall"
            ),
            CatalogEntry(pattern="org.example.notes", tier=SafetyTier.SAFE),
        ),
    )


@pytest.fixture
def classifier(catalog: SafetyCatalog) -> SafetyClassifier:
    """Classifier over the test catalog without overrides."""
    return SafetyClassifier(catalog)


@pytest.fixture
def executor(fake_device: FakeDevice) -> CommandExecutor:
    """Command executor talking to the fake device."""
    return CommandExecutor(fake_device, default_timeout=5.0)


@pytest.fixture
def ledger(tmp_path: Path) -> UndoLedger:
    """Ledger in a temporary directory."""
    return UndoLedger(tmp_path / "ledger")


@pytest.fixture
def snapshot_store(tmp_path: Path) -> SnapshotStore:
    """Snapshot store in a temporary directory."""
    return SnapshotStore(tmp_path / "snapshots")


@pytest.fixture
def engine(
    fake_device: FakeDevice,
    classifier: SafetyClassifier,
    ledger: UndoLedger,
    snapshot_store: SnapshotStore,
) -> DebloatEngine:
    """Engine wired to the fake device and temporary storage."""
    return DebloatEngine(
        EngineConfig(command_timeout_seconds=5.0),
        transport=fake_device,
        classifier=classifier,
        ledger=ledger,
        snapshots=snapshot_store,
    )


SnapshotFactory = Callable[..., DeviceSnapshot]


@pytest.fixture
def make_snapshot() -> SnapshotFactory:
    """Factory building snapshots of system packages in given states."""

    def factory(
        states: dict[str, PackageState],
        device_id: str = SERIAL,
        captured_at: datetime | None = None,
    ) -> DeviceSnapshot:
        return DeviceSnapshot.create(
            device_id=device_id,
            packages=[
                Package(
                    package_id=pid,
                    label=pid.rsplit(".", 1)[-1].capitalize(),
                    origin=PackageOrigin.SYSTEM,
                    state=state,
                )
                for pid, state in states.items()
            ],
            captured_at=captured_at or datetime.now(UTC),
        )

    return factory


@pytest.fixture
def make_device() -> Callable[..., FakeDevice]:
    """Factory building empty fake devices with a given serial and manufacturer."""

    def factory(serial: str, manufacturer: str = "samsung") -> FakeDevice:
        return FakeDevice(serial=serial, manufacturer=manufacturer)

    return factory
