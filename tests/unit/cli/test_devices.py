"""Unit tests for devices command."""

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest
from debloatctl.cli.main import app
from debloatctl.core.engine import DebloatEngine
from debloatctl.core.errors import DeviceNotFoundError
from debloatctl.models.execution import ErrorKind, ExecutionError
from typer.testing import CliRunner

runner = CliRunner()


@pytest.fixture
def cli_engine(engine: DebloatEngine) -> Iterator[DebloatEngine]:
    """Route the command to the fake device engine."""
    with patch("debloatctl.cli.commands.devices.get_engine", return_value=engine):
        yield engine


class TestDevicesCommand:
    """Tests for the devices command."""

    def test_lists_device(self, cli_engine: DebloatEngine) -> None:
        """Attached devices are listed with their model."""
        result = runner.invoke(app, ["devices"])

        assert result.exit_code == 0
        assert "R58M123ABC" in result.output
        assert "SM-G991B" in result.output

    def test_details(self, cli_engine: DebloatEngine) -> None:
        """--details reads manufacturer and Android version."""
        result = runner.invoke(app, ["devices", "--details"])

        assert result.exit_code == 0
        assert "samsung" in result.output
        assert "14" in result.output

    def test_no_devices(self) -> None:
        """An empty list prints a message."""
        engine = MagicMock()
        engine.devices.return_value = []
        with patch("debloatctl.cli.commands.devices.get_engine", return_value=engine):
            result = runner.invoke(app, ["devices"])

        assert result.exit_code == 0
        assert "No devices attached" in result.output

    def test_adb_missing(self) -> None:
        """A failing adb exits with an error."""
        engine = MagicMock()
        engine.devices.side_effect = DeviceNotFoundError(
            ExecutionError(kind=ErrorKind.DEVICE_NOT_FOUND, device_id="", message="adb not found")
        )
        with patch("debloatctl.cli.commands.devices.get_engine", return_value=engine):
            result = runner.invoke(app, ["devices"])

        assert result.exit_code == 1
        assert "Cannot list devices" in result.output
