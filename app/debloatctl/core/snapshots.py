"""Persistent device snapshots.

Keeps the two most recent snapshots of each device in a JSON file under
~/.local/state/debloatctl/snapshots/. Writes are atomic, so a crash never
leaves a half-written file behind.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from tempfile import NamedTemporaryFile

from debloatctl.core.paths import device_filename, get_snapshot_dir
from debloatctl.models.package import DeviceSnapshot

logger = logging.getLogger(__name__)

# Current and previous snapshot
_KEEP = 2


class SnapshotStore:
    """Stores the latest snapshots per device.

    Attributes:
        snapshot_dir: Directory containing the snapshot files.
    """

    def __init__(self, snapshot_dir: Path | None = None) -> None:
        """Initialize SnapshotStore.

        Args:
            snapshot_dir: Optional override for the snapshot directory.
        """
        self._snapshot_dir = snapshot_dir if snapshot_dir is not None else get_snapshot_dir()
        self._lock = threading.Lock()

    def path_for(self, device_id: str) -> Path:
        """Path to the snapshot file of a device."""
        return self._snapshot_dir / device_filename(device_id, ".json")

    def _load(self, device_id: str) -> list[DeviceSnapshot]:
        """Load stored snapshots, newest first."""
        path = self.path_for(device_id)
        if not path.exists():
            return []

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return [DeviceSnapshot.from_dict(item) for item in data["snapshots"]]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable snapshot file %s: %s", path, e)
            return []

    def latest(self, device_id: str) -> DeviceSnapshot | None:
        """Most recent snapshot of a device, if any."""
        snapshots = self._load(device_id)
        return snapshots[0] if snapshots else None

    def previous(self, device_id: str) -> DeviceSnapshot | None:
        """Snapshot superseded by the latest one, if any."""
        snapshots = self._load(device_id)
        return snapshots[1] if len(snapshots) > 1 else None

    def save(self, snapshot: DeviceSnapshot) -> Path:
        """Store a snapshot as the latest one for its device.

        Raises:
            OSError: If the file cannot be written.
        """
        with self._lock:
            snapshots = [snapshot, *self._load(snapshot.device_id)][:_KEEP]
            path = self.path_for(snapshot.device_id)
            path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(
                {"snapshots": [s.to_dict() for s in snapshots]},
                indent=2,
            )

            tmp_path: Path | None = None
            try:
                with NamedTemporaryFile(
                    mode="w",
                    encoding="utf-8",
                    dir=path.parent,
                    delete=False,
                    suffix=".tmp",
                ) as f:
                    tmp_path = Path(f.name)
                    f.write(payload)
                os.replace(str(tmp_path), str(path))
            except OSError:
                if tmp_path is not None and tmp_path.exists():
                    tmp_path.unlink()
                raise

        logger.debug(
            "Saved snapshot of %s (%d packages)", snapshot.device_id, len(snapshot.packages)
        )
        return path
