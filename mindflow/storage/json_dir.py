"""File-backed map library: one JSON document per map in a directory.

Each map is stored as ``<root>/<map_id>.json`` in the same payload shape an
export archive uses. Writes go to a temporary file in the same directory
followed by `os.replace`, so a map is either fully written or untouched.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from mfschema import MapSnapshot, MapStoreInterface, MapSummary, WriteMode
from mindflow.codec import SnapshotCodec
from mindflow.errors import PayloadError, StorageError, StorageUnavailableError
from mindflow.logging import setup_logging

logger = setup_logging()


class JsonDirectoryMapStore(MapStoreInterface):
    """Map library persisted as a directory of JSON files."""

    def __init__(self, root: Path | str, codec: SnapshotCodec | None = None) -> None:
        self.root = Path(root)
        self.codec = codec or SnapshotCodec()

    def _path_for(self, map_id: str) -> Path:
        if not map_id or "/" in map_id or "\\" in map_id or map_id in (".", ".."):
            raise StorageError(f"Map id '{map_id}' cannot be used as a file name")
        return self.root / f"{map_id}.json"

    def _ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Library directory {self.root} is not usable: {e}") from e

    def _read(self, path: Path) -> MapSnapshot:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return self.codec.decode(payload)
        except (OSError, json.JSONDecodeError, AttributeError) as e:
            raise StorageError(f"Unable to read {path.name}: {e}") from e
        except PayloadError as e:
            raise StorageError(f"Stored map {path.name} is invalid: {e}") from e

    def _iter_snapshots(self) -> list[MapSnapshot]:
        if not self.root.is_dir():
            return []
        return [self._read(path) for path in sorted(self.root.glob("*.json"))]

    async def load_snapshot(self, map_id: str) -> MapSnapshot | None:
        path = self._path_for(map_id)
        if not path.is_file():
            return None
        return self._read(path)

    async def write_snapshot(self, snapshot: MapSnapshot, mode: WriteMode) -> str:
        """Write a snapshot atomically.

        Raises:
            StorageUnavailableError: If the library directory cannot be created.
            StorageError: If `mode` is INSERT and the map exists, or the write fails.
        """
        self._ensure_root()
        path = self._path_for(snapshot.map_id)
        if mode == WriteMode.INSERT and path.exists():
            raise StorageError(f"Map '{snapshot.map_id}' already exists")

        data = self.codec.encode_bytes(snapshot)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{snapshot.map_id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Failed to write map '{snapshot.map_id}': {e}") from e

        logger.debug({"message": "Map written", "map_id": snapshot.map_id, "mode": mode.value}, pprint=True)
        return snapshot.map_id

    async def list_existing_names(self) -> list[str]:
        return [snapshot.name for snapshot in self._iter_snapshots()]

    async def find_by_name(self, name: str) -> MapSummary | None:
        folded = name.casefold()
        for snapshot in self._iter_snapshots():
            if snapshot.name.casefold() == folded:
                return MapSummary(map_id=snapshot.map_id, name=snapshot.name, last_modified=snapshot.graph.last_modified)
        return None

    async def has_map(self, map_id: str) -> bool:
        return self._path_for(map_id).is_file()

    async def list_maps(self) -> list[MapSummary]:
        summaries = [
            MapSummary(map_id=s.map_id, name=s.name, last_modified=s.graph.last_modified) for s in self._iter_snapshots()
        ]
        return sorted(summaries, key=lambda s: s.last_modified, reverse=True)

    async def delete_map(self, map_id: str) -> bool:
        path = self._path_for(map_id)
        if not path.is_file():
            return False
        path.unlink()
        return True

    async def count(self) -> int:
        if not self.root.is_dir():
            return 0
        return len(list(self.root.glob("*.json")))
