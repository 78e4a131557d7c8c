"""Export orchestrator: selected maps in, archive bytes out.

The archive layout is::

    manifest.json          ExportManifest (camelCase JSON)
    maps/<map_id>.json     one payload per selected map

Export only reads from the library.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from mfbundle import MANIFEST_FILE_NAME, ExportManifest
from mfschema import MapSnapshot, MapStoreInterface
from mindflow.archive import ArchiveCodecInterface, ZipArchiveCodec
from mindflow.clock import SystemClock
from mindflow.codec import SnapshotCodec
from mindflow.config import EngineConfig
from mindflow.errors import MapNotFoundError
from mindflow.events import EventBus
from mindflow.logging import setup_logging
from mindflow.manifest import build_manifest


class ExportArchive(BaseModel):
    """A finished export, ready to be offered as a download."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    file_name: str
    manifest: ExportManifest


def default_file_name(generated_at: datetime, prefix: str = "mindflow-export") -> str:
    """Return ``<prefix>-YYYYMMDDTHHMMSSZ.zip`` for the export timestamp."""
    return f"{prefix}-{generated_at.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}.zip"


class ExportOrchestrator:
    """Packages maps from the local library into a portable archive."""

    def __init__(
        self,
        store: MapStoreInterface,
        *,
        config: Optional[EngineConfig] = None,
        archive_codec: Optional[ArchiveCodecInterface] = None,
        snapshot_codec: Optional[SnapshotCodec] = None,
        clock: Any = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.store = store
        self.config = config or EngineConfig()
        self.archive_codec = archive_codec or ZipArchiveCodec(compression_level=self.config.compression_level)
        self.snapshot_codec = snapshot_codec or SnapshotCodec()
        self.clock = clock or SystemClock()
        self.events = events or EventBus()

    async def export_selection(
        self,
        map_ids: Sequence[str],
        *,
        notes: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> ExportArchive:
        """Export the selected maps as a single archive.

        Maps appear in the manifest in the order they were selected; a map
        selected twice is exported once.

        Args:
            map_ids: Ids of the maps to export. Must not be empty.
            notes: Optional free-form text stored in the manifest.
            file_name: Overrides the generated archive file name.

        Returns:
            The archive bytes, its file name and the manifest it contains.

        Raises:
            ValueError: If no maps are selected.
            MapNotFoundError: If a selected map does not exist.
        """
        logger = setup_logging()
        selected = list(dict.fromkeys(map_ids))
        if not selected:
            raise ValueError("Select at least one map to export")

        self.events.emit("export.started", map_ids=selected)

        snapshots: list[MapSnapshot] = []
        for map_id in selected:
            snapshot = await self.store.load_snapshot(map_id)
            if snapshot is None:
                raise MapNotFoundError(map_id)
            snapshots.append(snapshot)

        generated_at = self.clock.now()
        manifest = build_manifest(
            snapshots,
            producer_version=self.config.producer_version,
            generated_at=generated_at,
            notes=notes,
        )

        files: dict[str, bytes] = {MANIFEST_FILE_NAME: manifest.to_json().encode("utf-8")}
        for snapshot, entry in zip(snapshots, manifest.entries):
            files[entry.payload_path] = self.snapshot_codec.encode_bytes(snapshot)

        archive = ExportArchive(
            data=self.archive_codec.pack(files),
            file_name=file_name or default_file_name(generated_at, self.config.file_name_prefix),
            manifest=manifest,
        )

        self.events.emit("export.completed", file_name=archive.file_name, total_maps=manifest.total_maps)
        logger.info(
            {
                "message": "Export complete",
                "file_name": archive.file_name,
                "maps": [entry.name for entry in manifest.entries],
                "bytes": len(archive.data),
            },
            pprint=True,
        )
        return archive


async def write_archive(
    store: MapStoreInterface,
    map_ids: Sequence[str],
    directory: Path,
    *,
    config: Optional[EngineConfig] = None,
    notes: Optional[str] = None,
) -> Path:
    """Export maps and write the archive into `directory`.

    A convenience wrapper around `ExportOrchestrator` for scripts and
    backups. Returns the path of the written file.
    """
    archive = await ExportOrchestrator(store, config=config).export_selection(map_ids, notes=notes)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / archive.file_name
    path.write_bytes(archive.data)
    return path
