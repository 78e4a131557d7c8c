"""Test fixtures and factories for the portability engine.

This module provides:
- Factory functions for map records and snapshots with deterministic
  timestamps (`make_snapshot`, `make_node`, `make_edge`, `make_reference`)
- Helpers that assemble raw archives by hand, so tests can feed the importer
  legacy, malformed or corrupt content (`build_archive`, `legacy_payload`)
- Store doubles that fail, yield or get interrupted on demand
  (`FlakyMapStore`, `UnavailableMapStore`, `NamesUnavailableMapStore`,
  `YieldingMapStore`, `InterruptingMapStore`)
- Pytest fixtures for stores, clocks, event buses and orchestrators
"""

import asyncio
import itertools
import json
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import pytest

from mfbundle import CURRENT_MANIFEST_VERSION, MANIFEST_FILE_NAME, payload_path_for
from mfschema import (
    CURRENT_SCHEMA_VERSION,
    EdgeRecord,
    GraphRecord,
    MapSnapshot,
    NodeRecord,
    ReferenceRecord,
    WriteMode,
)
from mindflow.archive import ZipArchiveCodec
from mindflow.clock import FixedClock
from mindflow.codec import SnapshotCodec
from mindflow.config import EngineConfig
from mindflow.errors import StorageError, StorageUnavailableError
from mindflow.events import EventBus
from mindflow.export import ExportOrchestrator
from mindflow.importer import ImportOrchestrator
from mindflow.storage.memory import InMemoryMapStore

BASE_TIMESTAMP = "2025-01-01T00:00:00.000Z"
FIXED_NOW = datetime(2025, 2, 3, 4, 5, 6, 789000, tzinfo=timezone.utc)


def ts(minute: int) -> str:
    """Timestamp `minute` minutes after BASE_TIMESTAMP."""
    return f"2025-01-01T00:{minute:02d}:00.000Z"


def make_node(node_id: str, graph_id: str, text: str = "", minute: int = 0, **extra: Any) -> NodeRecord:
    return NodeRecord(
        id=node_id,
        graph_id=graph_id,
        text=text or node_id,
        x=float(minute * 10),
        y=0.0,
        created=ts(minute),
        last_modified=ts(minute),
        node_kind="thought",
        front_flag=True,
        **extra,
    )


def make_edge(edge_id: str, graph_id: str, source: str, target: str, minute: int = 0) -> EdgeRecord:
    return EdgeRecord(
        id=edge_id,
        graph_id=graph_id,
        source_node_id=source,
        target_node_id=target,
        created=ts(minute),
    )


def make_reference(ref_id: str, graph_id: str, source: str, target: str, label: Optional[str] = None) -> ReferenceRecord:
    return ReferenceRecord(
        id=ref_id,
        graph_id=graph_id,
        source_node_id=source,
        target_node_id=target,
        label=label,
        label_hidden=False,
        created=BASE_TIMESTAMP,
        last_modified=BASE_TIMESTAMP,
    )


def make_graph(map_id: str, name: str, schema_version: int = CURRENT_SCHEMA_VERSION) -> GraphRecord:
    return GraphRecord(
        id=map_id,
        name=name,
        created=BASE_TIMESTAMP,
        last_modified=BASE_TIMESTAMP,
        last_opened=BASE_TIMESTAMP,
        schema_version=schema_version,
    )


def make_snapshot(
    map_id: str = "graph-alpha",
    name: str = "Alpha Map",
    *,
    nodes: int = 3,
    with_reference: bool = True,
) -> MapSnapshot:
    """Create a map whose nodes form a chain n1 - n2 - ... plus one reference."""
    node_records = [make_node(f"{map_id}-n{i}", map_id, f"Node {i}", minute=i) for i in range(1, nodes + 1)]
    edge_records = [
        make_edge(f"{map_id}-e{i}", map_id, node_records[i - 1].id, node_records[i].id, minute=i)
        for i in range(1, len(node_records))
    ]
    references = []
    if with_reference and len(node_records) >= 2:
        references.append(make_reference(f"{map_id}-r1", map_id, node_records[0].id, node_records[-1].id, "see also"))
    return MapSnapshot(
        graph=make_graph(map_id, name),
        nodes=tuple(node_records),
        edges=tuple(edge_records),
        references=tuple(references),
    )


def manifest_dict(
    entries: Iterable[dict[str, Any]],
    *,
    manifest_version: int = CURRENT_MANIFEST_VERSION,
    total_maps: Optional[int] = None,
) -> dict[str, Any]:
    entries = list(entries)
    return {
        "manifestVersion": manifest_version,
        "generatedAt": BASE_TIMESTAMP,
        "producerVersion": "1.0.0",
        "totalMaps": len(entries) if total_maps is None else total_maps,
        "entries": entries,
    }


def entry_dict(map_id: str, name: str, schema_version: int = CURRENT_SCHEMA_VERSION) -> dict[str, Any]:
    return {
        "id": map_id,
        "name": name,
        "schemaVersion": schema_version,
        "payloadPath": payload_path_for(map_id),
        "lastModified": BASE_TIMESTAMP,
    }


def legacy_payload(map_id: str, name: str) -> dict[str, Any]:
    """A schema version 1 payload: no viewport, settings, references or node formatting."""
    return {
        "graph": {
            "id": map_id,
            "name": name,
            "created": BASE_TIMESTAMP,
            "lastModified": BASE_TIMESTAMP,
            "lastOpened": BASE_TIMESTAMP,
            "schemaVersion": 1,
        },
        "nodes": [
            {"id": "n1", "graphId": map_id, "text": "Root", "x": 0, "y": 0, "created": ts(1), "lastModified": ts(1)},
            {"id": "n2", "graphId": map_id, "text": "Child", "x": 10, "y": 0, "created": ts(2), "lastModified": ts(2)},
        ],
        "edges": [
            {"id": "e1", "graphId": map_id, "sourceNodeId": "n1", "targetNodeId": "n2", "created": ts(2)},
        ],
    }


def build_archive(manifest: Optional[dict[str, Any]], payloads: dict[str, Any]) -> bytes:
    """Zip a manifest and payloads. Payload values may be dicts (JSON-encoded) or raw bytes."""
    files: dict[str, bytes] = {}
    if manifest is not None:
        files[MANIFEST_FILE_NAME] = json.dumps(manifest).encode("utf-8")
    for path, payload in payloads.items():
        files[path] = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return ZipArchiveCodec().pack(files)


def archive_for(*snapshots: MapSnapshot) -> bytes:
    """Build a current-version archive for the given snapshots."""
    codec = SnapshotCodec()
    manifest = manifest_dict(entry_dict(s.map_id, s.name) for s in snapshots)
    return build_archive(manifest, {payload_path_for(s.map_id): codec.encode(s) for s in snapshots})


class FlakyMapStore(InMemoryMapStore):
    """In-memory store whose writes fail for chosen map names."""

    def __init__(self, failing_names: Iterable[str] = ()) -> None:
        super().__init__()
        self.failing_names = set(failing_names)
        self.writes: list[tuple[str, WriteMode]] = []

    async def write_snapshot(self, snapshot: MapSnapshot, mode: WriteMode) -> str:
        if snapshot.name in self.failing_names:
            raise StorageError(f"disk full while writing '{snapshot.name}'")
        self.writes.append((snapshot.map_id, mode))
        return await super().write_snapshot(snapshot, mode)


class UnavailableMapStore(InMemoryMapStore):
    """In-memory store that becomes unavailable after `allowed_writes` writes."""

    def __init__(self, allowed_writes: int = 0) -> None:
        super().__init__()
        self.allowed_writes = allowed_writes

    async def write_snapshot(self, snapshot: MapSnapshot, mode: WriteMode) -> str:
        if self.allowed_writes <= 0:
            raise StorageUnavailableError("library database is locked")
        self.allowed_writes -= 1
        return await super().write_snapshot(snapshot, mode)


class NamesUnavailableMapStore(InMemoryMapStore):
    """In-memory store whose name listing works `allowed_listings` times, then fails."""

    def __init__(self, allowed_listings: int = 1) -> None:
        super().__init__()
        self.allowed_listings = allowed_listings

    async def list_existing_names(self) -> list[str]:
        if self.allowed_listings <= 0:
            raise StorageUnavailableError("library database is locked")
        self.allowed_listings -= 1
        return await super().list_existing_names()


class YieldingMapStore(InMemoryMapStore):
    """In-memory store that yields to the event loop before listing names."""

    async def list_existing_names(self) -> list[str]:
        await asyncio.sleep(0)
        return await super().list_existing_names()


class Interrupted(BaseException):
    """Stands in for an interruption that per-entry error handling must not absorb."""


class InterruptingMapStore(InMemoryMapStore):
    """In-memory store whose write of `interrupt_name` raises `Interrupted`."""

    def __init__(self, interrupt_name: str) -> None:
        super().__init__()
        self.interrupt_name = interrupt_name

    async def write_snapshot(self, snapshot: MapSnapshot, mode: WriteMode) -> str:
        if snapshot.name == self.interrupt_name:
            raise Interrupted()
        return await super().write_snapshot(snapshot, mode)


def sequential_ids(prefix: str = "new"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


@pytest.fixture
def store() -> InMemoryMapStore:
    """Provide an empty in-memory map library."""
    return InMemoryMapStore()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(fixed=FIXED_NOW)


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def exporter(store: InMemoryMapStore, clock: FixedClock, events: EventBus) -> ExportOrchestrator:
    return ExportOrchestrator(store, config=EngineConfig(producer_version="9.9.9"), clock=clock, events=events)


@pytest.fixture
def importer(store: InMemoryMapStore, clock: FixedClock, events: EventBus) -> ImportOrchestrator:
    return ImportOrchestrator(store=store, clock=clock, events=events, id_factory=sequential_ids())
