"""Snapshot codec: one stored map to/from its archive payload.

A payload file (``maps/<id>.json``) is UTF-8 JSON of the shape
``{"graph": {...}, "nodes": [...], "edges": [...], "references": [...]}``
with camelCase keys. Decoding is split in two steps so schema migration can
run on the raw shape in between:

    raw = codec.parse_payload(data, manifest_entry)   # bytes -> dict
    raw = migrator.migrate_payload(raw, version).payload
    snapshot = codec.decode(raw)                       # dict -> MapSnapshot

Collections are ordered by creation (`created`, then `id`) on both encode and
decode, so an export of an unchanged map is byte-stable apart from the
manifest timestamp.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Callable, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from mfbundle import ManifestEntry
from mfschema import (
    CURRENT_SCHEMA_VERSION,
    EdgeRecord,
    GraphRecord,
    MapSnapshot,
    NodeRecord,
    ReferenceRecord,
)
from mindflow.errors import PayloadError

RecordT = TypeVar("RecordT", NodeRecord, EdgeRecord, ReferenceRecord)

PAYLOAD_COLLECTIONS = ("nodes", "edges", "references")


def sort_by_creation(records: Iterable[RecordT]) -> tuple[RecordT, ...]:
    """Order records by creation timestamp, breaking ties by id."""
    return tuple(sorted(records, key=lambda r: (r.created, r.id)))


def _dump(record: BaseModel) -> dict[str, Any]:
    return record.model_dump(by_alias=True, exclude_none=True, mode="json")


class SnapshotCodec:
    """Converts MapSnapshot objects to and from archive payloads."""

    def encode(self, snapshot: MapSnapshot) -> dict[str, Any]:
        """Return the JSON-ready payload dict for a snapshot."""
        return {
            "graph": _dump(snapshot.graph),
            "nodes": [_dump(n) for n in sort_by_creation(snapshot.nodes)],
            "edges": [_dump(e) for e in sort_by_creation(snapshot.edges)],
            "references": [_dump(r) for r in sort_by_creation(snapshot.references)],
        }

    def encode_bytes(self, snapshot: MapSnapshot) -> bytes:
        return json.dumps(self.encode(snapshot), indent=2, ensure_ascii=False).encode("utf-8")

    def parse_payload(self, data: bytes, entry: ManifestEntry) -> dict[str, Any]:
        """Parse payload bytes into a raw payload dict and check its identity.

        Missing collections are normalized to empty lists (version 1 archives
        predate reference connections).

        Raises:
            PayloadError: If the bytes are not UTF-8 JSON, the top level is
                not an object, the graph record is missing, or the graph id
                differs from the manifest entry id.
        """
        path = entry.payload_path
        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PayloadError(f"Payload {path} is not valid JSON: {e}", field=path) from e

        if not isinstance(raw, dict):
            raise PayloadError(f"Payload for {path} is not an object", field=path)
        graph = raw.get("graph")
        if not isinstance(graph, dict):
            raise PayloadError(f"Missing graph data for {path}", field=path)
        if graph.get("id") != entry.id:
            raise PayloadError(f"Graph id mismatch for {path}", field=path)

        payload: dict[str, Any] = {"graph": dict(graph)}
        for key in PAYLOAD_COLLECTIONS:
            value = raw.get(key)
            payload[key] = [dict(item) if isinstance(item, dict) else item for item in value] if isinstance(value, list) else []
        return payload

    def decode(self, payload: dict[str, Any]) -> MapSnapshot:
        """Build a MapSnapshot from a (current-schema) raw payload.

        Raises:
            PayloadError: If any record fails validation or the payload claims
                a schema version newer than this application supports.
        """
        graph_id = payload.get("graph", {}).get("id", "?")
        try:
            graph = GraphRecord.model_validate(payload["graph"])
            nodes = [NodeRecord.model_validate(n) for n in payload.get("nodes", [])]
            edges = [EdgeRecord.model_validate(e) for e in payload.get("edges", [])]
            references = [ReferenceRecord.model_validate(r) for r in payload.get("references", [])]
        except (KeyError, TypeError, ValidationError) as e:
            raise PayloadError(f"Invalid payload for map {graph_id}: {e}", field="graph") from e

        if graph.schema_version > CURRENT_SCHEMA_VERSION:
            raise PayloadError(
                f"Map {graph_id} uses schema version {graph.schema_version}, "
                f"newer than supported version {CURRENT_SCHEMA_VERSION}",
                field="graph.schemaVersion",
            )

        return MapSnapshot(
            graph=graph,
            nodes=sort_by_creation(nodes),
            edges=sort_by_creation(edges),
            references=sort_by_creation(references),
        )


def _new_id() -> str:
    return str(uuid.uuid4())


def reidentify(
    snapshot: MapSnapshot,
    map_id: str,
    name: str,
    id_factory: Callable[[], str] = _new_id,
) -> MapSnapshot:
    """Return a copy of `snapshot` stored under a different identity.

    The graph record takes `map_id` and `name`, and every child record is
    re-parented. When the map id actually changes, node, edge and reference
    ids are re-minted as well and edge/reference endpoints are remapped, so
    the copy cannot collide with records of the map it came from.
    """
    if map_id == snapshot.map_id:
        graph = snapshot.graph.model_copy(update={"name": name})
        return snapshot.model_copy(update={"graph": graph})

    node_ids = {node.id: id_factory() for node in snapshot.nodes}

    def endpoint(node_id: str) -> str:
        return node_ids.get(node_id, node_id)

    graph = snapshot.graph.model_copy(update={"id": map_id, "name": name})
    nodes = tuple(n.model_copy(update={"id": node_ids[n.id], "graph_id": map_id}) for n in snapshot.nodes)
    edges = tuple(
        e.model_copy(
            update={
                "id": id_factory(),
                "graph_id": map_id,
                "source_node_id": endpoint(e.source_node_id),
                "target_node_id": endpoint(e.target_node_id),
            }
        )
        for e in snapshot.edges
    )
    references = tuple(
        r.model_copy(
            update={
                "id": id_factory(),
                "graph_id": map_id,
                "source_node_id": endpoint(r.source_node_id),
                "target_node_id": endpoint(r.target_node_id),
            }
        )
        for r in snapshot.references
    )
    return MapSnapshot(graph=graph, nodes=nodes, edges=edges, references=references)
