"""Map record models.

A saved map is a graph record plus its nodes, edges and reference
connections. These models mirror the shapes the local library stores and
the payload files inside an export archive carry, so the same classes are
used on both sides of the codec.

JSON keys are camelCase (`graphId`, `lastModified`); Python attributes are
snake_case. Node, edge and reference records allow extra keys: formatting
fields added by newer application versions survive a round trip untouched.

All records are frozen. Use `record.model_copy(update={...})` to derive a
changed copy.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CURRENT_SCHEMA_VERSION = 3
"""Per-map schema version written by this application."""

_RECORD_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="allow",
)


class Viewport(BaseModel):
    """Canvas transform persisted per map."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    zoom: float = Field(default=1.0, gt=0.0)


class GraphSettings(BaseModel):
    """Per-map settings."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, extra="allow")

    auto_load_last: bool = True


class GraphRecord(BaseModel):
    """Map-level metadata."""

    model_config = _RECORD_CONFIG

    id: str = Field(description="Map identifier, unique within a library.")
    name: str = Field(description="Display name shown in the library.")
    created: str = Field(description="ISO 8601 creation timestamp.")
    last_modified: str = Field(description="ISO 8601 last-modified timestamp.")
    last_opened: str = Field(description="ISO 8601 last-opened timestamp.")
    schema_version: int = Field(ge=1, description="Schema version this record was written with.")
    settings: Optional[GraphSettings] = None
    viewport: Optional[Viewport] = None


class NodeRecord(BaseModel):
    """A node on the canvas (thought, note or rectangle)."""

    model_config = _RECORD_CONFIG

    id: str
    graph_id: str
    text: str = ""
    x: float = 0.0
    y: float = 0.0
    created: str
    last_modified: str
    node_kind: Optional[Literal["thought", "note", "rect"]] = None
    front_flag: Optional[bool] = None
    width: Optional[float] = None
    height: Optional[float] = None


class EdgeRecord(BaseModel):
    """An undirected hierarchy edge between two nodes."""

    model_config = _RECORD_CONFIG

    id: str
    graph_id: str
    source_node_id: str
    target_node_id: str
    source_handle_id: Optional[str] = None
    target_handle_id: Optional[str] = None
    created: str
    undirected: bool = True


class ReferenceRecord(BaseModel):
    """A directed annotation/reference connection between two nodes."""

    model_config = _RECORD_CONFIG

    id: str
    graph_id: str
    source_node_id: str
    target_node_id: str
    source_handle_id: Optional[str] = None
    target_handle_id: Optional[str] = None
    style: Literal["single", "double", "none"] = "single"
    label: Optional[str] = None
    label_hidden: Optional[bool] = None
    created: str
    last_modified: str


class MapSnapshot(BaseModel):
    """Full representation of one map: metadata plus all of its records.

    Collections are ordered by creation (`created`, then `id`). Snapshots are
    transient; the local store owns the canonical copy.
    """

    model_config = ConfigDict(frozen=True)

    graph: GraphRecord
    nodes: tuple[NodeRecord, ...] = ()
    edges: tuple[EdgeRecord, ...] = ()
    references: tuple[ReferenceRecord, ...] = ()

    @property
    def map_id(self) -> str:
        return self.graph.id

    @property
    def name(self) -> str:
        return self.graph.name

    @property
    def schema_version(self) -> int:
        return self.graph.schema_version

    def node_count(self) -> int:
        return len(self.nodes)

    def edge_count(self) -> int:
        return len(self.edges)

    def reference_count(self) -> int:
        return len(self.references)
