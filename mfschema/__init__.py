"""Map record models and the local library storage interface."""

from mfschema.records import (
    CURRENT_SCHEMA_VERSION,
    EdgeRecord,
    GraphRecord,
    GraphSettings,
    MapSnapshot,
    NodeRecord,
    ReferenceRecord,
    Viewport,
)
from mfschema.storage import MapStoreInterface, MapSummary, WriteMode

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "EdgeRecord",
    "GraphRecord",
    "GraphSettings",
    "MapSnapshot",
    "NodeRecord",
    "ReferenceRecord",
    "Viewport",
    "MapStoreInterface",
    "MapSummary",
    "WriteMode",
]
