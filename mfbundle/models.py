"""
Map Archive Models

Lightweight Pydantic models defining the contract between archive producers
(the export side) and consumers (the import side).

This module has minimal dependencies (only pydantic) and is designed to be
importable by both sides without pulling in the engine.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CURRENT_MANIFEST_VERSION = 2
"""Archive-level format version. Version 2 added the optional `notes` field."""

MANIFEST_FILE_NAME = "manifest.json"
PAYLOAD_DIR = "maps"


def payload_path_for(map_id: str) -> str:
    """Return the archive path of the payload file for a map."""
    return f"{PAYLOAD_DIR}/{map_id}.json"


class ManifestEntry(BaseModel):
    """One map listed in the archive manifest."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Map id at export time (opaque to the destination library)")
    name: str = Field(..., description="Map display name")
    schema_version: int = Field(..., description="Schema version the payload was written with")
    payload_path: str = Field(..., description="Path of the payload file inside the archive")
    last_modified: str = Field(..., description="ISO 8601 last-modified timestamp of the map")


class ExportManifest(BaseModel):
    """Archive manifest (`manifest.json`).

    `total_maps` always equals `len(entries)` and entry ids are pairwise
    unique; `mindflow.manifest.validate_manifest` enforces both on import.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    manifest_version: int = Field(CURRENT_MANIFEST_VERSION, description="Manifest format version")
    generated_at: str = Field(..., description="ISO 8601 generation timestamp")
    producer_version: str = Field(..., description="Version of the application that wrote the archive")
    total_maps: int = Field(..., description="Number of maps in the archive")
    entries: tuple[ManifestEntry, ...] = Field(default=(), description="Maps in export order")
    notes: Optional[str] = Field(None, description="Free-form export notes (manifest v2+)")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)
