"""
Map Archive Models

Lightweight Pydantic models defining the contract between archive producers
(export) and consumers (import).

Example:
    # Producer side
    from mfbundle import ExportManifest, ManifestEntry, payload_path_for

    entry = ManifestEntry(
        id="graph-1",
        name="Alpha",
        schema_version=3,
        payload_path=payload_path_for("graph-1"),
        last_modified="2025-01-15T10:30:00Z",
    )

    # Consumer side
    manifest = ExportManifest.model_validate_json(raw_manifest)
"""

from .models import (
    CURRENT_MANIFEST_VERSION,
    MANIFEST_FILE_NAME,
    PAYLOAD_DIR,
    ExportManifest,
    ManifestEntry,
    payload_path_for,
)

__all__ = [
    "CURRENT_MANIFEST_VERSION",
    "MANIFEST_FILE_NAME",
    "PAYLOAD_DIR",
    "ExportManifest",
    "ManifestEntry",
    "payload_path_for",
]

__version__ = "0.1.0"
