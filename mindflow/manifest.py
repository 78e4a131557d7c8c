"""Manifest builder and validator.

Export builds an `ExportManifest` from the snapshots it is about to write.
Import runs `validate_manifest` on the parsed ``manifest.json`` before
anything else touches the archive. Validation is fail-fast and checks, in
order:

    (a) required fields are present and well-typed, and entry strings are
        not blank
        (`MANIFEST_MISSING_FIELD`)
    (b) the manifest version, and every entry schema version, is one this
        application understands (`IMPORT_MANIFEST_UNSUPPORTED`)
    (c) ``totalMaps`` equals the number of entries
        (`MANIFEST_INTEGRITY_MISMATCH`)
    (d) entry ids are pairwise unique (`MANIFEST_DUPLICATE_ID`)
    (e) payload paths are pairwise unique (`MANIFEST_INTEGRITY_MISMATCH`)

Older manifests pass validation; `SchemaMigrator.migrate_manifest` reports
them to the caller.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from mfbundle import CURRENT_MANIFEST_VERSION, ExportManifest, ManifestEntry, payload_path_for
from mfschema import CURRENT_SCHEMA_VERSION, MapSnapshot
from mindflow.clock import SystemClock, isoformat_z
from mindflow.errors import ErrorCode, ManifestValidationError

_MANIFEST_FIELDS: tuple[tuple[str, type], ...] = (
    ("manifestVersion", int),
    ("generatedAt", str),
    ("producerVersion", str),
    ("totalMaps", int),
    ("entries", list),
)

_ENTRY_FIELDS: tuple[tuple[str, type], ...] = (
    ("id", str),
    ("name", str),
    ("payloadPath", str),
    ("lastModified", str),
    ("schemaVersion", int),
)

# Manifests written before the rename carry the producer under this key.
_LEGACY_PRODUCER_KEY = "appVersion"


def build_manifest(
    snapshots: Iterable[MapSnapshot],
    *,
    producer_version: str,
    generated_at: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> ExportManifest:
    """Build the manifest for an export, keeping the order snapshots were supplied in."""
    entries = tuple(
        ManifestEntry(
            id=snapshot.map_id,
            name=snapshot.name,
            schema_version=snapshot.schema_version,
            payload_path=payload_path_for(snapshot.map_id),
            last_modified=snapshot.graph.last_modified,
        )
        for snapshot in snapshots
    )
    when = generated_at if generated_at is not None else SystemClock().now()
    return ExportManifest(
        manifest_version=CURRENT_MANIFEST_VERSION,
        generated_at=isoformat_z(when),
        producer_version=producer_version,
        total_maps=len(entries),
        entries=entries,
        notes=notes,
    )


def _is_type(value: Any, expected: type) -> bool:
    # bool is an int subclass; a JSON true must not pass as a version number
    if expected is int and isinstance(value, bool):
        return False
    return isinstance(value, expected)


def _require(raw: dict[str, Any], key: str, expected: type, prefix: str = "", *, non_blank: bool = False) -> None:
    if key not in raw or raw[key] is None:
        raise ManifestValidationError(
            ErrorCode.MANIFEST_MISSING_FIELD,
            f"Manifest is missing required field '{prefix}{key}'",
            field=f"{prefix}{key}",
        )
    if not _is_type(raw[key], expected):
        raise ManifestValidationError(
            ErrorCode.MANIFEST_MISSING_FIELD,
            f"Manifest field '{prefix}{key}' must be of type {expected.__name__}",
            field=f"{prefix}{key}",
        )
    if non_blank and not raw[key].strip():
        raise ManifestValidationError(
            ErrorCode.MANIFEST_MISSING_FIELD,
            f"Manifest field '{prefix}{key}' must not be blank",
            field=f"{prefix}{key}",
        )


def validate_manifest(raw: Any) -> ExportManifest:
    """Validate a parsed ``manifest.json`` and return it as an `ExportManifest`.

    Args:
        raw: The decoded JSON value.

    Returns:
        The validated manifest.

    Raises:
        ManifestValidationError: On the first violated invariant, with the
            error code and offending field set.
    """
    if not isinstance(raw, dict):
        raise ManifestValidationError(ErrorCode.MANIFEST_MISSING_FIELD, "Manifest must be a JSON object")

    data = dict(raw)
    if "producerVersion" not in data and _LEGACY_PRODUCER_KEY in data:
        data["producerVersion"] = data.pop(_LEGACY_PRODUCER_KEY)

    # (a) required fields
    for key, expected in _MANIFEST_FIELDS:
        _require(data, key, expected)
    for index, item in enumerate(data["entries"]):
        prefix = f"entries[{index}]."
        if not isinstance(item, dict):
            raise ManifestValidationError(
                ErrorCode.MANIFEST_MISSING_FIELD,
                f"Manifest entry {index} must be an object",
                field=f"entries[{index}]",
            )
        for key, expected in _ENTRY_FIELDS:
            _require(item, key, expected, prefix, non_blank=expected is str)

    # (b) versions
    version = data["manifestVersion"]
    if version > CURRENT_MANIFEST_VERSION or version < 1:
        raise ManifestValidationError(
            ErrorCode.IMPORT_MANIFEST_UNSUPPORTED,
            f"Unsupported manifest version {version} (this application reads up to {CURRENT_MANIFEST_VERSION})",
            field="manifestVersion",
        )
    for index, item in enumerate(data["entries"]):
        schema_version = item["schemaVersion"]
        if schema_version > CURRENT_SCHEMA_VERSION or schema_version < 1:
            raise ManifestValidationError(
                ErrorCode.IMPORT_MANIFEST_UNSUPPORTED,
                f"Map '{item['name']}' uses unsupported schema version {schema_version}",
                field=f"entries[{index}].schemaVersion",
            )

    # (c) count
    if data["totalMaps"] != len(data["entries"]):
        raise ManifestValidationError(
            ErrorCode.MANIFEST_INTEGRITY_MISMATCH,
            f"Manifest totalMaps ({data['totalMaps']}) does not match entry count ({len(data['entries'])})",
            field="totalMaps",
        )

    # (d) unique ids, (e) unique payload paths
    seen_ids: set[str] = set()
    seen_paths: set[str] = set()
    for index, item in enumerate(data["entries"]):
        if item["id"] in seen_ids:
            raise ManifestValidationError(
                ErrorCode.MANIFEST_DUPLICATE_ID,
                f"Duplicate map id '{item['id']}' in manifest",
                field=f"entries[{index}].id",
            )
        seen_ids.add(item["id"])
    for index, item in enumerate(data["entries"]):
        if item["payloadPath"] in seen_paths:
            raise ManifestValidationError(
                ErrorCode.MANIFEST_INTEGRITY_MISMATCH,
                f"Payload path '{item['payloadPath']}' is listed more than once",
                field=f"entries[{index}].payloadPath",
            )
        seen_paths.add(item["payloadPath"])

    return ExportManifest(
        manifest_version=version,
        generated_at=data["generatedAt"],
        producer_version=data["producerVersion"],
        total_maps=data["totalMaps"],
        entries=tuple(
            ManifestEntry(
                id=item["id"],
                name=item["name"],
                schema_version=item["schemaVersion"],
                payload_path=item["payloadPath"],
                last_modified=item["lastModified"],
            )
            for item in data["entries"]
        ),
        notes=data.get("notes") if isinstance(data.get("notes"), str) else None,
    )
