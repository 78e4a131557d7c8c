"""Schema migration for archives written by older application versions.

Map payloads are upgraded one version at a time by the steps registered in
`UPGRADERS`, keyed by the version they upgrade *from*. Each step is a pure
function over the raw payload dict (camelCase JSON shape) that fills in the
fields its version introduced and leaves existing values alone, so applying
a step twice changes nothing.

Adding schema version 4 means writing ``_upgrade_3_to_4`` and registering it
under key 3; no branching in `SchemaMigrator` changes.

Manifests are additive across versions and are never rewritten; an older
manifest only yields a notice for the caller.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, NamedTuple

from pydantic import BaseModel, Field

from mfbundle import CURRENT_MANIFEST_VERSION, ExportManifest
from mfschema import CURRENT_SCHEMA_VERSION
from mindflow.errors import MigrationError
from mindflow.logging import setup_logging

Payload = dict[str, Any]

DEFAULT_VIEWPORT = {"x": 0, "y": 0, "zoom": 1}
DEFAULT_SETTINGS = {"autoLoadLast": True}
DEFAULT_NODE_FORMATTING = {"nodeKind": "thought", "frontFlag": True}
DEFAULT_NOTE_FORMATTING = {
    "textAlign": "left",
    "textVAlign": "top",
    "overflowMode": "auto-resize",
    "backgroundOpacity": 100,
    "maxHeight": 280,
}

logger = setup_logging()


class UpgradeStep(NamedTuple):
    description: str
    apply: Callable[[Payload], Payload]


def _upgrade_1_to_2(payload: Payload) -> Payload:
    graph = payload["graph"]
    graph.setdefault("viewport", dict(DEFAULT_VIEWPORT))
    graph.setdefault("settings", dict(DEFAULT_SETTINGS))
    if not isinstance(payload.get("references"), list):
        payload["references"] = []
    return payload


def _upgrade_2_to_3(payload: Payload) -> Payload:
    for node in payload.get("nodes", []):
        for key, value in DEFAULT_NODE_FORMATTING.items():
            node.setdefault(key, value)
        if node["nodeKind"] == "note":
            for key, value in DEFAULT_NOTE_FORMATTING.items():
                node.setdefault(key, value)
    for reference in payload.get("references", []):
        reference.setdefault("labelHidden", False)
    return payload


UPGRADERS: dict[int, UpgradeStep] = {
    1: UpgradeStep("added viewport, map settings and reference connections", _upgrade_1_to_2),
    2: UpgradeStep("added node formatting defaults", _upgrade_2_to_3),
}


class MigrationResult(BaseModel):
    """Outcome of migrating one map payload."""

    payload: Payload
    from_version: int
    to_version: int
    attempted: bool = False
    notes: list[str] = Field(default_factory=list)


class SchemaMigrator:
    """Upgrades map payloads and inspects manifests from older versions."""

    def __init__(
        self,
        upgraders: dict[int, UpgradeStep] | None = None,
        target_version: int = CURRENT_SCHEMA_VERSION,
    ) -> None:
        self.upgraders = UPGRADERS if upgraders is None else upgraders
        self.target_version = target_version

    def migrate_payload(self, payload: Payload, from_version: int) -> MigrationResult:
        """Upgrade a raw payload from `from_version` to the target version.

        The input dict is not modified. An already-current payload comes back
        unchanged with ``attempted`` False.

        Raises:
            MigrationError: If `from_version` is newer than the target, no
                step is registered for a version gap, or a step fails.
        """
        if from_version == self.target_version:
            return MigrationResult(payload=payload, from_version=from_version, to_version=from_version)
        if from_version > self.target_version:
            raise MigrationError(
                f"Cannot downgrade schema from {from_version} to {self.target_version}",
                field="schemaVersion",
            )

        current = copy.deepcopy(payload)
        notes: list[str] = []
        version = from_version
        while version < self.target_version:
            step = self.upgraders.get(version)
            if step is None:
                raise MigrationError(f"No upgrade path from schema version {version}", field="schemaVersion")
            try:
                current = step.apply(current)
            except (KeyError, TypeError, AttributeError) as e:
                raise MigrationError(
                    f"Upgrade from schema {version} to {version + 1} failed: {e}",
                    field="schemaVersion",
                ) from e
            current["graph"]["schemaVersion"] = version + 1
            notes.append(f"Upgraded schema from {version} to {version + 1}: {step.description}")
            version += 1

        logger.debug(
            {
                "message": "Payload migrated",
                "map_id": current["graph"].get("id"),
                "from_version": from_version,
                "to_version": version,
            },
            pprint=True,
        )
        return MigrationResult(
            payload=current,
            from_version=from_version,
            to_version=version,
            attempted=True,
            notes=notes,
        )

    def migrate_manifest(self, manifest: ExportManifest) -> list[str]:
        """Return caller-visible notices for a manifest older than current."""
        if manifest.manifest_version >= CURRENT_MANIFEST_VERSION:
            return []
        return [
            f"Archive manifest version {manifest.manifest_version} is older than "
            f"current version {CURRENT_MANIFEST_VERSION}; it was read as-is"
        ]
