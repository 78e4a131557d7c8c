"""Tests for schema migration.

This module verifies:
- Legacy payloads are upgraded step by step to the current schema
- Each step fills in its documented defaults without overwriting data
- Migrating a current payload is a no-op; re-applying a step changes nothing
- The input payload is never mutated
- Missing upgrade paths, downgrades and failing steps raise MigrationError
- Older manifests produce a notice
"""

import copy

import pytest

from mfbundle import CURRENT_MANIFEST_VERSION
from mfschema import CURRENT_SCHEMA_VERSION
from mindflow.codec import SnapshotCodec
from mindflow.errors import ErrorCode, MigrationError
from mindflow.manifest import validate_manifest
from mindflow.migration import UPGRADERS, SchemaMigrator, UpgradeStep
from tests.conftest import entry_dict, legacy_payload, make_snapshot, manifest_dict


@pytest.fixture
def migrator() -> SchemaMigrator:
    return SchemaMigrator()


class TestMigratePayload:
    def test_v1_upgraded_to_current(self, migrator: SchemaMigrator) -> None:
        result = migrator.migrate_payload(legacy_payload("graph-legacy", "Legacy Map"), 1)

        assert result.attempted
        assert result.from_version == 1
        assert result.to_version == CURRENT_SCHEMA_VERSION
        assert result.payload["graph"]["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert result.notes == [
            "Upgraded schema from 1 to 2: added viewport, map settings and reference connections",
            "Upgraded schema from 2 to 3: added node formatting defaults",
        ]

    def test_v1_to_v2_defaults(self, migrator: SchemaMigrator) -> None:
        payload = UPGRADERS[1].apply(legacy_payload("g1", "Legacy"))

        assert payload["graph"]["viewport"] == {"x": 0, "y": 0, "zoom": 1}
        assert payload["graph"]["settings"] == {"autoLoadLast": True}
        assert payload["references"] == []

    def test_v2_to_v3_node_and_reference_defaults(self) -> None:
        payload = legacy_payload("g1", "Legacy")
        payload["nodes"].append(
            {"id": "n3", "graphId": "g1", "nodeKind": "note", "created": "x", "lastModified": "x", "maxHeight": 500}
        )
        payload["references"] = [{"id": "r1", "label": "why"}]

        upgraded = UPGRADERS[2].apply(payload)

        thought, _, note = upgraded["nodes"]
        assert thought["nodeKind"] == "thought"
        assert thought["frontFlag"] is True
        assert "textAlign" not in thought
        assert note["textAlign"] == "left"
        assert note["textVAlign"] == "top"
        assert note["overflowMode"] == "auto-resize"
        assert note["backgroundOpacity"] == 100
        assert note["maxHeight"] == 500
        assert upgraded["references"][0]["labelHidden"] is False

    def test_existing_values_are_kept(self, migrator: SchemaMigrator) -> None:
        payload = legacy_payload("g1", "Legacy")
        payload["graph"]["viewport"] = {"x": 40, "y": -12, "zoom": 2.5}

        result = migrator.migrate_payload(payload, 1)

        assert result.payload["graph"]["viewport"] == {"x": 40, "y": -12, "zoom": 2.5}
        assert [n["text"] for n in result.payload["nodes"]] == ["Root", "Child"]

    def test_current_payload_is_noop(self, migrator: SchemaMigrator) -> None:
        payload = SnapshotCodec().encode(make_snapshot())
        result = migrator.migrate_payload(payload, CURRENT_SCHEMA_VERSION)

        assert not result.attempted
        assert result.notes == []
        assert result.payload == payload

    def test_steps_are_idempotent(self) -> None:
        once = UPGRADERS[2].apply(UPGRADERS[1].apply(legacy_payload("g1", "Legacy")))
        twice = UPGRADERS[2].apply(UPGRADERS[1].apply(copy.deepcopy(once)))
        assert twice == once

    def test_input_not_mutated(self, migrator: SchemaMigrator) -> None:
        payload = legacy_payload("g1", "Legacy")
        original = copy.deepcopy(payload)
        migrator.migrate_payload(payload, 1)
        assert payload == original

    def test_migrated_payload_decodes(self, migrator: SchemaMigrator) -> None:
        result = migrator.migrate_payload(legacy_payload("g1", "Legacy"), 1)
        snapshot = SnapshotCodec().decode(result.payload)

        assert snapshot.schema_version == CURRENT_SCHEMA_VERSION
        assert snapshot.graph.viewport is not None
        assert all(node.node_kind == "thought" for node in snapshot.nodes)

    def test_refuses_downgrade(self, migrator: SchemaMigrator) -> None:
        with pytest.raises(MigrationError) as exc_info:
            migrator.migrate_payload({"graph": {}}, CURRENT_SCHEMA_VERSION + 1)
        assert exc_info.value.code == ErrorCode.IMPORT_MIGRATION_FAILED

    def test_missing_upgrade_path(self) -> None:
        migrator = SchemaMigrator(upgraders={2: UPGRADERS[2]})
        with pytest.raises(MigrationError, match="No upgrade path from schema version 1"):
            migrator.migrate_payload(legacy_payload("g1", "Legacy"), 1)

    def test_failing_step_wrapped(self) -> None:
        def broken(payload):
            raise KeyError("nodes")

        migrator = SchemaMigrator(upgraders={1: UpgradeStep("breaks", broken), 2: UPGRADERS[2]})
        with pytest.raises(MigrationError, match="Upgrade from schema 1 to 2 failed"):
            migrator.migrate_payload(legacy_payload("g1", "Legacy"), 1)

    def test_malformed_node_fails_migration(self, migrator: SchemaMigrator) -> None:
        payload = legacy_payload("g1", "Legacy")
        payload["nodes"].append("not a node")
        with pytest.raises(MigrationError):
            migrator.migrate_payload(payload, 1)


class TestMigrateManifest:
    def test_current_manifest_has_no_notice(self, migrator: SchemaMigrator) -> None:
        manifest = validate_manifest(manifest_dict([entry_dict("g1", "Alpha")]))
        assert migrator.migrate_manifest(manifest) == []

    def test_older_manifest_has_notice(self, migrator: SchemaMigrator) -> None:
        manifest = validate_manifest(manifest_dict([], manifest_version=CURRENT_MANIFEST_VERSION - 1))
        notices = migrator.migrate_manifest(manifest)

        assert len(notices) == 1
        assert "older than current" in notices[0]
