"""Tests for the reference map library implementations.

Both stores are run through the same contract tests; the JSON directory store
also gets checks for its on-disk format and atomic writes.
"""

import json
from pathlib import Path

import pytest

from mfschema import MapStoreInterface, WriteMode
from mindflow.errors import StorageError, StorageUnavailableError
from mindflow.storage import InMemoryMapStore, JsonDirectoryMapStore
from tests.conftest import make_snapshot


@pytest.fixture(params=["memory", "json_dir"])
def any_store(request, tmp_path: Path) -> MapStoreInterface:
    if request.param == "memory":
        return InMemoryMapStore()
    return JsonDirectoryMapStore(tmp_path / "library")


class TestMapStoreContract:
    async def test_write_and_load(self, any_store: MapStoreInterface) -> None:
        snapshot = make_snapshot()
        assert await any_store.write_snapshot(snapshot, WriteMode.INSERT) == "graph-alpha"
        assert await any_store.load_snapshot("graph-alpha") == snapshot

    async def test_load_missing(self, any_store: MapStoreInterface) -> None:
        assert await any_store.load_snapshot("graph-nope") is None

    async def test_insert_refuses_existing_id(self, any_store: MapStoreInterface) -> None:
        await any_store.write_snapshot(make_snapshot(), WriteMode.INSERT)
        with pytest.raises(StorageError, match="already exists"):
            await any_store.write_snapshot(make_snapshot(name="Other"), WriteMode.INSERT)

    async def test_overwrite_replaces_everything(self, any_store: MapStoreInterface) -> None:
        await any_store.write_snapshot(make_snapshot(nodes=5), WriteMode.INSERT)
        await any_store.write_snapshot(make_snapshot(nodes=1, with_reference=False), WriteMode.OVERWRITE)

        loaded = await any_store.load_snapshot("graph-alpha")
        assert loaded is not None
        assert loaded.node_count() == 1
        assert loaded.reference_count() == 0

    async def test_names_and_lookup(self, any_store: MapStoreInterface) -> None:
        await any_store.write_snapshot(make_snapshot("g1", "Alpha Plan"), WriteMode.INSERT)
        await any_store.write_snapshot(make_snapshot("g2", "Beta"), WriteMode.INSERT)

        assert sorted(await any_store.list_existing_names()) == ["Alpha Plan", "Beta"]
        found = await any_store.find_by_name("ALPHA plan")
        assert found is not None and found.map_id == "g1"
        assert await any_store.find_by_name("Gamma") is None

    async def test_has_delete_count(self, any_store: MapStoreInterface) -> None:
        await any_store.write_snapshot(make_snapshot(), WriteMode.INSERT)
        assert await any_store.has_map("graph-alpha")
        assert await any_store.count() == 1

        assert await any_store.delete_map("graph-alpha")
        assert not await any_store.delete_map("graph-alpha")
        assert await any_store.count() == 0

    async def test_list_maps_most_recent_first(self, any_store: MapStoreInterface) -> None:
        older = make_snapshot("g1", "Older")
        newer = make_snapshot("g2", "Newer")
        newer = newer.model_copy(update={"graph": newer.graph.model_copy(update={"last_modified": "2025-06-01T00:00:00.000Z"})})
        await any_store.write_snapshot(older, WriteMode.INSERT)
        await any_store.write_snapshot(newer, WriteMode.INSERT)

        assert [m.name for m in await any_store.list_maps()] == ["Newer", "Older"]


class TestJsonDirectoryMapStore:
    async def test_file_per_map_in_payload_shape(self, tmp_path: Path) -> None:
        store = JsonDirectoryMapStore(tmp_path)
        await store.write_snapshot(make_snapshot(), WriteMode.INSERT)

        data = json.loads((tmp_path / "graph-alpha.json").read_text(encoding="utf-8"))
        assert data["graph"]["name"] == "Alpha Map"
        assert data["nodes"][0]["graphId"] == "graph-alpha"
        assert [p.name for p in tmp_path.iterdir()] == ["graph-alpha.json"]

    async def test_missing_root_is_empty_library(self, tmp_path: Path) -> None:
        store = JsonDirectoryMapStore(tmp_path / "not-created-yet")
        assert await store.count() == 0
        assert await store.list_existing_names() == []

    async def test_rejects_path_like_ids(self, tmp_path: Path) -> None:
        store = JsonDirectoryMapStore(tmp_path)
        with pytest.raises(StorageError):
            await store.write_snapshot(make_snapshot("../escape"), WriteMode.INSERT)

    async def test_unusable_root_is_unavailable(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = JsonDirectoryMapStore(blocker / "library")

        with pytest.raises(StorageUnavailableError):
            await store.write_snapshot(make_snapshot(), WriteMode.INSERT)

    async def test_corrupt_file_raises_storage_error(self, tmp_path: Path) -> None:
        (tmp_path / "graph-alpha.json").write_text("{oops", encoding="utf-8")
        store = JsonDirectoryMapStore(tmp_path)

        with pytest.raises(StorageError):
            await store.load_snapshot("graph-alpha")
