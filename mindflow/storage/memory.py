"""In-memory map library for tests and development.

Maps are kept as frozen `MapSnapshot` values in a dict keyed by map id, so a
write is a single dict assignment and therefore atomic per map. Data is lost
when the process exits.
"""

from mfschema import MapSnapshot, MapStoreInterface, MapSummary, WriteMode
from mindflow.errors import StorageError


class InMemoryMapStore(MapStoreInterface):
    """Dictionary-backed map library.

    Example:
        ```python
        store = InMemoryMapStore()
        await store.write_snapshot(snapshot, WriteMode.INSERT)
        loaded = await store.load_snapshot(snapshot.map_id)
        ```
    """

    def __init__(self) -> None:
        self._maps: dict[str, MapSnapshot] = {}

    async def load_snapshot(self, map_id: str) -> MapSnapshot | None:
        return self._maps.get(map_id)

    async def write_snapshot(self, snapshot: MapSnapshot, mode: WriteMode) -> str:
        """Store a snapshot.

        Raises:
            StorageError: If `mode` is INSERT and the id is already taken.
        """
        if mode == WriteMode.INSERT and snapshot.map_id in self._maps:
            raise StorageError(f"Map '{snapshot.map_id}' already exists")
        self._maps[snapshot.map_id] = snapshot
        return snapshot.map_id

    async def list_existing_names(self) -> list[str]:
        return [snapshot.name for snapshot in self._maps.values()]

    async def find_by_name(self, name: str) -> MapSummary | None:
        folded = name.casefold()
        for snapshot in self._maps.values():
            if snapshot.name.casefold() == folded:
                return _summarize(snapshot)
        return None

    async def has_map(self, map_id: str) -> bool:
        return map_id in self._maps

    async def list_maps(self) -> list[MapSummary]:
        summaries = [_summarize(snapshot) for snapshot in self._maps.values()]
        return sorted(summaries, key=lambda s: s.last_modified, reverse=True)

    async def delete_map(self, map_id: str) -> bool:
        return self._maps.pop(map_id, None) is not None

    async def count(self) -> int:
        return len(self._maps)


def _summarize(snapshot: MapSnapshot) -> MapSummary:
    return MapSummary(map_id=snapshot.map_id, name=snapshot.name, last_modified=snapshot.graph.last_modified)
