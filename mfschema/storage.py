"""Local library storage interface.

The portability engine never talks to a database directly. It reads and
writes whole map snapshots through `MapStoreInterface`, which the host
application implements on top of its own persistence layer.

Contract:
    - `write_snapshot` is atomic per map: the graph record and every node,
      edge and reference become visible together, or nothing changes.
    - `StorageUnavailableError` (from `mindflow.errors`) signals that the
      store as a whole cannot be used; any other exception is a failure of
      that one write.
    - Name lookups are case-insensitive.

All interfaces are async-first so implementations can wrap non-blocking
drivers.
"""

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel, ConfigDict

from mfschema.records import MapSnapshot


class WriteMode(str, Enum):
    """How `write_snapshot` treats an existing map with the same id."""

    INSERT = "insert"
    """Create a new map. The id must not already exist."""

    OVERWRITE = "overwrite"
    """Replace the map with this id, dropping all of its previous records."""


class MapSummary(BaseModel):
    """Library listing row."""

    model_config = ConfigDict(frozen=True)

    map_id: str
    name: str
    last_modified: str


class MapStoreInterface(ABC):
    """Abstract interface for the local map library."""

    @abstractmethod
    async def load_snapshot(self, map_id: str) -> MapSnapshot | None:
        """Return the full snapshot of a map, or None if not found."""

    @abstractmethod
    async def write_snapshot(self, snapshot: MapSnapshot, mode: WriteMode) -> str:
        """Persist a snapshot atomically and return its map id."""

    @abstractmethod
    async def list_existing_names(self) -> list[str]:
        """Return the display names of every map in the library."""

    @abstractmethod
    async def find_by_name(self, name: str) -> MapSummary | None:
        """Find a map by case-insensitive display name."""

    @abstractmethod
    async def has_map(self, map_id: str) -> bool:
        """Return True if a map with this id exists."""

    @abstractmethod
    async def list_maps(self) -> list[MapSummary]:
        """List every map, most recently modified first."""

    @abstractmethod
    async def delete_map(self, map_id: str) -> bool:
        """Delete a map and its records. Returns True if found and deleted."""

    @abstractmethod
    async def count(self) -> int:
        """Return the number of maps in the library."""
