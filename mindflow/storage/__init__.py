"""Reference implementations of the map library interface."""

from mindflow.storage.json_dir import JsonDirectoryMapStore
from mindflow.storage.memory import InMemoryMapStore

__all__ = [
    "InMemoryMapStore",
    "JsonDirectoryMapStore",
]
