"""Key-value persistence for user settings."""

from peercompare.repositories.base import InMemoryStore, JsonFileStore, KeyValueStore, build_store

__all__ = [
    "build_store",
    "KeyValueStore",
    "InMemoryStore",
    "JsonFileStore",
]
