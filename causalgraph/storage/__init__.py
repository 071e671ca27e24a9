"""Provenance store implementations."""

from causalgraph.storage.json_file import JsonFileProvenanceStore
from causalgraph.storage.memory import InMemoryProvenanceStore

__all__ = [
    "InMemoryProvenanceStore",
    "JsonFileProvenanceStore",
]
