"""Persisted repository and component library state."""

from .migration import STATE_VERSION, migrate_state
from .persistence import JSONFileBackend, MemoryBackend, StateBackend
from .repository_store import STORAGE_KEY, RepositoryStore, generate_repository_id

__all__ = [
    "RepositoryStore",
    "StateBackend",
    "JSONFileBackend",
    "MemoryBackend",
    "STORAGE_KEY",
    "STATE_VERSION",
    "migrate_state",
    "generate_repository_id",
]
