"""
Store Package

Provides the abstract store interface and its implementations.
Firebase Realtime Database is the production backend; the in-memory
store backs the tests. Both are designed to be swappable.
"""

from typing import Optional

from household_store.store.firebase_store import FirebaseStore
from household_store.store.interface import Snapshot, StoreClient
from household_store.store.memory import InMemoryStore
from household_store.store.timeouts import TimeoutStore


def create_store(timeout_seconds: Optional[float] = None) -> StoreClient:
    """Build the production store: Firebase behind the uniform timeout."""
    return TimeoutStore(FirebaseStore(), timeout_seconds=timeout_seconds)


__all__ = [
    # Interface
    "Snapshot",
    "StoreClient",
    # Implementations
    "FirebaseStore",
    "InMemoryStore",
    "TimeoutStore",
    "create_store",
]
