"""
Abstract Store Interface

DESIGN DECISION: We define an abstract interface for the hierarchical
key-value store the app runs on. This allows us to:
1. Run against Firebase Realtime Database in production
2. Use in-memory storage for testing
3. Add a uniform timeout policy transparently (TimeoutStore)
4. Keep the lifecycle services decoupled from the backend SDK

The interface is intentionally small - exactly the operations the
persistence engine needs, addressed by slash-separated paths.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

ChangeCallback = Callable[[Any], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class Snapshot:
    """Value read at a path. A missing path reads as value=None."""

    path: str
    value: Any = None

    @property
    def exists(self) -> bool:
        return self.value is not None

    def child_items(self) -> list[tuple[str, Any]]:
        """(key, value) pairs if the value is a mapping, else empty."""
        return list(as_record_map(self.value).items())


class StoreClient(ABC):
    """
    Abstract interface for store operations.

    Any backend (Firebase, in-memory, ...) must implement these methods.
    Writing None to a path deletes it.
    """

    @abstractmethod
    async def read(self, path: str) -> Snapshot:
        """
        Read the value at a path.

        Args:
            path: Slash-separated store path

        Returns:
            Snapshot of the path (exists is False if nothing is stored)

        Raises:
            StoreError: If the read fails
        """
        pass

    @abstractmethod
    async def write(self, path: str, value: Any) -> None:
        """
        Replace the value at a single path.

        Raises:
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def atomic_write(self, updates: Mapping[str, Any]) -> None:
        """
        Write several paths as one transaction.

        All listed paths commit together or not at all. A None value
        deletes that path. Paths must not overlap (no path may be an
        ancestor of another in the same call).

        Raises:
            StoreError: If the update is rejected or fails
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> None:
        """
        Delete the value at a path (same as write(path, None)).

        Raises:
            StoreError: If the delete fails
        """
        pass

    @abstractmethod
    async def create_if_absent(self, path: str, value: Any) -> bool:
        """
        Conditionally write value where nothing exists yet.

        Returns:
            True if the value was written, False if the path was taken

        Raises:
            StoreError: If the conditional write fails
        """
        pass

    @abstractmethod
    def subscribe(self, path: str, callback: ChangeCallback) -> Unsubscribe:
        """
        Call callback with the new value whenever data under path changes.

        Returns:
            A function that cancels the subscription
        """
        pass


def validate_update_paths(updates: Mapping[str, Any]) -> list[str]:
    """
    Normalize and check the keys of a multi-path update.

    Returns:
        The normalized paths, in order

    Raises:
        ValueError: Empty update, empty path, or overlapping paths
    """
    if not updates:
        raise ValueError("atomic_write needs at least one path")

    normalized = ["/".join(s for s in path.split("/") if s) for path in updates]
    if any(not path for path in normalized):
        raise ValueError("atomic_write cannot write the store root")

    ordered = sorted(normalized)
    for earlier, later in zip(ordered, ordered[1:]):
        if later == earlier or later.startswith(earlier + "/"):
            raise ValueError(f"Overlapping paths in one update: {earlier}, {later}")
    return normalized


def prune_nulls(value: Any) -> Optional[Any]:
    """
    Drop None children and empty containers, as the store does on write.

    Returns None if nothing is left.
    """
    if isinstance(value, dict):
        cleaned = {}
        for key, child in value.items():
            child = prune_nulls(child)
            if child is not None:
                cleaned[str(key)] = child
        return cleaned or None
    if isinstance(value, (list, tuple)):
        items = [prune_nulls(item) for item in value]
        return items if any(item is not None for item in items) else None
    return value


def as_record_map(value: Any) -> dict[str, Any]:
    """
    View a partition value as {record_id: record}.

    The backend may hand back integer-keyed children as a list; missing
    entries come back as None and are skipped.
    """
    if isinstance(value, dict):
        return value
    if isinstance(value, list):
        return {str(i): item for i, item in enumerate(value) if item is not None}
    return {}
