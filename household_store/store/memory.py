"""
In-Memory Store Implementation

A nested-dict implementation of StoreClient with the same write
semantics as the Realtime Database:
- writing None (or an empty container) deletes the path
- parents left empty by a delete disappear
- a multi-path update is validated up front and applied all-or-nothing

Used by the test suite and for local development. Optional latency
makes concurrent operations interleave, and fail_on() injects backend
errors for specific paths.
"""

import asyncio
import copy
from typing import Any, Mapping, Optional

import structlog

from household_store.errors import StoreError
from household_store.store.interface import (
    ChangeCallback,
    Snapshot,
    StoreClient,
    Unsubscribe,
    prune_nulls,
    validate_update_paths,
)

logger = structlog.get_logger(__name__)


def _segments(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment]


class InMemoryStore(StoreClient):
    """
    Dict-backed store.

    Each public call suspends at most once (for the configured latency)
    and then runs to completion, so every call is atomic.
    """

    def __init__(
        self,
        initial: Optional[dict[str, Any]] = None,
        latency: float = 0.0,
    ):
        self._data: dict[str, Any] = prune_nulls(copy.deepcopy(initial or {})) or {}
        self._latency = latency
        self._failures: dict[str, str] = {}
        self._subscribers: list[tuple[list[str], ChangeCallback]] = []
        self.calls: list[tuple[str, str]] = []

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def fail_on(self, path_prefix: str, code: str = "UNAVAILABLE") -> None:
        """Make every operation touching path_prefix raise StoreError(code)."""
        self._failures["/".join(_segments(path_prefix))] = code

    def clear_failures(self) -> None:
        self._failures.clear()

    def dump(self) -> dict[str, Any]:
        """Deep copy of the whole tree."""
        return copy.deepcopy(self._data)

    def get(self, path: str) -> Any:
        """Synchronous read for assertions."""
        return copy.deepcopy(self._lookup(_segments(path)))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _enter(self, operation: str, paths: list[str]) -> None:
        if self._latency:
            await asyncio.sleep(self._latency)
        self.calls.append((operation, ",".join(paths)))
        for path in paths:
            normalized = "/".join(_segments(path))
            for prefix, code in self._failures.items():
                if normalized == prefix or normalized.startswith(prefix + "/"):
                    raise StoreError(f"{operation} failed at {path}", code=code)

    def _lookup(self, segments: list[str]) -> Any:
        node: Any = self._data
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    @staticmethod
    def _apply(root: dict[str, Any], segments: list[str], value: Any) -> None:
        value = prune_nulls(copy.deepcopy(value))

        if value is None:
            # Delete, then drop parents the delete left empty
            trail = []
            node = root
            for segment in segments[:-1]:
                if not isinstance(node.get(segment), dict):
                    return
                trail.append((node, segment))
                node = node[segment]
            node.pop(segments[-1], None)
            for parent, key in reversed(trail):
                if parent[key]:
                    break
                del parent[key]
            return

        node = root
        for segment in segments[:-1]:
            if not isinstance(node.get(segment), dict):
                node[segment] = {}
            node = node[segment]
        node[segments[-1]] = value

    def _notify(self, written: list[list[str]]) -> None:
        for sub_segments, callback in list(self._subscribers):
            for segments in written:
                shorter = min(len(segments), len(sub_segments))
                if segments[:shorter] == sub_segments[:shorter]:
                    callback(copy.deepcopy(self._lookup(sub_segments)))
                    break

    # ------------------------------------------------------------------
    # StoreClient
    # ------------------------------------------------------------------

    async def read(self, path: str) -> Snapshot:
        await self._enter("read", [path])
        return Snapshot(path=path, value=self.get(path))

    async def write(self, path: str, value: Any) -> None:
        await self._enter("write", [path])
        segments = _segments(path)
        if not segments:
            raise StoreError("Cannot write the store root", code="INVALID_ARGUMENT")
        self._apply(self._data, segments, value)
        self._notify([segments])

    async def atomic_write(self, updates: Mapping[str, Any]) -> None:
        try:
            paths = validate_update_paths(updates)
        except ValueError as e:
            raise StoreError(str(e), code="INVALID_ARGUMENT")
        await self._enter("atomic_write", paths)

        staged = copy.deepcopy(self._data)
        for path, value in zip(paths, updates.values()):
            self._apply(staged, _segments(path), value)
        self._data = staged

        self._notify([_segments(path) for path in paths])

    async def delete(self, path: str) -> None:
        await self._enter("delete", [path])
        segments = _segments(path)
        if not segments:
            raise StoreError("Cannot delete the store root", code="INVALID_ARGUMENT")
        self._apply(self._data, segments, None)
        self._notify([segments])

    async def create_if_absent(self, path: str, value: Any) -> bool:
        await self._enter("create_if_absent", [path])
        segments = _segments(path)
        if self._lookup(segments) is not None:
            return False
        self._apply(self._data, segments, value)
        self._notify([segments])
        return True

    def subscribe(self, path: str, callback: ChangeCallback) -> Unsubscribe:
        entry = (_segments(path), callback)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)
            else:
                logger.debug("unsubscribe_unknown", path=path)

        return unsubscribe
