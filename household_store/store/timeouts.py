"""
Uniform Timeout Policy

Every store call made through TimeoutStore is bounded by the same
timeout (StoreSettings.timeout_seconds). A call that exceeds it raises
StoreError(code="TIMEOUT").

NOTE: A timed-out write may still commit on the backend. Callers treat
TIMEOUT like any other store failure: the operation is reported as
failed, and every multi-step operation is written to be safe to re-run.
"""

import asyncio
from typing import Any, Awaitable, Mapping, Optional, TypeVar

from household_store.config import get_settings
from household_store.errors import StoreError
from household_store.store.interface import (
    ChangeCallback,
    Snapshot,
    StoreClient,
    Unsubscribe,
)

T = TypeVar("T")


class TimeoutStore(StoreClient):
    """Wraps another StoreClient and bounds each call."""

    def __init__(self, inner: StoreClient, timeout_seconds: Optional[float] = None):
        self._inner = inner
        self._timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else get_settings().store.timeout_seconds
        )

    @property
    def inner(self) -> StoreClient:
        return self._inner

    async def _bounded(self, operation: str, path: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except asyncio.TimeoutError:
            raise StoreError(
                f"{operation} at {path} timed out after {self._timeout}s",
                code="TIMEOUT",
            )

    async def read(self, path: str) -> Snapshot:
        return await self._bounded("read", path, self._inner.read(path))

    async def write(self, path: str, value: Any) -> None:
        await self._bounded("write", path, self._inner.write(path, value))

    async def atomic_write(self, updates: Mapping[str, Any]) -> None:
        await self._bounded(
            "atomic_write",
            ",".join(updates),
            self._inner.atomic_write(updates),
        )

    async def delete(self, path: str) -> None:
        await self._bounded("delete", path, self._inner.delete(path))

    async def create_if_absent(self, path: str, value: Any) -> bool:
        return await self._bounded(
            "create_if_absent",
            path,
            self._inner.create_if_absent(path, value),
        )

    def subscribe(self, path: str, callback: ChangeCallback) -> Unsubscribe:
        return self._inner.subscribe(path, callback)
