"""
Firebase Realtime Database Store Implementation

DESIGN DECISION: The Realtime Database is the production backend because:
1. The mobile app already reads and writes it directly
2. Multi-path updates give us the one atomicity primitive we rely on
3. Transactions give us a conditional write (create-if-absent)

TRADEOFFS:
- No secondary indexes (partner lookup by email scans all profiles)
- No cross-call transactions (multi-step operations use a saga marker)

The firebase_admin SDK is synchronous. Calls run in a worker thread so
the event loop stays free and TimeoutStore can bound them.
"""

import asyncio
from typing import Any, Callable, Mapping, Optional

import firebase_admin
import structlog
from firebase_admin import credentials, db
from firebase_admin.exceptions import FirebaseError
from tenacity import retry, stop_after_attempt, wait_exponential

from household_store.config import get_settings
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


class FirebaseStore(StoreClient):
    """
    StoreClient over firebase_admin.db.

    Handles authentication and maps SDK errors to StoreError.
    """

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self._app = app
        self._settings = get_settings().firebase

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> firebase_admin.App:
        """
        Initialize (or reuse) the firebase_admin app.

        Uses service account credentials for authentication.
        """
        if self._app is None:
            try:
                self._app = firebase_admin.get_app(self._settings.app_name)
            except ValueError:
                try:
                    cred = credentials.Certificate(self._settings.credentials_path)
                except (OSError, ValueError) as e:
                    raise StoreError(
                        f"Firebase credentials not usable: {e}",
                        code="PERMISSION_DENIED",
                    )
                self._app = firebase_admin.initialize_app(
                    cred,
                    {"databaseURL": self._settings.database_url},
                    name=self._settings.app_name,
                )
                logger.info("firebase_connected", app=self._settings.app_name)
        return self._app

    def _ref(self, path: str) -> db.Reference:
        return db.reference("/" + path.strip("/"), app=self.connect())

    async def _call(self, operation: str, path: str, func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except FirebaseError as e:
            raise StoreError(f"{operation} failed at {path}: {e}", code=e.code)
        except ValueError as e:
            raise StoreError(
                f"{operation} rejected at {path}: {e}",
                code="INVALID_ARGUMENT",
            )

    async def read(self, path: str) -> Snapshot:
        value = await self._call("read", path, lambda: self._ref(path).get())
        return Snapshot(path=path, value=value)

    async def write(self, path: str, value: Any) -> None:
        cleaned = prune_nulls(value)
        if cleaned is None:
            await self.delete(path)
            return
        await self._call("write", path, lambda: self._ref(path).set(cleaned))

    async def atomic_write(self, updates: Mapping[str, Any]) -> None:
        try:
            paths = validate_update_paths(updates)
        except ValueError as e:
            raise StoreError(str(e), code="INVALID_ARGUMENT")
        payload = {
            path: prune_nulls(value)
            for path, value in zip(paths, updates.values())
        }
        await self._call(
            "atomic_write",
            ",".join(paths),
            lambda: self._ref("/").update(payload),
        )

    async def delete(self, path: str) -> None:
        await self._call("delete", path, lambda: self._ref(path).delete())

    async def create_if_absent(self, path: str, value: Any) -> bool:
        cleaned = prune_nulls(value)
        outcome = {"written": False}

        def claim(current: Any) -> Any:
            # May be retried by the SDK with fresher data
            outcome["written"] = current is None
            return cleaned if current is None else current

        await self._call(
            "create_if_absent",
            path,
            lambda: self._ref(path).transaction(claim),
        )
        return outcome["written"]

    def subscribe(self, path: str, callback: ChangeCallback) -> Unsubscribe:
        registration = self._ref(path).listen(lambda event: callback(event.data))
        return registration.close
