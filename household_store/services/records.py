"""
Record Service

Writes task, shopping, inventory and event records to wherever the
user's live data lives: the shared space when the user is linked,
otherwise their private partitions.

DESIGN DECISION: Validation and sanitization run before any store
call. An invalid record never reaches the store, not even partially.
"""

import uuid
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from household_store.audit import AuditLogger
from household_store.errors import NotFoundError, UnknownTypeError
from household_store.models import (
    AuditEventBuilder,
    DataSource,
    PartitionKind,
    returns_result,
)
from household_store.models.household import to_iso, utc_now
from household_store.schema import DEFAULT_INVENTORY_LOCATION, paths
from household_store.services.profiles import ProfileService
from household_store.store.interface import StoreClient
from household_store.validation import add_timestamps, ensure_valid, sanitize

logger = structlog.get_logger(__name__)


# Validation rule set for each partition
ENTITY_TYPES = {
    PartitionKind.TASKS: "task",
    PartitionKind.SHOPPING: "shopping_item",
    PartitionKind.INVENTORY: "inventory_item",
    PartitionKind.EVENTS: "event",
}

# Fields filled in on create when the caller leaves them out
RECORD_DEFAULTS = {
    PartitionKind.TASKS: {
        "status": "pending",
        "priority": "medium",
        "subtasks": [],
        "is_archived": False,
    },
    PartitionKind.SHOPPING: {
        "is_purchased": False,
        "is_archived": False,
    },
    PartitionKind.INVENTORY: {
        "location": DEFAULT_INVENTORY_LOCATION,
        "is_archived": False,
    },
    PartitionKind.EVENTS: {
        "status": "pending",
        "notification_sent": False,
        "is_archived": False,
    },
}


def generate_record_id() -> str:
    return uuid.uuid4().hex


class RecordService:
    """Validated writes of user records."""

    def __init__(
        self,
        store: StoreClient,
        profiles: Optional[ProfileService] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._clock = clock or utc_now
        self._profiles = profiles or ProfileService(store, audit_logger, self._clock)
        self._audit_logger = audit_logger

    @returns_result
    async def resolve_data_source(self, uid: str) -> DataSource:
        """Shared root if the user has a shared space, else the user root."""
        return await self.data_source(uid)

    async def data_source(self, uid: str) -> DataSource:
        profile = await self._profiles.fetch_profile(uid)
        if profile is None:
            raise NotFoundError(f"Profile not found for user {uid}")

        space_id = profile.get("shared_space_id")
        if space_id:
            return DataSource(path=paths.shared_root(space_id), is_shared=True)
        return DataSource(path=paths.user_root(uid), is_shared=False)

    @returns_result
    async def save_record(
        self,
        uid: str,
        kind: PartitionKind,
        data: dict[str, Any],
        record_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Create or update a record.

        Create (no record_id, or nothing stored there yet): defaults ->
        sanitize -> validate -> timestamps -> write, under a generated id
        when none is given.
        Update: the stored record is merged with data and the merged
        record is validated as a whole.

        Returns:
            The stored record, with its id

        Raises:
            UnknownTypeError: kind has no rule set
            ValidationError: Record invalid (nothing written)
            NotFoundError: No profile for uid
        """
        entity_type = self._entity_type(kind)
        kind = PartitionKind(kind)

        source = await self.data_source(uid)

        existing = None
        if record_id is None:
            record_id = generate_record_id()
            path = paths.join(paths.partition_of(source.path, kind), record_id)
        else:
            path = paths.join(paths.partition_of(source.path, kind), record_id)
            snapshot = await self._store.read(path)
            existing = snapshot.value if isinstance(snapshot.value, dict) else None

        # Rules apply to what will be stored, so sanitize first
        if existing is None:
            record = sanitize({**RECORD_DEFAULTS[kind], **data})
            ensure_valid(entity_type, record)
            record = add_timestamps(record, clock=self._clock)
            record.setdefault("created_by", uid)
            await self._store.write(path, record)
        else:
            record = sanitize({**existing, **data})
            ensure_valid(entity_type, record)
            record = add_timestamps(record, is_update=True, clock=self._clock)
            await self._store.write(path, record)

        logger.info(
            "record_saved",
            uid=uid,
            kind=kind.value,
            record_id=record_id,
            shared=source.is_shared,
        )
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.record_saved(
                    uid=uid, kind=kind.value, record_id=record_id, path=path
                )
            )
        return {"id": record_id, **record}

    @returns_result
    async def archive_record(
        self,
        uid: str,
        kind: PartitionKind,
        record_id: str,
    ) -> dict[str, Any]:
        """Mark a record archived. Retention deletes it once it is old enough."""
        self._entity_type(kind)
        kind = PartitionKind(kind)

        source = await self.data_source(uid)
        path = paths.join(paths.partition_of(source.path, kind), record_id)
        existing = await self._store.read(path)
        if not isinstance(existing.value, dict):
            raise NotFoundError(f"No {kind.value} record {record_id} in {source.path}")

        now = to_iso(self._clock())
        changes = {"is_archived": True, "archived_date": now, "updated_date": now}
        await self._store.atomic_write(
            {paths.join(path, field): value for field, value in changes.items()}
        )

        logger.info("record_archived", uid=uid, kind=kind.value, record_id=record_id)
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.record_archived(
                    uid=uid, kind=kind.value, record_id=record_id
                )
            )
        return {"id": record_id, **existing.value, **changes}

    @staticmethod
    def _entity_type(kind: Any) -> str:
        try:
            return ENTITY_TYPES[PartitionKind(kind)]
        except ValueError:
            raise UnknownTypeError(f"Unknown record kind: {kind}")
