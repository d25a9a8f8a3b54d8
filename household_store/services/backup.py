"""
Backup Service

Point-in-time snapshots of one user's profile and private partitions,
stored under backups/users/<uid>/<millis>.

DESIGN DECISION: The snapshot key is the creation time in milliseconds,
claimed with a conditional write. Two backups in the same millisecond
get consecutive keys instead of overwriting each other, so keys stay
unique and their numeric order is creation order.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from household_store.audit import AuditLogger
from household_store.errors import NotFoundError, StoreError
from household_store.models import (
    SHARED_PARTITIONS,
    AuditEventBuilder,
    Backup,
    BackupData,
    RestoreOutcome,
    returns_result,
)
from household_store.models.household import to_iso, utc_now
from household_store.schema import paths
from household_store.store.interface import StoreClient, as_record_map

logger = structlog.get_logger(__name__)

# Upper bound on same-millisecond key collisions before giving up
MAX_KEY_ATTEMPTS = 100


def to_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class BackupService:
    """Create, list and restore user snapshots."""

    def __init__(
        self,
        store: StoreClient,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._clock = clock or utc_now

    @returns_result
    async def backup(self, user_id: str) -> Backup:
        """
        Snapshot the user's profile, tasks, shopping and inventory.

        Sections that don't exist are left out of the snapshot.
        """
        profile_snap, *partition_snaps = await asyncio.gather(
            self._store.read(paths.user_profile(user_id)),
            *(
                self._store.read(paths.user_partition(user_id, kind))
                for kind in SHARED_PARTITIONS
            ),
        )

        sections: dict[str, Any] = {}
        if isinstance(profile_snap.value, dict):
            sections["profile"] = profile_snap.value
        for kind, snapshot in zip(SHARED_PARTITIONS, partition_snaps):
            records = as_record_map(snapshot.value)
            if records:
                sections[kind.value] = records

        now = self._clock()
        backup = Backup(
            userId=user_id,
            timestamp=to_millis(now),
            created_at=to_iso(now),
            data=BackupData(**sections),
        )

        for _ in range(MAX_KEY_ATTEMPTS):
            claimed = await self._store.create_if_absent(
                paths.backup(user_id, backup.timestamp),
                backup.to_store(),
            )
            if claimed:
                break
            backup = backup.model_copy(update={"timestamp": backup.timestamp + 1})
        else:
            raise StoreError(
                f"No free backup key for {user_id} near {backup.timestamp}",
                code="ALREADY_EXISTS",
            )

        logger.info(
            "backup_created",
            uid=user_id,
            timestamp=backup.timestamp,
            sections=list(sections),
        )
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.backup_created(
                    uid=user_id, timestamp=backup.timestamp, sections=list(sections)
                )
            )
        return backup

    @returns_result
    async def restore(self, user_id: str, timestamp: int) -> RestoreOutcome:
        """
        Write a snapshot back in one atomic update.

        The profile and every partition present in the snapshot are
        overwritten. Partitions absent from it are left as they are.

        Raises:
            NotFoundError: No backup with that timestamp
        """
        snapshot = await self._store.read(paths.backup(user_id, timestamp))
        if not isinstance(snapshot.value, dict):
            raise NotFoundError(f"Backup {timestamp} not found for user {user_id}")

        stored = {"userId": user_id, "timestamp": timestamp, **snapshot.value}
        backup = Backup.model_validate(stored)

        updates: dict[str, Any] = {}
        if backup.data.profile is not None:
            updates[paths.user_profile(user_id)] = backup.data.profile
        for kind in SHARED_PARTITIONS:
            records = getattr(backup.data, kind.value)
            if records is not None:
                updates[paths.user_partition(user_id, kind)] = records

        if updates:
            await self._store.atomic_write(updates)

        restored = [path.rsplit("/", 1)[-1] for path in updates]
        logger.warning("backup_restored", uid=user_id, timestamp=timestamp, sections=restored)
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.backup_restored(
                    uid=user_id, timestamp=timestamp, sections=restored
                )
            )
        return RestoreOutcome(timestamp=timestamp, restored=restored)

    @returns_result
    async def list_backups(self, user_id: str) -> list[int]:
        """Backup timestamps of a user, newest first."""
        snapshot = await self._store.read(paths.backups(user_id))
        return sorted(
            (int(key) for key, _ in snapshot.child_items() if key.isdigit()),
            reverse=True,
        )
