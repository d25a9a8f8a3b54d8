"""
Retention Service

Two periodic cleanup jobs:
1. prune_backups: keep the newest N backups of each user
2. purge_archived: delete archived records older than the retention
   window, in every private and shared partition

DESIGN DECISION: Age is counted in whole days, rounded down. With the
default 60-day window a record archived 60 days ago is kept and one
archived 61 days ago is deleted.

Deletes run in fixed-size batches. Within a batch every delete is
attempted even when some fail, and failures are counted rather than
raised, so one bad path never blocks cleanup of the rest.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import structlog

from household_store.audit import AuditLogger
from household_store.config import get_settings
from household_store.errors import HouseholdStoreError
from household_store.models import (
    AuditEventBuilder,
    PartitionKind,
    PruneReport,
    PurgeReport,
    RetentionReport,
    returns_result,
)
from household_store.models.household import parse_timestamp, to_iso, utc_now
from household_store.schema import paths
from household_store.store.interface import StoreClient, as_record_map

logger = structlog.get_logger(__name__)


# Used when a record has no archived_date
FALLBACK_TIMESTAMP_FIELDS = {
    PartitionKind.TASKS: "completion_date",
    PartitionKind.SHOPPING: "purchased_date",
    PartitionKind.INVENTORY: "updated_date",
    PartitionKind.EVENTS: "event_date",
}


def age_in_days(timestamp: datetime, now: datetime) -> int:
    return (now - timestamp).days


class RetentionService:
    """Backup pruning and archived-record aging."""

    def __init__(
        self,
        store: StoreClient,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._clock = clock or utc_now
        self._settings = get_settings().maintenance

    # =========================================================================
    # BACKUPS
    # =========================================================================

    @returns_result
    async def prune_backups(self, keep: Optional[int] = None) -> PruneReport:
        return await self._prune_backups(keep)

    async def _prune_backups(self, keep: Optional[int]) -> PruneReport:
        """Keep the newest `keep` backups per user, one atomic delete per user."""
        keep = self._settings.backup_keep_count if keep is None else keep
        if keep < 0:
            raise ValueError("keep must be >= 0")

        report = PruneReport()
        root = await self._store.read(paths.backups_root())

        for uid, entries in root.child_items():
            # Non-numeric keys aren't backups; leave them alone
            keys = sorted(
                (int(key) for key in as_record_map(entries) if key.isdigit()),
                reverse=True,
            )
            stale = keys[keep:]
            report.kept += len(keys) - len(stale)
            if not stale:
                continue

            await self._store.atomic_write(
                {paths.backup(uid, timestamp): None for timestamp in stale}
            )
            report.deleted += len(stale)
            report.per_user[uid] = len(stale)

        logger.info("backups_pruned", deleted=report.deleted, kept=report.kept)
        if self._audit_logger and report.deleted:
            await self._audit_logger.log(
                AuditEventBuilder.backups_pruned(
                    deleted=report.deleted, per_user=report.per_user
                )
            )
        return report

    # =========================================================================
    # ARCHIVED RECORDS
    # =========================================================================

    @returns_result
    async def purge_archived(self, now: Optional[datetime] = None) -> PurgeReport:
        return await self._purge_archived(now)

    async def _purge_archived(self, now: Optional[datetime]) -> PurgeReport:
        now = now or self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        window = self._settings.archive_retention_days
        report = PurgeReport(cutoff=to_iso(now - timedelta(days=window)))

        users, shared = await asyncio.gather(
            self._store.read(paths.users_root()),
            self._store.read(paths.shared_spaces_root()),
        )
        roots = [(paths.user_root(uid), data) for uid, data in users.child_items()]
        roots += [(paths.shared_root(sid), data) for sid, data in shared.child_items()]

        expired: list[tuple[PartitionKind, str]] = []
        for root, data in roots:
            if not isinstance(data, dict):
                continue
            for kind in FALLBACK_TIMESTAMP_FIELDS:
                for record_id, record in as_record_map(data.get(kind.value)).items():
                    if self._is_expired(kind, record, now, window):
                        expired.append(
                            (kind, paths.join(paths.partition_of(root, kind), record_id))
                        )

        batch_size = self._settings.cleanup_batch_size
        for start in range(0, len(expired), batch_size):
            batch = expired[start:start + batch_size]
            outcomes = await asyncio.gather(
                *(self._store.delete(path) for _, path in batch),
                return_exceptions=True,
            )
            for (kind, path), outcome in zip(batch, outcomes):
                if isinstance(outcome, HouseholdStoreError):
                    report.failed += 1
                    report.failures.append(f"{path}: {outcome}")
                    logger.warning("archived_delete_failed", path=path, error=str(outcome))
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    report.deleted += 1
                    report.per_kind[kind.value] = report.per_kind.get(kind.value, 0) + 1

        logger.info(
            "archived_records_purged",
            deleted=report.deleted,
            failed=report.failed,
            cutoff=report.cutoff,
        )
        if self._audit_logger and (report.deleted or report.failed):
            await self._audit_logger.log(
                AuditEventBuilder.archived_records_purged(
                    deleted=report.deleted,
                    failed=report.failed,
                    per_kind=report.per_kind,
                    cutoff=report.cutoff,
                )
            )
        return report

    @staticmethod
    def _is_expired(kind: PartitionKind, record: Any, now: datetime, window: int) -> bool:
        if not isinstance(record, dict) or not record.get("is_archived"):
            return False
        timestamp = parse_timestamp(record.get("archived_date")) or parse_timestamp(
            record.get(FALLBACK_TIMESTAMP_FIELDS[kind])
        )
        if timestamp is None:
            return False
        return age_in_days(timestamp, now) > window

    # =========================================================================
    # BOTH
    # =========================================================================

    @returns_result
    async def run(self, now: Optional[datetime] = None) -> RetentionReport:
        backups = await self._prune_backups(None)
        archived = await self._purge_archived(now)
        return RetentionReport(backups=backups, archived=archived)
