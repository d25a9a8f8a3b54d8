"""
Schema Migration Runner

Applies versioned, idempotent migrations in order and records the
schema version after each one (app_metadata/database_version).

DESIGN DECISION: Versions are compared segment by segment as numbers.
"1.10.0" sorts after "1.2.0", and "1.2" equals "1.2.0".

A failing migration stops the run. Migrations applied before it stay
applied and the version marker points at the last one that succeeded,
so the next run starts with the failed migration again.
"""

import asyncio
import functools
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Iterable, Optional

import structlog

from household_store.audit import AuditLogger
from household_store.errors import HouseholdStoreError
from household_store.models import AuditEventBuilder, PartitionKind, returns_result
from household_store.models.household import to_iso, utc_now
from household_store.schema import (
    DEFAULT_CATEGORIES,
    DEFAULT_INVENTORY_LOCATION,
    DEFAULT_UNITS,
    paths,
)
from household_store.store.interface import StoreClient, as_record_map

logger = structlog.get_logger(__name__)

INITIAL_VERSION = "0.0.0"
VERSION_PATTERN = re.compile(r"^\d+(\.\d+)*$")


def compare_versions(a: str, b: str) -> int:
    """
    Compare dotted versions numerically. Missing segments count as 0.

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b
    """
    left = [int(part) for part in a.split(".")]
    right = [int(part) for part in b.split(".")]
    width = max(len(left), len(right))
    left += [0] * (width - len(left))
    right += [0] * (width - len(right))
    return (left > right) - (left < right)


@dataclass(frozen=True)
class Migration:
    """
    One schema step. migrate must be safe to run twice.

    migrate is called with the store and the runner's clock.
    """

    version: str
    description: str
    migrate: Callable[[StoreClient, Callable[[], datetime]], Awaitable[None]]


# =============================================================================
# DEFAULT MIGRATIONS
# =============================================================================

async def seed_metadata(store: StoreClient, clock: Callable[[], datetime] = utc_now) -> None:
    await store.atomic_write({
        paths.metadata_categories(): DEFAULT_CATEGORIES,
        paths.metadata_units(): DEFAULT_UNITS,
        paths.last_migration(): to_iso(clock()),
    })


async def add_inventory_location(
    store: StoreClient, clock: Callable[[], datetime] = utc_now
) -> None:
    """Give every inventory item (private and shared) a location."""
    users, shared = await asyncio.gather(
        store.read(paths.users_root()),
        store.read(paths.shared_spaces_root()),
    )

    roots = [(paths.user_root(uid), data) for uid, data in users.child_items()]
    roots += [(paths.shared_root(sid), data) for sid, data in shared.child_items()]

    updates = {}
    for root, data in roots:
        if not isinstance(data, dict):
            continue
        items = as_record_map(data.get(PartitionKind.INVENTORY.value))
        for item_id, item in items.items():
            if isinstance(item, dict) and not item.get("location"):
                location_path = paths.join(
                    paths.partition_of(root, PartitionKind.INVENTORY), item_id, "location"
                )
                updates[location_path] = DEFAULT_INVENTORY_LOCATION

    if updates:
        await store.atomic_write(updates)
    logger.info("inventory_location_backfilled", items=len(updates))


DEFAULT_MIGRATIONS = (
    Migration(
        version="1.0.0",
        description="Seed categories and units",
        migrate=seed_metadata,
    ),
    Migration(
        version="1.1.0",
        description="Add location to inventory items",
        migrate=add_inventory_location,
    ),
)


# =============================================================================
# RUNNER
# =============================================================================

class MigrationRunner:
    """Brings the stored schema up to the newest registered version."""

    def __init__(
        self,
        store: StoreClient,
        migrations: Optional[Iterable[Migration]] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._clock = clock or utc_now
        registry = list(DEFAULT_MIGRATIONS if migrations is None else migrations)

        seen = set()
        for migration in registry:
            if not VERSION_PATTERN.match(migration.version):
                raise ValueError(f"Invalid migration version: {migration.version}")
            key = tuple(int(part) for part in migration.version.split("."))
            while key and key[-1] == 0:
                key = key[:-1]
            if key in seen:
                raise ValueError(f"Duplicate migration version: {migration.version}")
            seen.add(key)

        self._migrations = sorted(
            registry,
            key=functools.cmp_to_key(lambda a, b: compare_versions(a.version, b.version)),
        )

    @property
    def migrations(self) -> list[Migration]:
        return list(self._migrations)

    @returns_result
    async def current_version(self) -> str:
        return await self._read_version()

    @returns_result
    async def pending(self) -> list[str]:
        """Versions newer than the stored one, in the order run() applies them."""
        current = await self._read_version()
        return [
            m.version for m in self._migrations
            if compare_versions(m.version, current) > 0
        ]

    @returns_result
    async def run(self) -> int:
        """
        Apply every migration newer than the stored version.

        Returns:
            Number of migrations applied (0 when already current)
        """
        current = await self._read_version()
        applied = 0

        for migration in self._migrations:
            if compare_versions(migration.version, current) <= 0:
                continue

            logger.info(
                "migration_starting",
                version=migration.version,
                description=migration.description,
            )
            try:
                await migration.migrate(self._store, self._clock)
                await self._store.write(paths.schema_version(), migration.version)
            except HouseholdStoreError as e:
                logger.error("migration_failed", version=migration.version, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log(
                        AuditEventBuilder.migration_failed(
                            version=migration.version, error_message=str(e)
                        )
                    )
                raise

            current = migration.version
            applied += 1
            if self._audit_logger:
                await self._audit_logger.log(
                    AuditEventBuilder.migration_applied(
                        version=migration.version, description=migration.description
                    )
                )

        logger.info("migrations_complete", applied=applied, version=current)
        return applied

    async def _read_version(self) -> str:
        snapshot = await self._store.read(paths.schema_version())
        value = snapshot.value
        if isinstance(value, str) and VERSION_PATTERN.match(value):
            return value
        return INITIAL_VERSION
