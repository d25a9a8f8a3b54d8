"""
Repair Service

Back-fills fields that older app versions didn't write and re-seeds
app metadata that has gone missing.

Per profile: created_at, updated_at and language_preference are added
when absent. Present values are never overwritten. A profile that can't
be repaired is recorded in the report and the pass moves on.

Profiles are also checked against the UserProfile model. A half-written
link (sharing_with without shared_space_id, or the other way round) is
reported but left alone.

Also hosts the read-only analytics export.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from household_store.audit import AuditLogger
from household_store.config import get_settings
from household_store.errors import HouseholdStoreError, ValidationError
from household_store.models import (
    AnalyticsReport,
    AuditEventBuilder,
    HealthReport,
    PartitionKind,
    RepairReport,
    UserProfile,
    returns_result,
)
from household_store.models.household import parse_timestamp, to_iso, utc_now
from household_store.schema import DEFAULT_CATEGORIES, DEFAULT_UNITS, paths
from household_store.store.interface import StoreClient, as_record_map

logger = structlog.get_logger(__name__)


class RepairService:
    """Repair pass, health check and analytics over the whole store."""

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
    async def repair(self) -> RepairReport:
        """
        Repair every profile, then seed missing categories/units.

        repairs_run counts each repaired profile once and each seeded
        metadata table once.
        """
        report = RepairReport()
        users = await self._store.read(paths.users_root())

        for uid, user_data in users.child_items():
            try:
                if await self._repair_profile(uid, user_data):
                    report.repaired_profiles.append(uid)
            except HouseholdStoreError as e:
                logger.warning("profile_repair_failed", uid=uid, error=str(e))
                report.failed_profiles[uid] = str(e)
                continue

            problem = self._profile_problem(user_data)
            if problem:
                logger.warning("profile_inconsistent", uid=uid, problem=problem)
                report.inconsistent_profiles[uid] = problem

        for path, defaults in (
            (paths.metadata_categories(), DEFAULT_CATEGORIES),
            (paths.metadata_units(), DEFAULT_UNITS),
        ):
            snapshot = await self._store.read(path)
            if not snapshot.child_items():
                await self._store.write(path, defaults)
                report.seeded_metadata.append(path)

        report.repairs_run = len(report.repaired_profiles) + len(report.seeded_metadata)

        logger.info(
            "repair_completed",
            repairs_run=report.repairs_run,
            failed=len(report.failed_profiles),
            inconsistent=len(report.inconsistent_profiles),
        )
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.repair_completed(
                    repairs_run=report.repairs_run, failed=report.failed_profiles
                )
            )
        return report

    async def _repair_profile(self, uid: str, user_data: Any) -> bool:
        """Add the missing fields of one profile. True if anything was written."""
        if not isinstance(user_data, dict):
            raise ValidationError("profile", [f"User record {uid} is not a mapping"])
        profile = user_data.get(paths.PROFILE_KEY)
        if profile is None:
            return False
        if not isinstance(profile, dict):
            raise ValidationError("profile", [f"Profile of {uid} is not a mapping"])

        now = to_iso(self._clock())
        wanted = {
            "created_at": now,
            "updated_at": now,
            "language_preference": get_settings().maintenance.default_language,
        }
        profile_path = paths.user_profile(uid)
        updates = {
            paths.join(profile_path, field): value
            for field, value in wanted.items()
            if profile.get(field) in (None, "")
        }
        if not updates:
            return False

        await self._store.atomic_write(updates)
        logger.debug("profile_repaired", uid=uid, fields=list(updates))
        return True

    @staticmethod
    def _profile_problem(user_data: Any) -> Optional[str]:
        """Why a stored profile doesn't fit UserProfile, or None if it does."""
        profile = user_data.get(paths.PROFILE_KEY) if isinstance(user_data, dict) else None
        if not isinstance(profile, dict):
            return None
        try:
            UserProfile.model_validate(profile)
        except PydanticValidationError as e:
            return "; ".join(err["msg"] for err in e.errors())
        return None

    @returns_result
    async def check_health(self) -> HealthReport:
        """
        Report whether the version marker, categories and units exist,
        and whether every profile's link fields agree.
        """
        version, categories, units, users = await asyncio.gather(
            self._store.read(paths.schema_version()),
            self._store.read(paths.metadata_categories()),
            self._store.read(paths.metadata_units()),
            self._store.read(paths.users_root()),
        )
        inconsistent = [
            uid for uid, user_data in users.child_items()
            if self._profile_problem(user_data)
        ]
        checks = {
            "version": version.exists,
            "categories": bool(categories.child_items()),
            "units": bool(units.child_items()),
            "profiles": not inconsistent,
        }
        return HealthReport(
            healthy=all(checks.values()),
            checks=checks,
            version=version.value if version.exists else None,
            inconsistent_profiles=inconsistent,
        )

    # =========================================================================
    # ANALYTICS
    # =========================================================================

    @returns_result
    async def export_analytics(self) -> AnalyticsReport:
        """
        Count users and records across the whole store. Read-only.

        Records are counted where their owners see them: in every shared
        space, and in the private partitions of users who aren't sharing.
        A linked user's private copies are left out, so nothing is
        counted twice.

        - users.active: profile updated within active_user_days
        - tasks.completed: status == "completed"
        - shopping.purchased: is_purchased is true
        - inventory.low_stock: current_amount below minimum_amount
        """
        now = self._clock()
        active_since = now - timedelta(days=get_settings().maintenance.active_user_days)
        report = AnalyticsReport(timestamp=to_iso(now))

        users, shared = await asyncio.gather(
            self._store.read(paths.users_root()),
            self._store.read(paths.shared_spaces_root()),
        )

        roots: list[dict[str, Any]] = []
        for _, user_data in users.child_items():
            report.users.total += 1
            if not isinstance(user_data, dict):
                continue
            profile = user_data.get(paths.PROFILE_KEY)
            profile = profile if isinstance(profile, dict) else {}
            updated = parse_timestamp(profile.get("updated_at"))
            if updated is not None and updated > active_since:
                report.users.active += 1
            if profile.get("sharing_with"):
                report.users.sharing += 1
            else:
                roots.append(user_data)
        roots += [data for _, data in shared.child_items() if isinstance(data, dict)]

        for root in roots:
            self._count_records(report, root)

        logger.info(
            "analytics_exported",
            users=report.users.total,
            tasks=report.tasks.total,
            shopping=report.shopping.total,
            inventory=report.inventory.total,
        )
        return report

    @staticmethod
    def _count_records(report: AnalyticsReport, root: dict[str, Any]) -> None:
        for task in _records(root, PartitionKind.TASKS):
            report.tasks.count(task)
            if task.get("status") == "completed":
                report.tasks.completed += 1

        for item in _records(root, PartitionKind.SHOPPING):
            report.shopping.count(item)
            if item.get("is_purchased") is True:
                report.shopping.purchased += 1

        for item in _records(root, PartitionKind.INVENTORY):
            report.inventory.count(item)
            current, minimum = item.get("current_amount"), item.get("minimum_amount")
            if _is_amount(current) and _is_amount(minimum) and current < minimum:
                report.inventory.low_stock += 1


def _records(root: dict[str, Any], kind: PartitionKind) -> list[dict[str, Any]]:
    partition = as_record_map(root.get(kind.value))
    return [record for record in partition.values() if isinstance(record, dict)]


def _is_amount(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
