"""
Main Orchestrator for Household Store

Ties the services together around one store and one audit logger, and
defines the two app-lifecycle flows:
1. First login (migrate -> create profile -> welcome task)
2. Periodic maintenance (migrate -> resume links -> repair -> retention)

DESIGN DECISION: Maintenance never stops at the first failing job.
Each job runs, and failures are collected in the MaintenanceReport,
so a broken retention pass doesn't block schema migrations and the
other way round.
"""

from datetime import datetime
from typing import Any, Callable, Iterable, Optional

import structlog

from household_store.audit import AuditLogger
from household_store.config import get_settings
from household_store.models import MaintenanceReport, PartitionKind, returns_result
from household_store.services import (
    BackupService,
    Migration,
    MigrationRunner,
    ProfileService,
    RecordService,
    RepairService,
    RetentionService,
    SharedSpaceManager,
)
from household_store.store import StoreClient, create_store

logger = structlog.get_logger(__name__)

WELCOME_TASK_ID = "welcome_task"


def welcome_task(email: str) -> dict[str, Any]:
    """The first task every new user finds in their list."""
    return {
        "title": "ברוכים הבאים ל-CoupleTasks! 👋",
        "description": "התחילו לנהל ביחד את המשימות הביתיות שלכם. זוהי המשימה הראשונה שלכם.",
        "status": "pending",
        "priority": "medium",
        "category": "personal",
        "assigned_to": email,
        "subtasks": [
            {"text": "עיינו בממשק האפליקציה", "is_completed": False},
            {"text": "הזמינו את בן/בת הזוג שלכם", "is_completed": False},
            {"text": "צרו את רשימת הקניות הראשונה שלכם", "is_completed": False},
        ],
    }


class LifecycleEngine:
    """
    All lifecycle services over one store.

    The services are exposed as attributes for direct use:
        engine.sharing.link_partner(uid, email)
        engine.backups.backup(uid)
    """

    def __init__(
        self,
        store: StoreClient,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        migrations: Optional[Iterable[Migration]] = None,
    ):
        self.store = store
        self.audit_logger = audit_logger or AuditLogger()

        self.profiles = ProfileService(store, self.audit_logger, clock)
        self.records = RecordService(store, self.profiles, self.audit_logger, clock)
        self.sharing = SharedSpaceManager(store, self.profiles, self.audit_logger, clock)
        self.migrations = MigrationRunner(store, migrations, self.audit_logger, clock)
        self.backups = BackupService(store, self.audit_logger, clock)
        self.repair = RepairService(store, self.audit_logger, clock)
        self.retention = RetentionService(store, self.audit_logger, clock)

    @returns_result
    async def initialize_first_login(
        self,
        uid: str,
        email: str,
        full_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Prepare the store for a user logging in for the first time.

        FLOW:
        1. Bring the schema up to date
        2. Create the profile
        3. Add the welcome task

        A user who already has a profile gets it back unchanged.

        Returns:
            The user's profile
        """
        (await self.migrations.run()).unwrap()

        existing = await self.profiles.fetch_profile(uid)
        if existing is not None:
            logger.info("first_login_skipped", uid=uid)
            return existing

        profile = (await self.profiles.create_profile(uid, email, full_name)).unwrap()
        (
            await self.records.save_record(
                uid,
                PartitionKind.TASKS,
                welcome_task(profile["email"]),
                record_id=WELCOME_TASK_ID,
            )
        ).unwrap()

        logger.info("first_login_initialized", uid=uid)
        return profile

    @returns_result
    async def run_maintenance(self, now: Optional[datetime] = None) -> MaintenanceReport:
        """
        Run every periodic job and report what each one did.

        The result is ok even when jobs failed; their errors are listed
        in report.errors.
        """
        report = MaintenanceReport()

        migrated = await self.migrations.run()
        if migrated.ok:
            report.migrations_run = migrated.value
        else:
            report.errors.append(f"migrations: {migrated.detail}")

        resumed = await self.sharing.resume_pending()
        if resumed.ok:
            report.links_resumed = len(resumed.value)
        else:
            report.errors.append(f"links: {resumed.detail}")

        repaired = await self.repair.repair()
        if repaired.ok:
            report.repair = repaired.value
        else:
            report.errors.append(f"repair: {repaired.detail}")

        retained = await self.retention.run(now)
        if retained.ok:
            report.retention = retained.value
        else:
            report.errors.append(f"retention: {retained.detail}")

        if report.errors:
            await self.audit_logger.log_error(
                error_type="maintenance_incomplete",
                error_message="; ".join(report.errors),
            )
        logger.info(
            "maintenance_complete",
            migrations_run=report.migrations_run,
            links_resumed=report.links_resumed,
            errors=len(report.errors),
        )
        return report


def create_engine(
    store: Optional[StoreClient] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> LifecycleEngine:
    """
    Factory function to create the engine.

    Args:
        store: Store to run against. Defaults to Firebase behind the
               uniform timeout (see create_store).
        clock: Source of "now", for tests.

    Audit events are persisted to the same store unless
    PERSIST_AUDIT_EVENTS is false.
    """
    if store is None:
        store = create_store()
    audit_store = store if get_settings().app.persist_audit_events else None
    return LifecycleEngine(store, audit_logger=AuditLogger(audit_store), clock=clock)
