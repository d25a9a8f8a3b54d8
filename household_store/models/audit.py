"""
Audit Models for the Household Store

Every lifecycle operation (link, unlink, migration, backup, restore,
repair, retention) is logged as an AuditEvent.
This provides:
1. Traceability of every cross-partition data movement
2. Debugging information when a multi-step operation is interrupted
3. A record of what maintenance deleted and why

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every lifecycle operation has its own event type.
    """
    # Profiles and records
    PROFILE_CREATED = "profile_created"
    RECORD_SAVED = "record_saved"
    RECORD_ARCHIVED = "record_archived"

    # Sharing
    SHARED_SPACE_LINKED = "shared_space_linked"
    SHARED_SPACE_RESUMED = "shared_space_resumed"
    SHARED_SPACE_ROLLED_BACK = "shared_space_rolled_back"
    SHARED_SPACE_UNLINKED = "shared_space_unlinked"

    # Schema
    MIGRATION_APPLIED = "migration_applied"
    MIGRATION_FAILED = "migration_failed"

    # Backups
    BACKUP_CREATED = "backup_created"
    BACKUP_RESTORED = "backup_restored"

    # Maintenance
    REPAIR_COMPLETED = "repair_completed"
    BACKUPS_PRUNED = "backups_pruned"
    ARCHIVED_RECORDS_PURGED = "archived_records_purged"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'profile', 'shared_space', 'backup')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Store key of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_store_record(self) -> dict:
        """
        Convert to a record for the store.

        None values are dropped because writing None deletes a path.
        """
        return {
            key: value
            for key, value in self.to_log_dict().items()
            if value is not None and value != {}
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.shared_space_linked(space_id, uid, partner, 3)
        event = AuditEventBuilder.backup_created(uid, timestamp)
    """

    @staticmethod
    def profile_created(uid: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_CREATED,
            entity_type="profile",
            entity_id=uid,
            description=f"Profile created for {email}",
            details={"email": email},
        )

    @staticmethod
    def record_saved(uid: str, kind: str, record_id: str, path: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_SAVED,
            severity=AuditSeverity.DEBUG,
            entity_type=kind,
            entity_id=record_id,
            description=f"Record saved to {path}",
            details={"uid": uid, "path": path},
        )

    @staticmethod
    def record_archived(uid: str, kind: str, record_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_ARCHIVED,
            entity_type=kind,
            entity_id=record_id,
            description=f"Record archived by {uid}",
            details={"uid": uid},
        )

    @staticmethod
    def shared_space_linked(
        space_id: str,
        uid: str,
        partner_uid: str,
        migrated_items: int,
        resumed: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.SHARED_SPACE_RESUMED
                if resumed
                else AuditEventType.SHARED_SPACE_LINKED
            ),
            entity_type="shared_space",
            entity_id=space_id,
            description=f"{uid} linked with {partner_uid}",
            details={
                "uid": uid,
                "partner_uid": partner_uid,
                "migrated_items": migrated_items,
            },
        )

    @staticmethod
    def shared_space_rolled_back(space_id: str, state: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARED_SPACE_ROLLED_BACK,
            severity=AuditSeverity.WARNING,
            entity_type="shared_space",
            entity_id=space_id,
            description=f"Incomplete link rolled back from state {state}",
            details={"migration_state": state},
        )

    @staticmethod
    def shared_space_unlinked(
        space_id: str,
        uid: str,
        partner_uid: Optional[str],
        restored_items: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARED_SPACE_UNLINKED,
            entity_type="shared_space",
            entity_id=space_id,
            description=f"{uid} unlinked from {partner_uid}",
            details={
                "uid": uid,
                "partner_uid": partner_uid,
                "restored_items": restored_items,
            },
        )

    @staticmethod
    def migration_applied(version: str, description: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_APPLIED,
            entity_type="schema",
            entity_id=version,
            description=f"Migration {version}: {description}",
        )

    @staticmethod
    def migration_failed(version: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="schema",
            entity_id=version,
            description=f"Migration {version} failed",
            error_message=error_message,
        )

    @staticmethod
    def backup_created(uid: str, timestamp: int, sections: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_CREATED,
            entity_type="backup",
            entity_id=str(timestamp),
            description=f"Backup created for {uid}",
            details={"uid": uid, "sections": sections},
        )

    @staticmethod
    def backup_restored(uid: str, timestamp: int, sections: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            entity_id=str(timestamp),
            description=f"Backup restored for {uid}",
            details={"uid": uid, "sections": sections},
        )

    @staticmethod
    def repair_completed(repairs_run: int, failed: dict[str, str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPAIR_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            description=f"Repair completed with {repairs_run} repairs",
            details={"repairs_run": repairs_run, "failed_profiles": failed},
        )

    @staticmethod
    def backups_pruned(deleted: int, per_user: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUPS_PRUNED,
            description=f"Pruned {deleted} old backups",
            details={"per_user": per_user},
        )

    @staticmethod
    def archived_records_purged(
        deleted: int,
        failed: int,
        per_kind: dict[str, int],
        cutoff: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ARCHIVED_RECORDS_PURGED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            description=f"Purged {deleted} archived records ({failed} failures)",
            details={"per_kind": per_kind, "cutoff": cutoff},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_code=error_code,
            error_message=error_message,
            details=details or {},
        )
