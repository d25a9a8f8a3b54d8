"""
Data Models Package

Pydantic models for the records the engine reads and writes, the
reports its jobs return, and the tagged Result every public
operation returns.
"""

from household_store.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from household_store.models.household import (
    SHARED_PARTITIONS,
    DataSource,
    LinkOutcome,
    MigrationState,
    PartitionKind,
    SharedSpace,
    SharingStatus,
    UnlinkOutcome,
    UserProfile,
)
from household_store.models.maintenance import (
    AnalyticsReport,
    Backup,
    BackupData,
    HealthReport,
    MaintenanceReport,
    PruneReport,
    PurgeReport,
    RepairReport,
    RestoreOutcome,
    RetentionReport,
)
from household_store.models.result import Result, returns_result

__all__ = [
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Household models
    "SHARED_PARTITIONS",
    "DataSource",
    "LinkOutcome",
    "MigrationState",
    "PartitionKind",
    "SharedSpace",
    "SharingStatus",
    "UnlinkOutcome",
    "UserProfile",
    # Maintenance models
    "AnalyticsReport",
    "Backup",
    "BackupData",
    "HealthReport",
    "MaintenanceReport",
    "PruneReport",
    "PurgeReport",
    "RepairReport",
    "RestoreOutcome",
    "RetentionReport",
    # Result
    "Result",
    "returns_result",
]
