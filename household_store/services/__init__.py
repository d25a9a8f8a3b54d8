"""
Services Package

The lifecycle services. Each takes a StoreClient and, optionally, an
AuditLogger and a clock, and returns a Result from every public method.
"""

from household_store.services.backup import BackupService
from household_store.services.migrations import (
    DEFAULT_MIGRATIONS,
    Migration,
    MigrationRunner,
    compare_versions,
)
from household_store.services.profiles import ProfileService
from household_store.services.records import RecordService
from household_store.services.repair import RepairService
from household_store.services.retention import RetentionService
from household_store.services.shared_space import SharedSpaceManager

__all__ = [
    # Profiles and records
    "ProfileService",
    "RecordService",
    # Sharing
    "SharedSpaceManager",
    # Schema
    "DEFAULT_MIGRATIONS",
    "Migration",
    "MigrationRunner",
    "compare_versions",
    # Maintenance
    "BackupService",
    "RepairService",
    "RetentionService",
]
