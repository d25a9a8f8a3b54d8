"""
Maintenance Models

Backups and the reports returned by the migration, repair and
retention jobs.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class BackupData(BaseModel):
    """Snapshot payload. Absent partitions are omitted, never empty."""

    profile: Optional[dict[str, Any]] = None
    tasks: Optional[dict[str, Any]] = None
    shopping_list_items: Optional[dict[str, Any]] = None
    inventory_items: Optional[dict[str, Any]] = None

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Backup(BaseModel):
    """
    A stored snapshot of one user (backups/users/<uid>/<timestamp>).

    timestamp is milliseconds since the epoch and doubles as the store
    key, so key order is chronological order.
    """

    userId: str
    timestamp: int = Field(..., ge=0)
    created_at: Optional[str] = None
    data: BackupData = Field(default_factory=BackupData)

    def to_store(self) -> dict[str, Any]:
        record = {
            "userId": self.userId,
            "timestamp": self.timestamp,
            "data": self.data.to_store(),
        }
        if self.created_at:
            record["created_at"] = self.created_at
        return record


class RestoreOutcome(BaseModel):
    """Which parts of a backup were written back."""

    timestamp: int
    restored: list[str] = Field(default_factory=list)


class RepairReport(BaseModel):
    """Outcome of a repair pass."""

    repairs_run: int = 0
    repaired_profiles: list[str] = Field(default_factory=list)
    seeded_metadata: list[str] = Field(default_factory=list)
    failed_profiles: dict[str, str] = Field(default_factory=dict)
    # Profiles whose link fields contradict each other (reported, not changed)
    inconsistent_profiles: dict[str, str] = Field(default_factory=dict)


class HealthReport(BaseModel):
    """Presence checks for the app-wide metadata, plus profile consistency."""

    healthy: bool
    checks: dict[str, bool] = Field(default_factory=dict)
    version: Optional[str] = None
    inconsistent_profiles: list[str] = Field(default_factory=list)


class CategoryCounts(BaseModel):
    """Records of one kind, counted in total and per category."""

    total: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)

    def count(self, record: dict[str, Any]) -> None:
        self.total += 1
        category = str(record.get("category") or "uncategorized")
        self.by_category[category] = self.by_category.get(category, 0) + 1


class UserCounts(BaseModel):
    total: int = 0
    active: int = 0
    sharing: int = 0


class TaskCounts(CategoryCounts):
    completed: int = 0


class ShoppingCounts(CategoryCounts):
    purchased: int = 0


class InventoryCounts(CategoryCounts):
    low_stock: int = 0


class AnalyticsReport(BaseModel):
    """Usage counts across every user and shared space."""

    timestamp: str
    users: UserCounts = Field(default_factory=UserCounts)
    tasks: TaskCounts = Field(default_factory=TaskCounts)
    shopping: ShoppingCounts = Field(default_factory=ShoppingCounts)
    inventory: InventoryCounts = Field(default_factory=InventoryCounts)


class PruneReport(BaseModel):
    """Outcome of backup pruning."""

    deleted: int = 0
    kept: int = 0
    per_user: dict[str, int] = Field(default_factory=dict)


class PurgeReport(BaseModel):
    """Outcome of archived-record aging."""

    cutoff: str
    deleted: int = 0
    failed: int = 0
    per_kind: dict[str, int] = Field(default_factory=dict)
    failures: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0


class RetentionReport(BaseModel):
    """Both retention jobs together."""

    backups: PruneReport
    archived: PurgeReport


class MaintenanceReport(BaseModel):
    """Everything a periodic maintenance run did."""

    migrations_run: Optional[int] = None
    links_resumed: int = 0
    repair: Optional[RepairReport] = None
    retention: Optional[RetentionReport] = None
    errors: list[str] = Field(default_factory=list)
