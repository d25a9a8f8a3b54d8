"""
Household Data Models

Profiles, shared spaces and the outcomes of sharing operations.

DESIGN DECISION: Records read from the store are plain dicts. We only
parse into these models where an invariant has to be checked (profiles,
shared-space roots). Unknown fields are kept (extra="allow") because the
store is shared with the app layer, which owns fields we don't know about.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """ISO-8601 with millisecond precision and a trailing Z."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp (ISO string, YYYY-MM-DD, or epoch millis).

    Returns None for anything unparseable. Naive values are treated as UTC.
    """
    if value is None or value == "":
        return None
    try:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (TypeError, ValueError, OverflowError, OSError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# ENUMS
# =============================================================================

class PartitionKind(str, Enum):
    """Record partitions that exist both privately and in a shared space."""
    TASKS = "tasks"
    SHOPPING = "shopping_list_items"
    INVENTORY = "inventory_items"
    EVENTS = "events"


# Partitions copied on link/unlink and captured by backups
SHARED_PARTITIONS = (
    PartitionKind.TASKS,
    PartitionKind.SHOPPING,
    PartitionKind.INVENTORY,
)


class MigrationState(str, Enum):
    """
    Saga marker persisted on the shared-space root during linking.

    Each state is written in the same atomic update as the step it records.
    """
    CREATED = "created"
    PROFILES_UPDATED = "profiles_updated"
    DATA_MIGRATED = "data_migrated"


# =============================================================================
# STORED RECORDS
# =============================================================================

class UserProfile(BaseModel):
    """
    A registered user's profile (users/<uid>/profile).

    INVARIANT: sharing_with and shared_space_id are both set or both absent.
    """
    model_config = ConfigDict(extra="allow")

    uid: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None
    partner_email: Optional[str] = None
    shared_space_id: Optional[str] = None
    sharing_with: Optional[str] = None
    language_preference: Optional[str] = None
    timezone: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @model_validator(mode="after")
    def validate_link_fields(self) -> "UserProfile":
        if bool(self.sharing_with) != bool(self.shared_space_id):
            raise ValueError(
                "sharing_with and shared_space_id must be set together"
            )
        return self

    @property
    def is_sharing(self) -> bool:
        return bool(self.sharing_with)


class SharedSpace(BaseModel):
    """Root record of a shared space (shared/<id>), partitions excluded."""
    model_config = ConfigDict(extra="allow")

    id: str
    members: dict[str, bool] = Field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    migration_state: Optional[MigrationState] = None
    initiated_by: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        # Spaces created before the saga marker existed have no state
        return self.migration_state in (None, MigrationState.DATA_MIGRATED)

    def partner_of(self, uid: str) -> Optional[str]:
        others = [member for member in self.members if member != uid]
        return others[0] if others else None


# =============================================================================
# OPERATION OUTCOMES
# =============================================================================

class LinkOutcome(BaseModel):
    """Result of linking two users."""
    shared_space_id: str
    partner_uid: str
    migrated_items: int = 0
    resumed: bool = False


class UnlinkOutcome(BaseModel):
    """Result of dissolving a shared space."""
    shared_space_id: str
    partner_uid: Optional[str] = None
    restored_items: int = 0


class SharingStatus(BaseModel):
    """Whether a user currently shares, and with whom."""
    is_sharing: bool
    partner_uid: Optional[str] = None
    partner_profile: Optional[dict[str, Any]] = None
    shared_space_id: Optional[str] = None


class DataSource(BaseModel):
    """Where a user's live records are read from and written to."""
    path: str
    is_shared: bool
