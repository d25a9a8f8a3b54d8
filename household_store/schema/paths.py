"""
Path Schema

Pure functions mapping logical entities to canonical store paths.

DESIGN DECISION: No other module builds path strings by hand. A change
to the storage layout is a one-place edit here.

Layout:
    users/<uid>/profile
    users/<uid>/<partition>/<recordId>
    shared/<spaceId>                    (members, timestamps, saga marker)
    shared/<spaceId>/<partition>/<recordId>
    shared/<spaceId>/shopping_sessions
    app_metadata/{categories,units,database_version,last_migration}
    backups/users/<uid>/<millis>
    audit_log/<eventId>
"""

from household_store.models.household import PartitionKind

USERS_ROOT = "users"
SHARED_ROOT = "shared"
METADATA_ROOT = "app_metadata"
BACKUPS_ROOT = "backups/users"
AUDIT_ROOT = "audit_log"

PROFILE_KEY = "profile"
SESSIONS_KEY = "shopping_sessions"


def join(*segments: str) -> str:
    """Join path segments, ignoring empty ones and stray slashes."""
    return "/".join(
        str(segment).strip("/") for segment in segments if str(segment).strip("/")
    )


def split(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment]


def shared_space_id(uid_a: str, uid_b: str) -> str:
    """
    Deterministic id of the shared space for a pair of users.

    The same for either argument order: min + "_" + max (lexical).
    """
    first, second = sorted([uid_a, uid_b])
    return f"{first}_{second}"


# Users

def users_root() -> str:
    return USERS_ROOT


def user_root(uid: str) -> str:
    return join(USERS_ROOT, uid)


def user_profile(uid: str) -> str:
    return join(USERS_ROOT, uid, PROFILE_KEY)


def user_partition(uid: str, kind: PartitionKind) -> str:
    return join(USERS_ROOT, uid, PartitionKind(kind).value)


def user_sessions(uid: str) -> str:
    """Shopping sessions a user took back when leaving a shared space."""
    return join(USERS_ROOT, uid, SESSIONS_KEY)


# Shared spaces

def shared_spaces_root() -> str:
    return SHARED_ROOT


def shared_root(space_id: str) -> str:
    return join(SHARED_ROOT, space_id)


def shared_partition(space_id: str, kind: PartitionKind) -> str:
    return join(SHARED_ROOT, space_id, PartitionKind(kind).value)


def shared_sessions(space_id: str) -> str:
    return join(SHARED_ROOT, space_id, SESSIONS_KEY)


def partition_of(root: str, kind: PartitionKind) -> str:
    """Partition under an already resolved data-source root."""
    return join(root, PartitionKind(kind).value)


# App metadata

def metadata_categories() -> str:
    return join(METADATA_ROOT, "categories")


def metadata_units() -> str:
    return join(METADATA_ROOT, "units")


def schema_version() -> str:
    return join(METADATA_ROOT, "database_version")


def last_migration() -> str:
    return join(METADATA_ROOT, "last_migration")


# Backups

def backups_root() -> str:
    return BACKUPS_ROOT


def backups(uid: str) -> str:
    return join(BACKUPS_ROOT, uid)


def backup(uid: str, timestamp: int) -> str:
    return join(BACKUPS_ROOT, uid, str(timestamp))


# Audit

def audit_event(event_id: str) -> str:
    return join(AUDIT_ROOT, event_id)
