"""
Error Taxonomy for the Household Store

DESIGN DECISION: Internal code raises typed exceptions; public service
operations convert them into a tagged Result (see models/result.py).
Every exception carries an ErrorKind so the conversion is mechanical.

Store failures (network, permission, quota, unavailable, timeout) are all
wrapped in StoreError. The original backend code is kept on the error
and translated to a fixed user-facing message by translate_store_error().
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Finite set of failure categories surfaced to callers."""
    VALIDATION = "validation"
    UNKNOWN_TYPE = "unknown_type"
    NOT_FOUND = "not_found"
    ALREADY_LINKED = "already_linked"
    SELF_LINK = "self_link"
    NOT_LINKED = "not_linked"
    LINK_CONFLICT = "link_conflict"
    STORE = "store"


# Backend error codes we know how to explain to a user
STORE_ERROR_MESSAGES = {
    "PERMISSION_DENIED": "You don't have permission to perform this action",
    "NETWORK_ERROR": "Network problem - please check your internet connection",
    "QUOTA_EXCEEDED": "Usage quota exceeded",
    "UNAVAILABLE": "The service is currently unavailable",
    "TIMEOUT": "The database took too long to respond",
}

DEFAULT_STORE_ERROR_MESSAGE = "An unexpected database error occurred"


def translate_store_error(code: Optional[str]) -> str:
    """Map a backend error code to a fixed user-facing message."""
    if code is None:
        return DEFAULT_STORE_ERROR_MESSAGE
    return STORE_ERROR_MESSAGES.get(code.upper(), DEFAULT_STORE_ERROR_MESSAGE)


class HouseholdStoreError(Exception):
    """Base exception for the persistence engine."""

    kind: ErrorKind = ErrorKind.STORE

    def __init__(self, message: str, messages: Optional[list[str]] = None):
        super().__init__(message)
        self.messages = messages or [message]

    @property
    def user_message(self) -> str:
        return str(self)


class ValidationError(HouseholdStoreError):
    """Record failed field-level validation. Carries every violation."""

    kind = ErrorKind.VALIDATION

    def __init__(self, entity_type: str, messages: list[str]):
        self.entity_type = entity_type
        super().__init__(
            f"Invalid {entity_type}: {'; '.join(messages)}",
            messages=list(messages),
        )


class UnknownTypeError(HouseholdStoreError):
    """No validation rules exist for the requested entity type."""

    kind = ErrorKind.UNKNOWN_TYPE


class NotFoundError(HouseholdStoreError):
    """Profile, partner or backup absent."""

    kind = ErrorKind.NOT_FOUND


class AlreadyLinkedError(HouseholdStoreError):
    """The pair (or one side of it) is already linked."""

    kind = ErrorKind.ALREADY_LINKED


class SelfLinkError(HouseholdStoreError):
    """A user tried to link with their own account."""

    kind = ErrorKind.SELF_LINK


class NotLinkedError(HouseholdStoreError):
    """Unlink requested by a user who is not sharing."""

    kind = ErrorKind.NOT_LINKED


class LinkConflictError(HouseholdStoreError):
    """The partner has a link for the same pair in flight."""

    kind = ErrorKind.LINK_CONFLICT


class StoreError(HouseholdStoreError):
    """Wraps any failure of the underlying store."""

    kind = ErrorKind.STORE

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code

    @property
    def user_message(self) -> str:
        return translate_store_error(self.code)
