"""Validation package: rule tables, validate, sanitize, timestamps."""

from household_store.validation.rules import VALIDATION_RULES, FieldRule
from household_store.validation.validator import (
    UNDEFINED,
    ValidationResult,
    add_timestamps,
    ensure_valid,
    sanitize,
    validate,
)

__all__ = [
    "VALIDATION_RULES",
    "FieldRule",
    "UNDEFINED",
    "ValidationResult",
    "add_timestamps",
    "ensure_valid",
    "sanitize",
    "validate",
]
