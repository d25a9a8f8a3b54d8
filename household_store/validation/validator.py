"""
Record Validation and Sanitization

DESIGN DECISION: Validation and sanitization are pure functions with no
store access. Every write path that accepts caller data runs sanitize()
and then ensure_valid() on the cleaned record BEFORE its first store
call, so a rejected record can never produce a partial write and the
rules always hold for what is actually stored.

Validation collects every violation instead of stopping at the first one,
so the caller can show the user the full list at once.

IMPORTANT: sanitize() is a conservative guard (trim, drop angle brackets,
zero non-finite numbers), not an HTML sanitizer.
"""

import copy
import math
import re
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from household_store.errors import UnknownTypeError, ValidationError
from household_store.models.household import to_iso, utc_now
from household_store.validation.rules import VALIDATION_RULES, FieldRule

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")

FORMATS = {
    "email": (EMAIL_PATTERN, "must be a valid email address"),
    "date": (DATE_PATTERN, "must be in YYYY-MM-DD format"),
    "time": (TIME_PATTERN, "must be in HH:MM format"),
}


class _Undefined:
    """Marker for 'field deliberately left out'. Dropped by sanitize()."""

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()


class ValidationResult(BaseModel):
    """Outcome of validate(). valid is True only when errors is empty."""

    entity_type: str
    valid: bool
    errors: list[str] = Field(default_factory=list)
    unknown_type: bool = False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _matches_type(value: Any, expected: str) -> bool:
    if expected == "number":
        return _is_number(value)
    if expected == "string":
        return isinstance(value, str)
    if expected == "boolean":
        return isinstance(value, bool)
    return True


def _check_field(field: str, rule: FieldRule, value: Any) -> list[str]:
    """Every violation of one rule by one value."""
    errors = []

    if rule.required and (value is None or value is UNDEFINED or value == ""):
        return [f"Field '{field}' is required"]

    # Optional and not provided
    if value is None or value is UNDEFINED:
        return errors

    if rule.type and not _matches_type(value, rule.type):
        return [f"Field '{field}' must be of type {rule.type}"]

    if isinstance(value, str):
        if rule.min_length is not None and len(value) < rule.min_length:
            errors.append(
                f"Field '{field}' must be at least {rule.min_length} characters long"
            )
        if rule.max_length is not None and len(value) > rule.max_length:
            errors.append(
                f"Field '{field}' must be no more than {rule.max_length} characters long"
            )

    if _is_number(value):
        if rule.min is not None and value < rule.min:
            errors.append(f"Field '{field}' must be at least {rule.min:g}")
        if rule.max is not None and value > rule.max:
            errors.append(f"Field '{field}' must be no more than {rule.max:g}")

    if rule.enum is not None and value not in rule.enum:
        errors.append(
            f"Field '{field}' must be one of: {', '.join(map(str, rule.enum))}"
        )

    if rule.format:
        pattern, message = FORMATS[rule.format]
        if not isinstance(value, str) or not pattern.match(value):
            errors.append(f"Field '{field}' {message}")

    return errors


def validate(entity_type: str, data: dict[str, Any]) -> ValidationResult:
    """
    Validate a record against the rule table for its entity type.

    Args:
        entity_type: Key into VALIDATION_RULES (e.g. 'task', 'shopping_item')
        data: The record to check

    Returns:
        ValidationResult with every violation found. An unknown entity
        type yields valid=False and unknown_type=True.
    """
    rules = VALIDATION_RULES.get(entity_type)
    if rules is None:
        return ValidationResult(
            entity_type=entity_type,
            valid=False,
            errors=[f"No validation rules found for type: {entity_type}"],
            unknown_type=True,
        )

    errors = []
    for field, rule in rules.items():
        errors.extend(_check_field(field, rule, data.get(field)))

    return ValidationResult(
        entity_type=entity_type,
        valid=not errors,
        errors=errors,
    )


def ensure_valid(entity_type: str, data: dict[str, Any]) -> None:
    """
    Raise unless the record is valid.

    Raises:
        UnknownTypeError: No rules for entity_type
        ValidationError: One or more violations (all of them attached)
    """
    result = validate(entity_type, data)
    if result.unknown_type:
        raise UnknownTypeError(result.errors[0])
    if not result.valid:
        raise ValidationError(entity_type, result.errors)


def _sanitize_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().replace("<", "").replace(">", "")
    if isinstance(value, bool):
        return bool(value)
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(item) for item in value if item is not UNDEFINED]
    if isinstance(value, dict):
        return sanitize(value)
    return copy.deepcopy(value)


def sanitize(data: dict[str, Any]) -> dict[str, Any]:
    """
    Return a cleaned deep copy of a record.

    - UNDEFINED values are dropped, None is kept
    - strings are trimmed and stripped of '<' and '>'
    - non-finite numbers become 0
    - lists and dicts are cleaned recursively
    """
    return {
        key: _sanitize_value(value)
        for key, value in data.items()
        if value is not UNDEFINED
    }


def add_timestamps(
    data: dict[str, Any],
    is_update: bool = False,
    clock: Optional[Callable[[], datetime]] = None,
) -> dict[str, Any]:
    """
    Return a copy of data with created_date/updated_date set to now.

    On update only updated_date changes.
    """
    now = to_iso((clock or utc_now)())
    if is_update:
        return {**data, "updated_date": now}
    return {**data, "created_date": now, "updated_date": now}
