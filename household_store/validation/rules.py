"""
Validation Rule Tables

One table per entity type: field name -> FieldRule. The tables are
static; adding an entity type means adding a table here.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict

from household_store.schema.defaults import CATEGORY_IDS, UNIT_IDS


class FieldRule(BaseModel):
    """Constraints for one field. Unset constraints are not checked."""
    model_config = ConfigDict(frozen=True)

    required: bool = False
    type: Optional[Literal["string", "number", "boolean"]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    enum: Optional[tuple[Any, ...]] = None
    format: Optional[Literal["email", "date", "time"]] = None


TASK_STATUSES = ("pending", "in_progress", "completed")
TASK_PRIORITIES = ("low", "medium", "high")
EVENT_TYPES = ("informational", "invitation", "solo_ok")
EVENT_STATUSES = ("pending", "acknowledged", "accepted", "declined", "disputed")


VALIDATION_RULES: dict[str, dict[str, FieldRule]] = {
    "task": {
        "title": FieldRule(required=True, min_length=1, max_length=200),
        "description": FieldRule(max_length=1000),
        "status": FieldRule(enum=TASK_STATUSES),
        "priority": FieldRule(enum=TASK_PRIORITIES),
        "category": FieldRule(required=True, min_length=1),
        "assigned_to": FieldRule(required=True, format="email"),
        "due_date": FieldRule(format="date"),
        "due_time": FieldRule(format="time"),
    },
    "shopping_item": {
        "name": FieldRule(required=True, min_length=1, max_length=100),
        "category": FieldRule(required=True, enum=tuple(CATEGORY_IDS)),
        "quantity": FieldRule(required=True, type="number", min=0.01),
        "unit": FieldRule(required=True, enum=tuple(UNIT_IDS)),
    },
    "inventory_item": {
        "name": FieldRule(required=True, min_length=1, max_length=100),
        "category": FieldRule(required=True, enum=tuple(CATEGORY_IDS)),
        "current_amount": FieldRule(required=True, type="number", min=0),
        "minimum_amount": FieldRule(required=True, type="number", min=0),
        "unit": FieldRule(required=True, enum=tuple(UNIT_IDS)),
    },
    "event": {
        "title": FieldRule(required=True, min_length=1, max_length=200),
        "description": FieldRule(max_length=1000),
        "event_date": FieldRule(required=True, format="date"),
        "event_time": FieldRule(format="time"),
        "event_type": FieldRule(enum=EVENT_TYPES),
        "status": FieldRule(enum=EVENT_STATUSES),
        "duration": FieldRule(type="number", min=0),
    },
    "user_profile": {
        "email": FieldRule(required=True, format="email"),
        "full_name": FieldRule(required=True, min_length=1, max_length=100),
        "partner_email": FieldRule(format="email"),
    },
}
