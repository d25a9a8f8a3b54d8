"""
Tests for the path schema and the validation layer.
"""

import math
from datetime import datetime, timezone

import pytest

from household_store.errors import UnknownTypeError, ValidationError
from household_store.models import PartitionKind
from household_store.schema import paths
from household_store.validation import (
    UNDEFINED,
    add_timestamps,
    ensure_valid,
    sanitize,
    validate,
)


class TestPaths:
    """Tests for canonical store paths."""

    @pytest.mark.parametrize(
        "a,b",
        [("u1", "u2"), ("zed", "abc"), ("same", "same"), ("B", "a")],
    )
    def test_shared_space_id_is_symmetric(self, a, b):
        """Test that argument order doesn't change the space id."""
        assert paths.shared_space_id(a, b) == paths.shared_space_id(b, a)

    def test_shared_space_id_format(self):
        """Test lexical min + '_' + max."""
        assert paths.shared_space_id("u2", "u1") == "u1_u2"

    def test_partition_paths(self):
        """Test private and shared partition paths."""
        assert paths.user_partition("u1", PartitionKind.TASKS) == "users/u1/tasks"
        assert (
            paths.shared_partition("u1_u2", PartitionKind.SHOPPING)
            == "shared/u1_u2/shopping_list_items"
        )
        assert paths.user_profile("u1") == "users/u1/profile"
        assert paths.shared_sessions("u1_u2") == "shared/u1_u2/shopping_sessions"

    def test_metadata_and_backup_paths(self):
        """Test app metadata and backup locations."""
        assert paths.schema_version() == "app_metadata/database_version"
        assert paths.metadata_categories() == "app_metadata/categories"
        assert paths.backup("u1", 1700000000000) == "backups/users/u1/1700000000000"

    def test_join_ignores_stray_slashes(self):
        """Test that join normalizes segments."""
        assert paths.join("/users/", "u1", "", "profile/") == "users/u1/profile"


class TestValidate:
    """Tests for rule-table validation."""

    def test_shopping_item_empty_name(self):
        """Test that an empty name is reported by field name."""
        result = validate(
            "shopping_item",
            {"name": "", "category": "dairy", "quantity": 1, "unit": "kg"},
        )
        assert result.valid is False
        assert any("name" in error for error in result.errors)

    def test_valid_shopping_item(self):
        """Test a complete shopping item."""
        result = validate(
            "shopping_item",
            {"name": "Milk", "category": "dairy", "quantity": 2, "unit": "liters"},
        )
        assert result.valid is True
        assert result.errors == []

    def test_collects_every_error(self):
        """Test that validation doesn't stop at the first violation."""
        result = validate(
            "inventory_item",
            {"name": "", "category": "nope", "current_amount": -1},
        )
        assert result.valid is False
        joined = " ".join(result.errors)
        for field in ("name", "category", "current_amount", "minimum_amount", "unit"):
            assert f"'{field}'" in joined

    def test_type_check(self):
        """Test that a string quantity is a type error."""
        result = validate(
            "shopping_item",
            {"name": "Milk", "category": "dairy", "quantity": "2", "unit": "kg"},
        )
        assert "Field 'quantity' must be of type number" in result.errors

    def test_formats(self):
        """Test email, date and time formats."""
        task = {
            "title": "Clean",
            "category": "household",
            "assigned_to": "not-an-email",
            "due_date": "01/06/2024",
            "due_time": "9am",
        }
        errors = " ".join(validate("task", task).errors)
        assert "assigned_to" in errors
        assert "due_date" in errors
        assert "due_time" in errors

    def test_event_rules(self):
        """Test the event rule set."""
        assert validate("event", {"title": "Dinner", "event_date": "2024-06-01"}).valid
        result = validate(
            "event",
            {"title": "Dinner", "event_date": "2024-06-01", "event_type": "party"},
        )
        assert result.valid is False

    def test_unknown_type(self):
        """Test that unknown entity types are flagged, not crashed on."""
        result = validate("spaceship", {})
        assert result.valid is False
        assert result.unknown_type is True

    def test_ensure_valid_raises_with_all_messages(self):
        """Test ensure_valid for invalid records and unknown types."""
        with pytest.raises(ValidationError) as excinfo:
            ensure_valid("shopping_item", {"name": ""})
        assert len(excinfo.value.messages) >= 4

        with pytest.raises(UnknownTypeError):
            ensure_valid("spaceship", {})


class TestSanitize:
    """Tests for sanitize()."""

    def test_trims_strips_and_zeroes(self):
        """Test the documented milk example."""
        assert sanitize({"name": " Milk <b> ", "qty": math.inf}) == {
            "name": "Milk b",
            "qty": 0,
        }

    def test_drops_undefined_keeps_none(self):
        """Test that UNDEFINED disappears and None stays."""
        assert sanitize({"a": UNDEFINED, "b": None}) == {"b": None}

    def test_recurses(self):
        """Test nested lists and dicts."""
        cleaned = sanitize(
            {"subtasks": [{"text": " <i>x</i> "}], "meta": {"n": float("nan")}}
        )
        assert cleaned == {"subtasks": [{"text": "ix/i"}], "meta": {"n": 0}}

    def test_returns_a_copy(self):
        """Test that the input is not modified."""
        original = {"tags": [" a "]}
        sanitize(original)
        assert original == {"tags": [" a "]}


class TestAddTimestamps:
    """Tests for add_timestamps()."""

    def test_create_sets_both(self):
        """Test that a new record gets created_date and updated_date."""
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        stamped = add_timestamps({"title": "x"}, clock=lambda: now)
        assert stamped["created_date"] == "2024-06-01T00:00:00.000Z"
        assert stamped["updated_date"] == stamped["created_date"]

    def test_update_sets_updated_only(self):
        """Test that an update leaves created_date alone."""
        now = datetime(2024, 6, 2, tzinfo=timezone.utc)
        stamped = add_timestamps(
            {"created_date": "old"}, is_update=True, clock=lambda: now
        )
        assert stamped["created_date"] == "old"
        assert stamped["updated_date"] == "2024-06-02T00:00:00.000Z"
