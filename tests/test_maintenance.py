"""
Tests for the backup, repair and retention services.
"""

from datetime import timedelta

import pytest

from household_store.errors import ErrorKind
from household_store.models.household import to_iso
from household_store.schema import DEFAULT_CATEGORIES, DEFAULT_UNITS
from household_store.services import BackupService, RepairService, RetentionService
from household_store.store import InMemoryStore
from tests.conftest import NOW, make_profile, make_users


def user_with_data():
    return InMemoryStore({
        "users": {
            "u1": {
                "profile": make_profile("u1", "a@x.com"),
                "tasks": {"t1": {"title": "Buy milk", "status": "pending"}},
                "shopping_list_items": {"s1": {"name": "Eggs", "quantity": 12}},
            }
        }
    })


class TestBackupService:
    """Tests for backup(), restore() and list_backups()."""

    @pytest.mark.asyncio
    async def test_backup_restore_round_trip(self, clock):
        """Test that restore brings back exactly what was backed up."""
        store = user_with_data()
        service = BackupService(store, clock=clock)
        before = store.get("users/u1")

        backup = (await service.backup("u1")).unwrap()

        await store.write("users/u1/tasks/t1/status", "completed")
        await store.write("users/u1/shopping_list_items/s2", {"name": "Bread"})
        await store.write("users/u1/profile/full_name", "Changed")

        result = await service.restore("u1", backup.timestamp)

        assert result.ok is True
        assert set(result.value.restored) == {"profile", "tasks", "shopping_list_items"}
        assert store.get("users/u1") == before

    @pytest.mark.asyncio
    async def test_backup_shape(self, clock):
        """Test the stored snapshot record."""
        store = user_with_data()
        backup = (await BackupService(store, clock=clock).backup("u1")).unwrap()

        assert backup.timestamp == int(NOW.timestamp() * 1000)
        stored = store.get(f"backups/users/u1/{backup.timestamp}")
        assert stored["userId"] == "u1"
        assert stored["created_at"] == to_iso(NOW)
        assert set(stored["data"]) == {"profile", "tasks", "shopping_list_items"}

    @pytest.mark.asyncio
    async def test_absent_partition_left_untouched_on_restore(self, clock):
        """Test that a partition missing from the backup is not cleared."""
        store = user_with_data()
        service = BackupService(store, clock=clock)
        backup = (await service.backup("u1")).unwrap()

        await store.write("users/u1/inventory_items/i1", {"name": "Rice"})
        await service.restore("u1", backup.timestamp)

        assert store.get("users/u1/inventory_items/i1") == {"name": "Rice"}

    @pytest.mark.asyncio
    async def test_same_millisecond_backups_get_distinct_keys(self, clock):
        """Test that two backups in one millisecond don't collide."""
        store = user_with_data()
        service = BackupService(store, clock=clock)

        first = (await service.backup("u1")).unwrap()
        second = (await service.backup("u1")).unwrap()

        assert second.timestamp == first.timestamp + 1
        assert (await service.list_backups("u1")).value == [second.timestamp, first.timestamp]

    @pytest.mark.asyncio
    async def test_restore_missing_backup(self, clock):
        """Test restoring a timestamp that was never backed up."""
        result = await BackupService(user_with_data(), clock=clock).restore("u1", 123)
        assert result.ok is False
        assert result.error_kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_backup_store_failure(self, clock):
        """Test that a failing read surfaces as a store error."""
        store = user_with_data()
        store.fail_on("users/u1/tasks", code="NETWORK_ERROR")

        result = await BackupService(store, clock=clock).backup("u1")

        assert result.error_kind == ErrorKind.STORE
        assert result.error_code == "NETWORK_ERROR"
        assert store.get("backups") is None


class TestRepairService:
    """Tests for repair() and check_health()."""

    @pytest.mark.asyncio
    async def test_backfills_missing_fields_only(self, clock):
        """Test that present values are never overwritten."""
        store = InMemoryStore({
            "users": {
                "u1": {"profile": {"email": "a@x.com"}},
                "u2": {"profile": make_profile("u2", "b@x.com", language_preference="en")},
            },
            "app_metadata": {"categories": DEFAULT_CATEGORIES, "units": DEFAULT_UNITS},
        })

        result = await RepairService(store, clock=clock).repair()

        assert result.ok is True
        assert result.value.repaired_profiles == ["u1"]
        assert result.value.repairs_run == 1
        profile = store.get("users/u1/profile")
        assert profile["created_at"] == to_iso(NOW)
        assert profile["updated_at"] == to_iso(NOW)
        assert profile["language_preference"] == "he"
        assert store.get("users/u2/profile/language_preference") == "en"

    @pytest.mark.asyncio
    async def test_seeds_missing_metadata(self, clock, store):
        """Test that empty categories/units are seeded and counted."""
        result = await RepairService(store, clock=clock).repair()

        assert result.value.repairs_run == 2
        assert store.get("app_metadata/categories") == DEFAULT_CATEGORIES
        assert store.get("app_metadata/units") == DEFAULT_UNITS

    @pytest.mark.asyncio
    async def test_one_failing_profile_does_not_block_others(self, clock):
        """Test per-profile isolation."""
        store = InMemoryStore({
            "users": {
                "u1": {"profile": {"email": "a@x.com"}},
                "u2": {"profile": {"email": "b@x.com"}},
                "u3": "corrupted",
            },
        })
        store.fail_on("users/u1/profile")

        result = await RepairService(store, clock=clock).repair()

        assert result.ok is True
        assert result.value.repaired_profiles == ["u2"]
        assert set(result.value.failed_profiles) == {"u1", "u3"}
        assert store.get("users/u2/profile/language_preference") == "he"

    @pytest.mark.asyncio
    async def test_second_repair_finds_nothing(self, clock):
        """Test that repair is idempotent."""
        store = InMemoryStore({"users": {"u1": {"profile": {"email": "a@x.com"}}}})
        service = RepairService(store, clock=clock)
        await service.repair()

        again = await service.repair()

        assert again.value.repairs_run == 0

    @pytest.mark.asyncio
    async def test_health(self, clock, store):
        """Test health before and after metadata exists."""
        service = RepairService(store, clock=clock)
        unhealthy = (await service.check_health()).value
        assert unhealthy.healthy is False
        assert unhealthy.version is None

        await store.atomic_write({
            "app_metadata/categories": DEFAULT_CATEGORIES,
            "app_metadata/units": DEFAULT_UNITS,
            "app_metadata/database_version": "1.1.0",
        })
        healthy = (await service.check_health()).value
        assert healthy.healthy is True
        assert healthy.version == "1.1.0"

    @pytest.mark.asyncio
    async def test_half_linked_profile_is_reported(self, clock):
        """Test that a profile with sharing_with but no shared_space_id is flagged."""
        store = InMemoryStore({
            "users": {
                "u1": {"profile": make_profile("u1", "a@x.com", sharing_with="u2")},
                "u2": {"profile": make_profile("u2", "b@x.com")},
            },
            "app_metadata": {
                "categories": DEFAULT_CATEGORIES,
                "units": DEFAULT_UNITS,
                "database_version": "1.1.0",
            },
        })
        before = store.dump()
        service = RepairService(store, clock=clock)

        repaired = (await service.repair()).value
        health = (await service.check_health()).value

        assert list(repaired.inconsistent_profiles) == ["u1"]
        assert "shared_space_id" in repaired.inconsistent_profiles["u1"]
        assert repaired.repairs_run == 0
        assert store.dump() == before

        assert health.healthy is False
        assert health.checks["profiles"] is False
        assert health.inconsistent_profiles == ["u1"]


def analytics_store():
    """
    u1 shares with u2 (stale private copy of t1 included), u3 is on
    their own and hasn't been seen for two months.
    """
    fresh = to_iso(NOW - timedelta(days=2))
    stale = to_iso(NOW - timedelta(days=60))
    link = {"shared_space_id": "u1_u2"}
    return InMemoryStore({
        "users": {
            "u1": {
                "profile": make_profile("u1", "a@x.com", sharing_with="u2", updated_at=fresh, **link),
                "tasks": {"t1": {"title": "Old copy", "category": "household"}},
            },
            "u2": {
                "profile": make_profile("u2", "b@x.com", sharing_with="u1", updated_at=fresh, **link),
            },
            "u3": {
                "profile": make_profile("u3", "c@x.com", updated_at=stale),
                "tasks": {"t9": {"title": "Solo", "status": "completed", "category": "work"}},
                "inventory_items": {
                    "i1": {"name": "Rice", "category": "pantry", "current_amount": 1, "minimum_amount": 2},
                    "i2": {"name": "Salt", "category": "pantry", "current_amount": 2, "minimum_amount": 2},
                },
            },
        },
        "shared": {
            "u1_u2": {
                "id": "u1_u2",
                "members": {"u1": True, "u2": True},
                "tasks": {
                    "t1": {"title": "Old copy", "status": "completed", "category": "household"},
                    "t2": {"title": "Dishes", "status": "pending", "category": "household"},
                },
                "shopping_list_items": {
                    "s1": {"name": "Milk", "category": "dairy", "is_purchased": True},
                    "s2": {"name": "Bread", "is_purchased": False},
                },
            },
        },
    })


class TestExportAnalytics:
    """Tests for export_analytics()."""

    @pytest.mark.asyncio
    async def test_counts(self, clock):
        """Test user, task, shopping and inventory counts."""
        store = analytics_store()
        before = store.dump()

        result = await RepairService(store, clock=clock).export_analytics()

        assert result.ok is True
        report = result.value
        assert report.timestamp == to_iso(NOW)
        assert report.users.model_dump() == {"total": 3, "active": 2, "sharing": 2}

        # The private t1 of a linked user is not counted next to its shared copy
        assert report.tasks.total == 3
        assert report.tasks.completed == 2
        assert report.tasks.by_category == {"work": 1, "household": 2}

        assert report.shopping.total == 2
        assert report.shopping.purchased == 1
        assert report.shopping.by_category == {"dairy": 1, "uncategorized": 1}

        assert report.inventory.total == 2
        assert report.inventory.low_stock == 1
        assert report.inventory.by_category == {"pantry": 2}

        assert store.dump() == before

    @pytest.mark.asyncio
    async def test_active_window_follows_settings(self, clock, monkeypatch):
        """Test MAINTENANCE_ACTIVE_USER_DAYS."""
        monkeypatch.setenv("MAINTENANCE_ACTIVE_USER_DAYS", "90")

        report = (await RepairService(analytics_store(), clock=clock).export_analytics()).value

        assert report.users.active == 3

    @pytest.mark.asyncio
    async def test_empty_store(self, clock, store):
        """Test that an empty store yields zero counts."""
        report = (await RepairService(store, clock=clock).export_analytics()).value

        assert report.users.total == 0
        assert report.tasks.total == 0
        assert report.inventory.by_category == {}


class PeakTrackingStore(InMemoryStore):
    """Records how many deletes were running at once."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.in_flight = 0
        self.peak = 0

    async def delete(self, path):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await super().delete(path)
        finally:
            self.in_flight -= 1


def archived(days_ago, field="archived_date", **extra):
    return {
        "title": "old",
        "is_archived": True,
        field: to_iso(NOW - timedelta(days=days_ago)),
        **extra,
    }


class TestPurgeArchived:
    """Tests for archived-record aging."""

    @pytest.mark.asyncio
    async def test_day_boundaries(self, clock):
        """Test 59 and 60 days kept, 61 days deleted."""
        store = InMemoryStore({
            "users": {
                "u1": {
                    "tasks": {
                        "d59": archived(59),
                        "d60": archived(60),
                        "d61": archived(61),
                    }
                }
            }
        })

        result = await RetentionService(store, clock=clock).purge_archived(now=NOW)

        assert result.ok is True
        assert result.value.deleted == 1
        assert set(store.get("users/u1/tasks")) == {"d59", "d60"}

    @pytest.mark.asyncio
    async def test_day_60_almost_61_is_kept(self, clock):
        """Test that age rounds down to whole days."""
        store = InMemoryStore({
            "users": {"u1": {"tasks": {"t": archived(60.99)}}}
        })
        result = await RetentionService(store, clock=clock).purge_archived(now=NOW)
        assert result.value.deleted == 0

    @pytest.mark.asyncio
    async def test_all_kinds_private_and_shared(self, clock):
        """Test every archivable kind, with fallback timestamps."""
        old_day = (NOW - timedelta(days=90)).date().isoformat()
        store = InMemoryStore({
            "users": {
                "u1": {
                    "tasks": {"t": archived(90, field="completion_date")},
                    "shopping_list_items": {"s": archived(90, field="purchased_date")},
                },
            },
            "shared": {
                "u1_u2": {
                    "inventory_items": {"i": archived(90, field="updated_date")},
                    "events": {"e": {"title": "x", "is_archived": True, "event_date": old_day}},
                },
            },
        })

        result = await RetentionService(store, clock=clock).purge_archived(now=NOW)

        assert result.value.deleted == 4
        assert result.value.per_kind == {
            "tasks": 1,
            "shopping_list_items": 1,
            "inventory_items": 1,
            "events": 1,
        }
        assert store.dump() == {}

    @pytest.mark.asyncio
    async def test_kept_records(self, clock):
        """Test unarchived and undated records are never deleted."""
        store = InMemoryStore({
            "users": {
                "u1": {
                    "tasks": {
                        "live": {"title": "x", "is_archived": False,
                                 "archived_date": to_iso(NOW - timedelta(days=400))},
                        "undated": {"title": "x", "is_archived": True},
                    }
                }
            }
        })
        result = await RetentionService(store, clock=clock).purge_archived(now=NOW)

        assert result.value.deleted == 0
        assert set(store.get("users/u1/tasks")) == {"live", "undated"}

    @pytest.mark.asyncio
    async def test_failures_are_counted_not_raised(self, clock):
        """Test that one failing delete doesn't stop the others."""
        tasks = {f"t{i:02d}": archived(100) for i in range(25)}
        store = InMemoryStore({"users": {"u1": {"tasks": tasks}}})
        store.fail_on("users/u1/tasks/t03")
        store.fail_on("users/u1/tasks/t17")

        result = await RetentionService(store, clock=clock).purge_archived(now=NOW)

        assert result.ok is True
        assert result.value.deleted == 23
        assert result.value.failed == 2
        assert result.value.success is False
        assert set(store.get("users/u1/tasks")) == {"t03", "t17"}

    @pytest.mark.asyncio
    async def test_deletes_run_in_batches(self, clock, monkeypatch):
        """Test that no more than one batch of deletes is in flight."""
        monkeypatch.setenv("MAINTENANCE_CLEANUP_BATCH_SIZE", "4")
        tasks = {f"t{i:02d}": archived(100) for i in range(10)}
        store = PeakTrackingStore({"users": {"u1": {"tasks": tasks}}}, latency=0.001)

        result = await RetentionService(store, clock=clock).purge_archived(now=NOW)

        assert result.value.deleted == 10
        assert store.peak == 4


class TestPruneBackups:
    """Tests for backup pruning."""

    @pytest.mark.asyncio
    async def test_twelve_backups_keep_ten_newest(self, clock):
        """Test that the two oldest of twelve backups are deleted."""
        store = user_with_data()
        backups = BackupService(store, clock=clock)
        stamps = []
        for _ in range(12):
            stamps.append((await backups.backup("u1")).unwrap().timestamp)
            clock.advance(minutes=1)

        result = await RetentionService(store, clock=clock).prune_backups()

        assert result.value.deleted == 2
        assert result.value.kept == 10
        remaining = (await backups.list_backups("u1")).value
        assert remaining == sorted(stamps[2:], reverse=True)

    @pytest.mark.asyncio
    async def test_numeric_not_lexical_order(self, clock):
        """Test that key order is numeric."""
        store = InMemoryStore({
            "backups": {"users": {"u1": {"999": {"userId": "u1"}, "1000": {"userId": "u1"}}}}
        })

        await RetentionService(store, clock=clock).prune_backups(keep=1)

        assert set(store.get("backups/users/u1")) == {"1000"}

    @pytest.mark.asyncio
    async def test_run_does_both(self, clock):
        """Test the combined retention run."""
        store = InMemoryStore(make_users(u1="a@x.com"))
        await store.write("users/u1/tasks/old", archived(70))

        result = await RetentionService(store, clock=clock).run(now=NOW)

        assert result.ok is True
        assert result.value.archived.deleted == 1
        assert result.value.backups.deleted == 0
