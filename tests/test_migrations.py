"""
Tests for the schema migration runner.
"""

import pytest

from household_store.errors import ErrorKind, StoreError
from household_store.models.household import to_iso
from household_store.schema import DEFAULT_CATEGORIES, DEFAULT_INVENTORY_LOCATION, DEFAULT_UNITS
from household_store.services import Migration, MigrationRunner, compare_versions
from household_store.services.migrations import seed_metadata
from household_store.store import InMemoryStore
from tests.conftest import NOW


class TestCompareVersions:
    """Tests for numeric version comparison."""

    def test_numeric_not_lexical(self):
        """Test that 1.10.0 is newer than 1.2.0."""
        assert compare_versions("1.2.0", "1.10.0") == -1
        assert compare_versions("1.10.0", "1.2.0") == 1

    def test_missing_segments_are_zero(self):
        """Test that 1.2 equals 1.2.0."""
        assert compare_versions("1.2", "1.2.0") == 0
        assert compare_versions("2", "1.9.9") == 1

    def test_equal(self):
        """Test identical versions."""
        assert compare_versions("0.0.0", "0.0.0") == 0


def recording_migration(version, calls):
    async def migrate(store, clock):
        calls.append(version)
        await store.write(f"trace/{version.replace('.', '_')}", True)

    return Migration(version=version, description=f"step {version}", migrate=migrate)


class TestMigrationRunner:
    """Tests for MigrationRunner."""

    @pytest.mark.asyncio
    async def test_default_registry_on_empty_store(self, store):
        """Test that a fresh store gets metadata and the newest version."""
        result = await MigrationRunner(store).run()

        assert result.ok is True
        assert result.value == 2
        assert store.get("app_metadata/database_version") == "1.1.0"
        assert store.get("app_metadata/categories") == DEFAULT_CATEGORIES
        assert store.get("app_metadata/units") == DEFAULT_UNITS
        assert store.get("app_metadata/last_migration") is not None

    @pytest.mark.asyncio
    async def test_migrations_use_the_runner_clock(self, store, clock):
        """Test that last_migration is stamped from the injected clock."""
        seen = []

        async def stamp(store, clock):
            seen.append(clock())

        runner = MigrationRunner(
            store,
            migrations=[
                Migration(version="1.0.0", description="seed", migrate=seed_metadata),
                Migration(version="1.0.1", description="stamp", migrate=stamp),
            ],
            clock=clock,
        )

        await runner.run()

        assert store.get("app_metadata/last_migration") == to_iso(NOW)
        assert seen == [NOW]

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, store):
        """Test idempotence: nothing runs twice and the marker stays put."""
        runner = MigrationRunner(store)
        await runner.run()

        again = await runner.run()

        assert again.ok is True
        assert again.value == 0
        assert store.get("app_metadata/database_version") == "1.1.0"

    @pytest.mark.asyncio
    async def test_runs_in_numeric_order(self, store):
        """Test that registration order doesn't matter."""
        calls = []
        runner = MigrationRunner(
            store,
            migrations=[
                recording_migration("1.10.0", calls),
                recording_migration("1.2.0", calls),
                recording_migration("1.9", calls),
            ],
        )

        result = await runner.run()

        assert result.value == 3
        assert calls == ["1.2.0", "1.9", "1.10.0"]
        assert store.get("app_metadata/database_version") == "1.10.0"

    @pytest.mark.asyncio
    async def test_only_newer_versions_run(self):
        """Test that versions at or below the marker are skipped."""
        store = InMemoryStore({"app_metadata": {"database_version": "1.2.0"}})
        calls = []
        runner = MigrationRunner(
            store,
            migrations=[
                recording_migration("1.1.0", calls),
                recording_migration("1.2", calls),
                recording_migration("1.3.0", calls),
            ],
        )

        assert (await runner.pending()).value == ["1.3.0"]
        assert (await runner.run()).value == 1
        assert calls == ["1.3.0"]

    @pytest.mark.asyncio
    async def test_failure_stops_and_keeps_earlier_steps(self, store):
        """Test that a failing migration aborts the rest."""
        calls = []

        async def explode(store, clock):
            raise StoreError("backend down", code="UNAVAILABLE")

        runner = MigrationRunner(
            store,
            migrations=[
                recording_migration("1.0.0", calls),
                Migration(version="2.0.0", description="broken", migrate=explode),
                recording_migration("3.0.0", calls),
            ],
        )

        result = await runner.run()

        assert result.ok is False
        assert result.error_kind == ErrorKind.STORE
        assert calls == ["1.0.0"]
        assert store.get("app_metadata/database_version") == "1.0.0"
        assert (await runner.current_version()).value == "1.0.0"

    def test_rejects_duplicate_versions(self, store):
        """Test that 1.2 and 1.2.0 can't both be registered."""
        calls = []
        with pytest.raises(ValueError, match="Duplicate"):
            MigrationRunner(
                store,
                migrations=[recording_migration("1.2", calls), recording_migration("1.2.0", calls)],
            )

    def test_rejects_bad_version(self, store):
        """Test that non-numeric versions are refused."""
        with pytest.raises(ValueError, match="Invalid"):
            MigrationRunner(store, migrations=[recording_migration("1.x", [])])

    @pytest.mark.asyncio
    async def test_current_version_defaults(self, store):
        """Test the version of a never-migrated store."""
        assert (await MigrationRunner(store).current_version()).value == "0.0.0"


class TestInventoryLocationMigration:
    """Tests for the 1.1.0 inventory back-fill."""

    @pytest.mark.asyncio
    async def test_backfills_private_and_shared_items(self):
        """Test that items without location get the default, others are kept."""
        store = InMemoryStore({
            "app_metadata": {"database_version": "1.0.0"},
            "users": {
                "u1": {
                    "inventory_items": {
                        "i1": {"name": "Rice"},
                        "i2": {"name": "Salt", "location": "pantry"},
                    }
                }
            },
            "shared": {"u1_u2": {"inventory_items": {"i3": {"name": "Oil"}}}},
        })

        result = await MigrationRunner(store).run()

        assert result.value == 1
        assert store.get("users/u1/inventory_items/i1/location") == DEFAULT_INVENTORY_LOCATION
        assert store.get("users/u1/inventory_items/i2/location") == "pantry"
        assert store.get("shared/u1_u2/inventory_items/i3/location") == DEFAULT_INVENTORY_LOCATION
