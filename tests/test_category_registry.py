"""
Tests for the category registry.
"""

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.categories import CategoryRegistry, UnknownCategoryError
from finance_tracker.models.audit import AuditEventType
from finance_tracker.services.storage import (
    CorruptValueError,
    InMemoryStore,
    StoreAuditStorage,
    StoreWriteError,
)
from finance_tracker.services.storage.keys import (
    CATEGORIES_KEY,
    TRANSACTION_CATEGORY_MAP_KEY,
)


class TestCategoryCrud:
    """Creating, updating and deleting categories."""

    async def test_create_appends_and_persists(self, registry, store):
        """A created category is visible and stored."""
        category_id = await registry.create("Groceries", "#FF0000")

        assert category_id.startswith("cat_")
        assert [c.name for c in registry.categories] == ["Groceries"]
        stored = await store.get_json(CATEGORIES_KEY)
        assert stored == [{"id": category_id, "name": "Groceries", "color": "#FF0000"}]

    async def test_create_rejects_empty_name(self, registry):
        with pytest.raises(ValueError):
            await registry.create("   ", "#FF0000")

    async def test_insertion_order_is_display_order(self, registry):
        for name in ("Living", "Mobility", "Leisure"):
            await registry.create(name, "#000000")
        assert [c.name for c in registry.categories] == ["Living", "Mobility", "Leisure"]

    async def test_bulk_create_does_not_deduplicate(self, registry):
        """Duplicate names in one batch give two categories with distinct ids."""
        created = await registry.bulk_create([
            {"name": "Groceries", "color": "#FF0000"},
            {"name": "Groceries", "color": "#00FF00"},
        ])

        assert len(created) == 2
        assert created[0].id != created[1].id
        assert len(registry.categories) == 2

    async def test_bulk_create_writes_once(self, registry, store):
        """All categories of a bulk create are persisted in one write."""
        await registry.bulk_create([{"name": f"Cat {i}"} for i in range(20)])

        assert store.writes.count(CATEGORIES_KEY) == 1
        assert len({c.id for c in registry.categories}) == 20

    async def test_bulk_create_ids_have_two_random_suffixes(self, registry):
        [category] = await registry.bulk_create([{"name": "Mobility"}])
        assert len(category.id.split("_")) == 4

    async def test_update_changes_only_given_fields(self, registry):
        category_id = await registry.create("Food", "#FF0000")

        await registry.update(category_id, name="Groceries")

        category = registry.get(category_id)
        assert category.name == "Groceries"
        assert category.color == "#FF0000"

    async def test_update_unknown_id_is_silent(self, registry, store):
        await registry.create("Food", "#FF0000")
        writes_before = len(store.writes)

        await registry.update("cat_missing", name="Other")

        assert len(store.writes) == writes_before
        assert [c.name for c in registry.categories] == ["Food"]

    async def test_delete_cascades_to_assignments(self, registry, store):
        """No transaction resolves to a deleted category."""
        keep = await registry.create("Living", "#000000")
        drop = await registry.create("Leisure", "#111111")
        await registry.bulk_assign({"tx1": drop, "tx2": keep, "tx3": drop})

        await registry.delete(drop)

        assert registry.get(drop) is None
        assert registry.resolve("tx1") is None
        assert registry.resolve("tx3") is None
        assert registry.resolve("tx2").id == keep
        assert await store.get_json(TRANSACTION_CATEGORY_MAP_KEY) == {"tx2": keep}

    async def test_failed_write_keeps_previous_state(self, registry, store):
        await registry.create("Living", "#000000")
        store.failing_keys.add(CATEGORIES_KEY)

        with pytest.raises(StoreWriteError):
            await registry.create("Leisure", "#111111")

        assert [c.name for c in registry.categories] == ["Living"]

    async def test_load_restores_persisted_state(self, registry, store, audit_logger):
        category_id = await registry.create("Living", "#000000")
        await registry.assign("tx1", category_id)

        reloaded = CategoryRegistry(store, audit_logger)
        await reloaded.load()

        assert reloaded.categories == registry.categories
        assert reloaded.resolve("tx1").name == "Living"

    async def test_load_rejects_invalid_categories(self, store):
        audit_store = InMemoryStore()
        registry = CategoryRegistry(store, AuditLogger(StoreAuditStorage(audit_store)))
        await store.set_json(CATEGORIES_KEY, [{"id": "cat_1"}])

        with pytest.raises(CorruptValueError):
            await registry.load()

        [event] = await StoreAuditStorage(audit_store).get_recent_events()
        assert event.event_type == AuditEventType.STORAGE_ERROR
        assert event.details["operation"] == "load_categories"
        assert registry.categories == ()

    async def test_load_rejects_assignment_map_of_wrong_shape(self, registry, store):
        await store.set_json(TRANSACTION_CATEGORY_MAP_KEY, ["tx1", "cat_1"])

        with pytest.raises(CorruptValueError):
            await registry.load()

        assert dict(registry.assignments) == {}


class TestAssignments:
    """Single and bulk assignment."""

    async def test_assign_and_resolve(self, registry):
        category_id = await registry.create("Living", "#000000")

        await registry.assign("tx1", category_id)

        assert registry.resolve("tx1").id == category_id
        assert registry.resolve("tx2") is None

    async def test_assign_none_removes_mapping(self, registry):
        category_id = await registry.create("Living", "#000000")
        await registry.assign("tx1", category_id)

        await registry.assign("tx1", None)

        assert registry.resolve("tx1") is None
        assert "tx1" not in registry.assignments

    async def test_assign_unknown_category_is_rejected(self, registry):
        with pytest.raises(UnknownCategoryError):
            await registry.assign("tx1", "cat_missing")
        assert registry.resolve("tx1") is None

    async def test_bulk_assign_all_null_is_not_written(self, registry, store):
        """An all-null map on unassigned transactions writes nothing."""
        await registry.create("Living", "#000000")

        changed = await registry.bulk_assign({"tx1": None, "tx2": None})

        assert changed == 0
        assert TRANSACTION_CATEGORY_MAP_KEY not in store.writes

    async def test_bulk_assign_persists_exact_deltas(self, registry, store):
        living = await registry.create("Living", "#000000")
        leisure = await registry.create("Leisure", "#111111")
        await registry.bulk_assign({"tx1": living, "tx2": living})

        changed = await registry.bulk_assign({"tx1": living, "tx2": leisure, "tx3": None})

        assert changed == 1
        assert await store.get_json(TRANSACTION_CATEGORY_MAP_KEY) == {
            "tx1": living,
            "tx2": leisure,
        }

    async def test_bulk_assign_writes_once(self, registry, store):
        living = await registry.create("Living", "#000000")

        await registry.bulk_assign({f"tx{i}": living for i in range(50)})

        assert store.writes.count(TRANSACTION_CATEGORY_MAP_KEY) == 1
        assert len(registry.assignments) == 50

    async def test_assignments_view_is_read_only(self, registry):
        with pytest.raises(TypeError):
            registry.assignments["tx1"] = "cat_1"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
