"""Tests for the Repository CRUD engine."""

from __future__ import annotations

import pytest

from sheetbase import Sheetbase
from sheetbase.data.repository import Repository, sort_records
from sheetbase.exceptions import (
    FieldNotFoundError,
    ForeignKeyViolationError,
    QueryError,
    UniqueConstraintError,
    ValidationError,
)
from sheetbase.schema.registry import SchemaRegistry
from sheetbase.storage.memory import InMemoryStore


def _customer(db: Sheetbase, email: str = "ann@example.com", **extra):
    return db.repository("Customers").create({"name": "Ann Lee", "email": email, **extra})


class TestCreate:
    def test_create_fills_generated_fields(self, any_db: Sheetbase):
        customer = _customer(any_db)
        assert len(customer["id"]) == 36
        assert customer["status"] == "active"
        assert customer["credit_limit"] == 0
        assert customer["created_at"] is not None
        assert customer["updated_at"] is not None
        assert customer["phone"] is None
        assert list(customer) == any_db.registry.field_names("Customers")

    def test_created_record_can_be_read_back(self, any_db: Sheetbase):
        customer = _customer(any_db, credit_limit=250.5)
        assert any_db.repository("Customers").find_by_id(customer["id"]) == customer

    def test_header_matches_schema(self, any_db: Sheetbase):
        assert any_db.store.read_header("Orders") == any_db.registry.field_names("Orders")

    def test_explicit_primary_key_kept(self, memory_db: Sheetbase):
        customer = _customer(memory_db, id="cust-1")
        assert customer["id"] == "cust-1"

    def test_duplicate_primary_key(self, memory_db: Sheetbase):
        _customer(memory_db, id="cust-1")
        with pytest.raises(UniqueConstraintError, match="Field 'id' must be unique"):
            _customer(memory_db, email="other@example.com", id="cust-1")

    def test_unique_field(self, any_db: Sheetbase):
        _customer(any_db)
        with pytest.raises(UniqueConstraintError) as exc_info:
            _customer(any_db, email="ANN@example.com")
        assert exc_info.value.fields == ["email"]
        assert any_db.repository("Customers").count() == 1

    def test_unique_error_is_a_validation_error(self, memory_db: Sheetbase):
        _customer(memory_db)
        with pytest.raises(ValidationError):
            _customer(memory_db)

    def test_composite_unique_index(self, memory_db: Sheetbase):
        customer = _customer(memory_db)
        product = memory_db.repository("Products").create({"sku": "P-1", "name": "P", "price": 1})
        order = memory_db.repository("Orders").create({"customer_id": customer["id"]})
        items = memory_db.repository("OrderItems")
        line = {"order_id": order["id"], "product_id": product["id"], "quantity": 1, "unit_price": 1}
        items.create(line)
        with pytest.raises(UniqueConstraintError, match="unique together"):
            items.create(line)

    def test_validation_failure_writes_nothing(self, any_db: Sheetbase):
        with pytest.raises(ValidationError):
            any_db.repository("Customers").create({"name": "A", "email": "nope"})
        assert any_db.store.read_all_rows("Customers") == []

    def test_foreign_key_violation_writes_nothing(self, any_db: Sheetbase):
        with pytest.raises(ForeignKeyViolationError) as exc_info:
            any_db.repository("Orders").create({"customer_id": "missing"})
        assert exc_info.value.referenced_table == "Customers"
        assert "missing" in str(exc_info.value)
        assert any_db.store.read_all_rows("Orders") == []

    def test_order_date_defaults_to_today(self, memory_db: Sheetbase):
        from sheetbase.validation.validator import today_iso

        order = memory_db.repository("Orders").create({"customer_id": _customer(memory_db)["id"]})
        assert order["order_date"] == today_iso()
        assert order["status"] == "pending"

    def test_rejects_non_mapping(self, memory_db: Sheetbase):
        with pytest.raises(ValidationError, match="must be a mapping"):
            memory_db.repository("Customers").create(["not", "a", "dict"])  # type: ignore[arg-type]

    def test_numeric_auto_generated_key(self):
        registry = SchemaRegistry(
            [
                {
                    "name": "Tickets",
                    "fields": [
                        {"name": "id", "type": "number", "auto_generate": True},
                        {"name": "title", "required": True},
                    ],
                }
            ]
        )
        repo = Repository("Tickets", _store_for(registry), registry)
        assert [repo.create({"title": t})["id"] for t in "abc"] == [1, 2, 3]


def _store_for(registry: SchemaRegistry) -> InMemoryStore:
    store = InMemoryStore()
    for schema in registry:
        store.ensure_table(schema.storage_name or schema.name, schema.field_names)
    return store


class TestRead:
    def test_find_by_id_missing(self, memory_db: Sheetbase):
        assert memory_db.repository("Customers").find_by_id("nope") is None
        assert memory_db.repository("Customers").exists("nope") is False

    def test_find_all_empty(self, any_db: Sheetbase):
        assert any_db.repository("Products").find_all() == []

    def test_find_all_filter_sort_limit(self, any_db: Sheetbase):
        products = any_db.repository("Products")
        for sku, price in [("A-1", 30), ("B-1", 5), ("C-1", 12.5), ("D-1", 12.5)]:
            products.create({"sku": sku, "name": sku, "price": price})

        assert [p["sku"] for p in products.find_all(sort_by="price")] == ["B-1", "C-1", "D-1", "A-1"]
        assert [p["sku"] for p in products.find_all(sort_by="price", order="desc", limit=2)] == [
            "A-1",
            "C-1",
        ]
        assert [p["sku"] for p in products.find_all(filter={"price": 12.5})] == ["C-1", "D-1"]
        assert products.count(lambda p: p["price"] > 10) == 3
        assert products.find_one({"sku": "B-1"})["price"] == 5

    def test_find_all_unknown_sort_field(self, memory_db: Sheetbase):
        with pytest.raises(FieldNotFoundError):
            memory_db.repository("Products").find_all(sort_by="weight")

    def test_find_all_bad_order(self, memory_db: Sheetbase):
        with pytest.raises(QueryError, match="Invalid sort order"):
            memory_db.repository("Products").find_all(sort_by="price", order="sideways")

    def test_find_by_returns_copies(self, memory_db: Sheetbase):
        customer = _customer(memory_db)
        repo = memory_db.repository("Customers")
        found = repo.find_by("email", "ann@example.com")
        found[0]["name"] = "Mutated"
        assert repo.find_by("email", "ann@example.com")[0]["name"] == customer["name"]


class TestSortRecords:
    def test_missing_values_last_in_both_orders(self):
        records = [{"v": None}, {"v": 2}, {"v": ""}, {"v": 10}, {"v": 1}]
        assert [r["v"] for r in sort_records(records, "v")] == [1, 2, 10, None, ""]
        assert [r["v"] for r in sort_records(records, "v", "desc")] == [10, 2, 1, None, ""]

    def test_strings_sorted_lexically(self):
        records = [{"v": "b"}, {"v": "a"}, {"v": "c"}]
        assert [r["v"] for r in sort_records(records, "v")] == ["a", "b", "c"]


class TestIndexCache:
    def test_index_built_lazily_and_invalidated_on_write(self, memory_db: Sheetbase):
        repo = memory_db.repository("Customers")
        _customer(memory_db)
        assert len(repo.index_cache) == 0

        repo.find_by("email", "ann@example.com")
        assert repo.index_cache.cached_fields() == ["email"]

        _customer(memory_db, email="bob@example.com")
        assert len(repo.index_cache) == 0
        assert len(repo.find_by("status", "active")) == 2

    def test_index_sees_writes_immediately(self, memory_db: Sheetbase):
        repo = memory_db.repository("Customers")
        assert repo.find_by("email", "ann@example.com") == []
        _customer(memory_db)
        assert len(repo.find_by("email", "ann@example.com")) == 1

    def test_ttl_expiry(self, fake_clock):
        registry = SchemaRegistry([{"name": "Notes", "fields": [{"name": "id"}, {"name": "tag"}]}])
        store = _store_for(registry)
        repo = Repository("Notes", store, registry, index_ttl=60, clock=fake_clock)
        repo.create({"id": "n1", "tag": "x"})
        assert len(repo.find_by("tag", "x")) == 1

        # Another writer changes the store behind the repository's back
        store.append_row("Notes", ["n2", "x"])
        fake_clock.advance(30)
        assert len(repo.find_by("tag", "x")) == 1
        fake_clock.advance(31)
        assert len(repo.find_by("tag", "x")) == 2

    def test_ttl_from_settings(self):
        from sheetbase.config import Settings
        from sheetbase.services.schema import COMMERCE_TABLES

        db = Sheetbase("memory://", schema=COMMERCE_TABLES, settings=Settings(index_ttl_seconds=5))
        assert db.repository("Orders").index_cache.ttl_seconds == 5


class TestUpdate:
    def test_update_merges_and_refreshes_auto_update(self, any_db: Sheetbase):
        customer = _customer(any_db)
        updated = any_db.repository("Customers").update(customer["id"], {"phone": "+33 1 23 45 67"})
        assert updated["phone"] == "+33 1 23 45 67"
        assert updated["email"] == customer["email"]
        assert updated["created_at"] == customer["created_at"]
        assert updated["updated_at"] >= customer["updated_at"]
        assert any_db.repository("Customers").find_by_id(customer["id"]) == updated

    def test_update_keeps_row_position(self, memory_db: Sheetbase):
        first = _customer(memory_db, email="a@example.com")
        _customer(memory_db, email="b@example.com")
        memory_db.repository("Customers").update(first["id"], {"name": "Zed Zed"})
        rows = memory_db.store.read_all_rows("Customers")
        assert rows[0][0] == first["id"]

    def test_update_missing_returns_none(self, memory_db: Sheetbase):
        assert memory_db.repository("Customers").update("nope", {"name": "X Y"}) is None

    def test_primary_key_change_rejected(self, memory_db: Sheetbase):
        customer = _customer(memory_db)
        with pytest.raises(ValidationError, match="Primary key 'id' cannot be changed"):
            memory_db.repository("Customers").update(customer["id"], {"id": "new"})

    def test_same_primary_key_allowed(self, memory_db: Sheetbase):
        customer = _customer(memory_db)
        updated = memory_db.repository("Customers").update(
            customer["id"], {"id": customer["id"], "name": "Ann B"}
        )
        assert updated["name"] == "Ann B"

    def test_update_validates(self, memory_db: Sheetbase):
        customer = _customer(memory_db)
        with pytest.raises(ValidationError, match="must be one of"):
            memory_db.repository("Customers").update(customer["id"], {"status": "vip"})

    def test_update_unique_excludes_self(self, memory_db: Sheetbase):
        ann = _customer(memory_db)
        bob = _customer(memory_db, email="bob@example.com")
        repo = memory_db.repository("Customers")
        assert repo.update(ann["id"], {"email": "ann@example.com"}) is not None
        with pytest.raises(UniqueConstraintError):
            repo.update(bob["id"], {"email": "ann@example.com"})

    def test_update_checks_foreign_keys(self, memory_db: Sheetbase):
        order = memory_db.repository("Orders").create({"customer_id": _customer(memory_db)["id"]})
        with pytest.raises(ForeignKeyViolationError):
            memory_db.repository("Orders").update(order["id"], {"customer_id": "ghost"})

    def test_update_cannot_clear_required_fields(self, any_db: Sheetbase):
        customer = _customer(any_db)
        repo = any_db.repository("Customers")
        with pytest.raises(ValidationError) as exc_info:
            repo.update(customer["id"], {"name": None, "email": ""})
        assert exc_info.value.errors == [
            "Field 'name' is required",
            "Field 'email' is required",
        ]
        stored = repo.find_by_id(customer["id"])
        assert stored == customer
        assert any_db.validator.validate("Customers", stored) is not None

    def test_cleared_required_field_reported_with_other_violations(self, memory_db: Sheetbase):
        customer = _customer(memory_db)
        with pytest.raises(ValidationError) as exc_info:
            memory_db.repository("Customers").update(
                customer["id"], {"name": None, "status": "vip"}
            )
        assert exc_info.value.errors[0] == "Field 'name' is required"
        assert "must be one of" in exc_info.value.errors[1]

    def test_update_may_clear_optional_fields(self, memory_db: Sheetbase):
        customer = _customer(memory_db, phone="0123456789")
        updated = memory_db.repository("Customers").update(customer["id"], {"phone": None})
        assert updated["phone"] is None


class TestBatchCreate:
    def test_partial_failure_continues(self, any_db: Sheetbase):
        result = any_db.repository("Products").batch_create(
            [
                {"sku": "OK-1", "name": "One", "price": 1},
                {"sku": "bad sku", "name": "Two", "price": 2},
                {"sku": "OK-1", "name": "Dup", "price": 3},
                {"sku": "OK-3", "name": "Three", "price": 3},
            ]
        )
        assert result.success_count == 2
        assert [item.index for item in result.failed] == [1, 2]
        assert result.failed[0].error_type == "ValidationError"
        assert result.failed[1].error_type == "UniqueConstraintError"
        assert result.failed[1].data == {"sku": "OK-1", "name": "Dup", "price": 3}
        assert any_db.repository("Products").count() == 2


class TestTruncate:
    def test_truncate_keeps_header(self, any_db: Sheetbase):
        _customer(any_db)
        _customer(any_db, email="b@example.com")
        repo = any_db.repository("Customers")
        assert repo.truncate() == 2
        assert repo.find_all() == []
        assert any_db.store.read_header("Customers") == any_db.registry.field_names("Customers")
