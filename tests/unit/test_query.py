"""Tests for the fluent query builder."""

import pytest

from sheetbase import Sheetbase
from sheetbase.exceptions import FieldNotFoundError, QueryError
from sheetbase.query.builder import QueryBuilder, compare

PRODUCTS = [
    ("KB-01", "Keyboard", 49.9, True),
    ("MS-01", "Mouse", 19.5, True),
    ("MN-27", "Monitor 27in", 329, True),
    ("CB-01", "USB cable", 5, False),
    ("HD-01", "Headset", 89, True),
]


@pytest.fixture
def catalog(any_db: Sheetbase) -> Sheetbase:
    products = any_db.repository("Products")
    for sku, name, price, active in PRODUCTS:
        products.create({"sku": sku, "name": name, "price": price, "active": active})
    return any_db


def _skus(records):
    return [r["sku"] for r in records]


class TestCompare:
    def test_numeric_strings_compare_numerically(self):
        assert compare("10", 9) == 1
        assert compare(2, "2.0") == 0

    def test_strings(self):
        assert compare("apple", "banana") == -1

    def test_empty_never_compares(self):
        assert compare(None, 1) is None
        assert compare("", "a") is None


class TestPredicates:
    def test_where_equals_and_not_equals(self, catalog):
        assert _skus(catalog.query("Products").where_equals("price", 5).get()) == ["CB-01"]
        assert len(catalog.query("Products").where_not_equals("active", True).get()) == 1

    def test_where_in_and_not_in(self, catalog):
        q = catalog.query("Products").where_in("sku", ["KB-01", "HD-01", "XX-00"])
        assert sorted(_skus(q.get())) == ["HD-01", "KB-01"]
        q = catalog.query("Products").where_not_in("sku", ["KB-01", "HD-01"])
        assert len(q.get()) == 3

    def test_comparisons(self, catalog):
        assert catalog.query("Products").where_greater_than("price", 89).count() == 1
        assert catalog.query("Products").where_greater_or_equal("price", 89).count() == 2
        assert catalog.query("Products").where_less_than("price", 19.5).count() == 1
        assert catalog.query("Products").where_less_or_equal("price", "19.5").count() == 2

    def test_where_between_inclusive(self, catalog):
        q = catalog.query("Products").where_between("price", 19.5, 89).order_by("price")
        assert _skus(q.get()) == ["MS-01", "KB-01", "HD-01"]

    def test_like_and_text_matching(self, catalog):
        assert _skus(catalog.query("Products").where_like("name", "m%").order_by("sku").get()) == [
            "MN-27",
            "MS-01",
        ]
        assert catalog.query("Products").where_like("sku", "__-01").count() == 4
        assert catalog.query("Products").where_like("name", "m%", case_sensitive=True).count() == 0
        assert _skus(catalog.query("Products").where_starts_with("name", "key").get()) == ["KB-01"]
        assert _skus(catalog.query("Products").where_ends_with("name", "CABLE").get()) == ["CB-01"]
        assert _skus(catalog.query("Products").where_contains("name", "27").get()) == ["MN-27"]

    def test_text_matching_escapes_regex(self, memory_db):
        memory_db.repository("Products").create({"sku": "RX-1", "name": "a.b (c)", "price": 1})
        memory_db.repository("Products").create({"sku": "RX-2", "name": "axb", "price": 1})
        assert _skus(memory_db.query("Products").where_contains("name", ".b (").get()) == ["RX-1"]

    def test_null_checks(self, catalog):
        catalog.repository("Customers").create({"name": "No Phone", "email": "np@example.com"})
        catalog.repository("Customers").create(
            {"name": "Has Phone", "email": "hp@example.com", "phone": "0123456789"}
        )
        assert catalog.query("Customers").where_null("phone").count() == 1
        assert catalog.query("Customers").where_not_null("phone").first()["name"] == "Has Phone"

    def test_where_date_between(self, memory_db):
        customer = memory_db.repository("Customers").create(
            {"name": "Dee Dee", "email": "dd@example.com"}
        )
        orders = memory_db.repository("Orders")
        for day in ["2024-01-01", "2024-01-15", "2024-02-01"]:
            orders.create({"customer_id": customer["id"], "order_date": day})

        q = memory_db.query("Orders").where_date_between("order_date", "2024-01-01", "2024-01-31")
        assert q.count() == 2
        assert memory_db.query("Orders").where_date_between(
            "created_at", "2000-01-01", "2999-12-31"
        ).count() == 3

    def test_where_date_between_invalid(self, memory_db):
        with pytest.raises(QueryError, match="Invalid date range"):
            memory_db.query("Orders").where_date_between("order_date", "soon", "2024-01-01")

    def test_custom_predicate(self, catalog):
        q = catalog.query("Products").where(lambda p: p["name"].startswith("M"))
        assert q.count() == 2

    def test_unknown_field(self, catalog):
        with pytest.raises(FieldNotFoundError):
            catalog.query("Products").where_equals("colour", "red")

    def test_predicates_are_anded_in_any_order(self, catalog):
        a = catalog.query("Products").where_greater_than("price", 10).where_equals("active", True)
        b = catalog.query("Products").where_equals("active", True).where_greater_than("price", 10)
        assert _skus(a.order_by("sku").get()) == _skus(b.order_by("sku").get())
        assert a.count() == 4


class TestShaping:
    def test_order_by_replaces_previous_key(self, catalog):
        q = catalog.query("Products").order_by("name").order_by("price", "desc")
        assert _skus(q.get())[0] == "MN-27"

    def test_offset_then_limit(self, catalog):
        q = catalog.query("Products").order_by("price").offset(1).limit(2)
        assert _skus(q.get()) == ["MS-01", "KB-01"]

    def test_select_applied_last(self, catalog):
        rows = catalog.query("Products").order_by("price").select(["sku"]).limit(1).get()
        assert rows == [{"sku": "CB-01"}]

    def test_negative_limit_or_offset(self, catalog):
        with pytest.raises(QueryError):
            catalog.query("Products").limit(-1)
        with pytest.raises(QueryError):
            catalog.query("Products").offset(-1)

    def test_builder_is_chainable_and_mutable(self, catalog):
        q = QueryBuilder(catalog.repository("Products"))
        assert q.where_equals("active", True) is q
        assert q.count() == 4


class TestTerminals:
    def test_first_and_exists(self, catalog):
        assert catalog.query("Products").order_by("price", "desc").first()["sku"] == "MN-27"
        assert catalog.query("Products").where_equals("sku", "none").first() is None
        assert catalog.query("Products").where_equals("sku", "KB-01").exists() is True

    def test_count_ignores_and_restores_limit_offset(self, catalog):
        q = catalog.query("Products").order_by("price").offset(1).limit(2)
        assert q.count() == 5
        assert len(q.get()) == 2

    def test_paginate(self, catalog):
        page = catalog.query("Products").order_by("price").paginate(page=2, page_size=2)
        assert _skus(page.data) == ["KB-01", "HD-01"]
        assert page.pagination.total_count == 5
        assert page.pagination.total_pages == 3
        assert page.pagination.has_next_page is True
        assert page.pagination.has_prev_page is True

    def test_paginate_past_end(self, catalog):
        page = catalog.query("Products").paginate(page=9, page_size=2)
        assert page.data == []
        assert page.pagination.has_next_page is False

    def test_paginate_empty_table(self, memory_db):
        page = memory_db.query("Orders").paginate()
        assert page.pagination.total_count == 0
        assert page.pagination.total_pages == 0
        assert page.pagination.has_prev_page is False

    @pytest.mark.parametrize(("page", "size"), [(0, 10), (1, 0)])
    def test_paginate_invalid(self, catalog, page, size):
        with pytest.raises(QueryError):
            catalog.query("Products").paginate(page=page, page_size=size)

    def test_paginate_large_filtered_set(self, memory_db):
        customer = memory_db.repository("Customers").create(
            {"name": "Bulk Buyer", "email": "bulk@example.com"}
        )
        orders = memory_db.repository("Orders")
        for n in range(250):
            orders.create(
                {
                    "customer_id": customer["id"],
                    "status": "pending" if n % 5 else "shipped",
                    "total_amount": n,
                }
            )

        page = (
            memory_db.query("Orders")
            .where_equals("status", "pending")
            .order_by("total_amount", "desc")
            .paginate(page=2, page_size=20)
        )
        assert page.pagination.total_count == 200
        assert page.pagination.total_pages == 10
        assert len(page.data) == 20
        assert page.data[0]["total_amount"] == 224

    @pytest.mark.parametrize("page_size", [1, 5, 7, 23, 50])
    def test_pages_cover_result_exactly_once(self, any_db, page_size):
        customer = any_db.repository("Customers").create(
            {"name": "Tie Breaker", "email": "tie@example.com"}
        )
        orders = any_db.repository("Orders")
        for n in range(23):
            orders.create({"customer_id": customer["id"], "total_amount": n % 3})

        query = any_db.query("Orders").order_by("total_amount", "desc")
        expected = [o["id"] for o in query.get()]

        first = query.paginate(page=1, page_size=page_size)
        collected = list(first.data)
        for page in range(2, first.pagination.total_pages + 1):
            collected.extend(query.paginate(page=page, page_size=page_size).data)

        assert first.pagination.total_pages == -(-23 // page_size)
        assert [o["id"] for o in collected] == expected
        assert len(set(expected)) == 23
