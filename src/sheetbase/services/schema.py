"""Commerce example schema: customers, products, orders and their line items."""

from __future__ import annotations

from sheetbase.core.types import TableSchema

ORDER_STATUSES = ["pending", "processing", "shipped", "delivered", "cancelled"]
CUSTOMER_STATUSES = ["active", "inactive"]

CUSTOMERS = TableSchema.model_validate(
    {
        "name": "Customers",
        "primary_key": "id",
        "description": "People and companies that place orders",
        "fields": [
            {"name": "id", "type": "string", "auto_generate": True},
            {"name": "name", "type": "string", "required": True, "min_length": 2, "max_length": 100},
            {"name": "email", "type": "email", "required": True, "unique": True},
            {"name": "phone", "type": "string", "pattern": r"\+?[0-9 ()-]{6,20}"},
            {"name": "status", "type": "enum", "values": CUSTOMER_STATUSES, "default": "active"},
            {"name": "credit_limit", "type": "number", "min": 0, "default": 0},
            {"name": "created_at", "type": "timestamp", "auto_generate": True},
            {"name": "updated_at", "type": "timestamp", "auto_update": True},
        ],
        "indexes": [{"fields": ["email"], "unique": True}],
    }
)

PRODUCTS = TableSchema.model_validate(
    {
        "name": "Products",
        "primary_key": "id",
        "fields": [
            {"name": "id", "type": "string", "auto_generate": True},
            {"name": "sku", "type": "string", "required": True, "unique": True, "pattern": r"[A-Z0-9-]{3,20}"},
            {"name": "name", "type": "string", "required": True, "max_length": 200},
            {"name": "price", "type": "number", "required": True, "min": 0},
            {"name": "active", "type": "boolean", "default": True},
            {"name": "created_at", "type": "timestamp", "auto_generate": True},
        ],
    }
)

ORDERS = TableSchema.model_validate(
    {
        "name": "Orders",
        "primary_key": "id",
        "fields": [
            {"name": "id", "type": "string", "auto_generate": True},
            {
                "name": "customer_id",
                "type": "string",
                "required": True,
                "foreign_key": {"table": "Customers", "field": "id", "on_delete": "RESTRICT"},
            },
            {"name": "order_date", "type": "date", "default": "TODAY"},
            {"name": "status", "type": "enum", "values": ORDER_STATUSES, "default": "pending"},
            {"name": "total_amount", "type": "number", "min": 0, "computed": True},
            {"name": "notes", "type": "text", "max_length": 1000},
            {"name": "created_at", "type": "timestamp", "auto_generate": True},
            {"name": "updated_at", "type": "timestamp", "auto_update": True},
        ],
        "indexes": [{"fields": ["customer_id"]}, {"fields": ["status"]}],
    }
)

ORDER_ITEMS = TableSchema.model_validate(
    {
        "name": "OrderItems",
        "primary_key": "id",
        "fields": [
            {"name": "id", "type": "string", "auto_generate": True},
            {
                "name": "order_id",
                "type": "string",
                "required": True,
                "foreign_key": {"table": "Orders", "field": "id", "on_delete": "CASCADE"},
            },
            {
                "name": "product_id",
                "type": "string",
                "required": True,
                "foreign_key": {"table": "Products", "field": "id", "on_delete": "RESTRICT"},
            },
            {"name": "quantity", "type": "number", "required": True, "min": 1},
            {"name": "unit_price", "type": "number", "required": True, "min": 0},
            {"name": "line_total", "type": "number", "min": 0, "computed": True},
        ],
        "indexes": [{"fields": ["order_id", "product_id"], "unique": True}],
    }
)

COMMERCE_TABLES: list[TableSchema] = [CUSTOMERS, PRODUCTS, ORDERS, ORDER_ITEMS]
