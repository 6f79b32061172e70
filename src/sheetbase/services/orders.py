"""Order and customer services over the commerce schema.

Services compose several repositories. Every precondition is checked
before the first write; once writing starts, a failure triggers
compensating writes for the steps already committed (see ``Saga``).
Nothing here is atomic: a compensation can itself fail, and the
returned ``OperationResult`` says so.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from sheetbase.data.index_cache import index_key
from sheetbase.exceptions import (
    BusinessRuleError,
    InvalidStatusTransitionError,
    SheetbaseError,
    ValidationError,
)
from sheetbase.services.results import OperationResult, Saga
from sheetbase.services.schema import ORDER_STATUSES
from sheetbase.validation.validator import is_missing

if TYPE_CHECKING:
    from sheetbase.core.engine import Sheetbase
    from sheetbase.data.repository import Record, Repository

logger = logging.getLogger(__name__)

CUSTOMERS = "Customers"
PRODUCTS = "Products"
ORDERS = "Orders"
ORDER_ITEMS = "OrderItems"

# status -> statuses it may move to
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"processing", "shipped", "delivered", "cancelled"},
    "processing": {"pending", "shipped", "delivered", "cancelled"},
    "shipped": {"processing", "delivered", "cancelled"},
    "delivered": {"shipped"},
    "cancelled": set(),
}


def _money(value: float) -> float:
    return round(float(value), 2)


class OrderService:
    """Order placement and lifecycle.

    Example:
        service = OrderService(db)
        result = service.create_order(
            customer_id,
            [{"product_id": widget_id, "quantity": 2}],
            notes="Leave at the door",
        )
        if result.ok:
            order = result.value["order"]
    """

    def __init__(self, db: Sheetbase) -> None:
        self._db = db

    @property
    def customers(self) -> Repository:
        return self._db.repository(CUSTOMERS)

    @property
    def products(self) -> Repository:
        return self._db.repository(PRODUCTS)

    @property
    def orders(self) -> Repository:
        return self._db.repository(ORDERS)

    @property
    def order_items(self) -> Repository:
        return self._db.repository(ORDER_ITEMS)

    # === Preconditions ===

    def _check_customer(self, customer_id: Any) -> Record:
        customer = self.customers.find_by_id(customer_id)
        if customer is None:
            raise BusinessRuleError(
                f"Customer '{customer_id}' does not exist", {"customer_id": customer_id}
            )
        if customer.get("status") == "inactive":
            raise BusinessRuleError(
                f"Customer '{customer_id}' is inactive and cannot place orders",
                {"customer_id": customer_id, "status": "inactive"},
            )
        return customer

    def _prepare_items(self, items: list[Mapping[str, Any]]) -> list[Record]:
        """Resolve products and validate every line, collecting all problems."""
        errors: list[str] = []
        lines: list[Record] = []
        validator = self._db.validator
        seen: dict[Any, int] = {}

        for position, item in enumerate(items):
            product_id = item.get("product_id")
            product = None if is_missing(product_id) else self.products.find_by_id(product_id)
            if product is None:
                errors.append(f"Item {position}: product {product_id!r} does not exist")
                continue
            if product.get("active") is False:
                errors.append(f"Item {position}: product {product_id!r} is not active")
                continue
            first = seen.setdefault(index_key(product_id), position)
            if first != position:
                errors.append(
                    f"Item {position}: duplicate product {product_id!r} (already on item {first})"
                )
                continue

            unit_price = item.get("unit_price")
            candidate = {
                "product_id": product_id,
                "quantity": item.get("quantity"),
                "unit_price": product.get("price") if is_missing(unit_price) else unit_price,
            }
            try:
                line = validator.validate(ORDER_ITEMS, candidate, partial=True)
            except ValidationError as e:
                errors.extend(f"Item {position}: {message}" for message in e.errors)
                continue
            if is_missing(line.get("quantity")):
                errors.append(f"Item {position}: Field 'quantity' is required")
                continue
            if is_missing(line.get("unit_price")):
                errors.append(f"Item {position}: product {product_id!r} has no price")
                continue

            line["line_total"] = _money(line["quantity"] * line["unit_price"])
            lines.append(line)

        if errors:
            raise ValidationError(ORDER_ITEMS, errors)
        return lines

    # === Commands ===

    def create_order(
        self,
        customer_id: Any,
        items: Iterable[Mapping[str, Any]],
        notes: str | None = None,
    ) -> OperationResult[dict[str, Any]]:
        """Place an order with its line items.

        Preconditions (checked before any write): the customer exists and
        is active, there is at least one item, every product exists and is
        active and appears on one line only, every line is valid, and the order
        total stays within the customer's credit limit when that limit is above zero.

        Writes, in order: the order row, one row per item, then the order
        total. If a write fails, committed rows are removed newest first.

        Args:
            customer_id: ID of the ordering customer
            items: Mappings with ``product_id``, ``quantity`` and optionally
                   ``unit_price`` (defaults to the product price)
            notes: Free text stored on the order

        Returns:
            Result whose value is ``{"order": ..., "items": [...]}``
        """
        saga = Saga("create_order")
        items = list(items)
        try:
            customer = self._check_customer(customer_id)
            if not items:
                raise BusinessRuleError(
                    "An order needs at least one item", {"customer_id": customer_id}
                )
            lines = self._prepare_items(items)
            total = _money(sum(line["line_total"] for line in lines))
            credit_limit = customer.get("credit_limit") or 0
            if credit_limit > 0 and total > credit_limit:
                raise BusinessRuleError(
                    f"Order total {total:.2f} exceeds credit limit {credit_limit:.2f} "
                    f"for customer '{customer_id}'",
                    {"customer_id": customer_id, "order_total": total, "credit_limit": credit_limit},
                )
        except SheetbaseError as e:
            return saga.reject(e)

        orders, order_items = self.orders, self.order_items
        try:
            order = orders.create(
                {"customer_id": customer_id, "status": "pending", "notes": notes, "total_amount": 0}
            )
            order_id = order[orders.primary_key]
            saga.record("create", ORDERS, order_id, lambda: orders.delete(order_id))

            created_items: list[Record] = []
            for line in lines:
                created = order_items.create({**line, "order_id": order_id})
                item_id = created[order_items.primary_key]
                saga.record(
                    "create",
                    ORDER_ITEMS,
                    item_id,
                    lambda item_id=item_id: order_items.delete(item_id),
                )
                created_items.append(created)

            order = orders.update(order_id, {"total_amount": total})
            saga.record(
                "update",
                ORDERS,
                order_id,
                lambda: orders.update(order_id, {"total_amount": 0}),
            )
        except SheetbaseError as e:
            return saga.fail(e)

        logger.info(
            f"Created order {order_id!r} for customer {customer_id!r}: "
            f"{len(created_items)} item(s), total {total:.2f}"
        )
        return saga.succeed({"order": order, "items": created_items})

    def update_status(self, order_id: Any, status: str) -> OperationResult[Record]:
        """Move an order to a new status.

        Nothing leaves ``cancelled`` and ``delivered`` cannot become
        ``cancelled``. Setting the current status again is a no-op.
        """
        saga = Saga("update_status")
        orders = self.orders
        try:
            if status not in ORDER_STATUSES:
                raise ValidationError(
                    ORDERS,
                    [f"Field 'status' must be one of [{', '.join(ORDER_STATUSES)}] (got {status!r})"],
                )
            order = orders.find_by_id(order_id)
            if order is None:
                raise BusinessRuleError(f"Order '{order_id}' does not exist", {"order_id": order_id})
            current = order.get("status") or "pending"
            if current == status:
                return saga.succeed(order)
            if status not in ALLOWED_TRANSITIONS.get(current, set()):
                raise InvalidStatusTransitionError(ORDERS, order_id, current, status)
        except SheetbaseError as e:
            return saga.reject(e)

        try:
            updated = orders.update(order_id, {"status": status})
            saga.record("update", ORDERS, order_id, lambda: orders.update(order_id, {"status": current}))
        except SheetbaseError as e:
            return saga.fail(e)

        logger.info(f"Order {order_id!r}: {current} -> {status}")
        return saga.succeed(updated)

    def cancel_order(self, order_id: Any) -> OperationResult[Record]:
        return self.update_status(order_id, "cancelled")

    # === Queries ===

    def get_order(self, order_id: Any) -> dict[str, Any] | None:
        """Order with its items, or None."""
        order = self.orders.find_by_id(order_id)
        if order is None:
            return None
        return {"order": order, "items": self.items_for_order(order_id)}

    def items_for_order(self, order_id: Any) -> list[Record]:
        return self.order_items.find_by("order_id", order_id)

    def orders_for_customer(self, customer_id: Any, status: str | None = None) -> list[Record]:
        """Orders of a customer, oldest first, optionally narrowed to one status."""
        query = self._db.query(ORDERS).where_equals("customer_id", customer_id)
        if status is not None:
            query.where_equals("status", status)
        return query.order_by("created_at").get()


class CustomerService:
    """Customer registration and reporting."""

    def __init__(self, db: Sheetbase) -> None:
        self._db = db

    def register(self, data: Mapping[str, Any]) -> OperationResult[Record]:
        """Create a customer; validation and duplicate emails come back as a failed result."""
        saga = Saga("register_customer")
        customers = self._db.repository(CUSTOMERS)
        try:
            customer = customers.create(data)
        except SheetbaseError as e:
            return saga.reject(e)

        customer_id = customer[customers.primary_key]
        saga.record("create", CUSTOMERS, customer_id, lambda: customers.delete(customer_id))
        logger.info(f"Registered customer {customer_id!r} <{customer.get('email')}>")
        return saga.succeed(customer)

    def summary(self, customer_id: Any) -> dict[str, Any] | None:
        """Order statistics for a customer, or None if the customer doesn't exist.

        ``lifetime_total`` sums the totals of every order that isn't cancelled.
        """
        customer = self._db.repository(CUSTOMERS).find_by_id(customer_id)
        if customer is None:
            return None

        orders = self._db.repository(ORDERS).find_by("customer_id", customer_id)
        by_status: dict[str, int] = {}
        lifetime_total = 0.0
        for order in orders:
            status = order.get("status") or "pending"
            by_status[status] = by_status.get(status, 0) + 1
            if status != "cancelled":
                lifetime_total += order.get("total_amount") or 0

        return {
            "customer": customer,
            "order_count": len(orders),
            "orders_by_status": by_status,
            "lifetime_total": _money(lifetime_total),
        }
