"""Service layer: multi-table business operations over the commerce schema."""

from sheetbase.services.orders import ALLOWED_TRANSITIONS, CustomerService, OrderService
from sheetbase.services.results import OperationResult, Saga, Step
from sheetbase.services.schema import COMMERCE_TABLES, ORDER_STATUSES

__all__ = [
    "ALLOWED_TRANSITIONS",
    "COMMERCE_TABLES",
    "ORDER_STATUSES",
    "CustomerService",
    "OperationResult",
    "OrderService",
    "Saga",
    "Step",
]
