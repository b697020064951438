"""Repository layer for database operations.

Repositories flush but never commit; services own the transaction.
"""

from backoffice.repositories.customer_repository import (
    CustomerRepository,
    DebtAdjustmentRepository,
)
from backoffice.repositories.inventory_repository import (
    MaterialImportRepository,
    MaterialRepository,
    ProductRepository,
)
from backoffice.repositories.order_repository import (
    OrderItemRepository,
    OrderRepository,
    PaymentRepository,
)

__all__ = [
    "CustomerRepository",
    "DebtAdjustmentRepository",
    "MaterialImportRepository",
    "MaterialRepository",
    "ProductRepository",
    "OrderItemRepository",
    "OrderRepository",
    "PaymentRepository",
]
