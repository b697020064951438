"""Sales order submission and maintenance.

submit_order runs as one unit of work: validation, the stock check, the
order/items/payment inserts, the stock decrement and the customer
aggregate refresh either all land or none of them do.
"""

import logging
import math
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import NotFoundError, ValidationError
from backoffice.models.customer import Customer
from backoffice.models.inventory import Material, Product
from backoffice.models.order import ITEM_TYPES, ORDER_STATUSES, PAYMENT_METHODS, Order, OrderItem
from backoffice.repositories.order_repository import (
    OrderItemRepository,
    OrderRepository,
    PaymentRepository,
)
from backoffice.services.aggregates import AggregateService
from backoffice.services.calculators import (
    DraftItem,
    OrderSummary,
    calculate_item_totals,
    calculate_order_summary,
    derive_order_status,
    parse_amount,
)
from backoffice.services.feasibility import FeasibilityChecker
from backoffice.services.inventory_ledger import InventoryLedger

logger = logging.getLogger(__name__)

EDITABLE_ORDER_FIELDS = ("order_date", "total_amount", "total_cost", "paid_amount", "status", "notes")


def validate_items(items: Iterable[DraftItem]) -> list[DraftItem]:
    """Reject draft items that can never form a valid order."""
    items = list(items)
    if not items:
        raise ValidationError("Order must contain at least one item")

    for index, item in enumerate(items, start=1):
        if item.item_type not in ITEM_TYPES:
            raise ValidationError(f"Item {index}: unknown item type '{item.item_type}'")
        if item.item_type == "product" and item.product_id is None:
            raise ValidationError(f"Item {index}: product_id is required for a product item")
        if item.item_type == "material" and item.material_id is None:
            raise ValidationError(f"Item {index}: material_id is required for a material item")
        for name in ("quantity", "unit_price", "unit_cost", "discount"):
            value = getattr(item, name)
            if value is not None and not math.isfinite(value):
                raise ValidationError(f"Item {index}: {name} must be a finite number")
        if item.quantity is None or item.quantity <= 0:
            raise ValidationError(f"Item {index}: quantity must be greater than 0")
        if item.unit_price is None or item.unit_price < 0:
            raise ValidationError(f"Item {index}: unit price cannot be negative")
    return items


def order_item_row(item: OrderItem) -> dict[str, Any]:
    """Flatten an order line with the name and unit of what was sold."""
    source = item.product if item.item_type == "product" else item.material
    return {
        "id": item.id,
        "item_type": item.item_type,
        "product_id": item.product_id,
        "material_id": item.material_id,
        "item_name": source.name if source is not None else None,
        "unit": source.unit if source is not None else None,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "unit_cost": item.unit_cost,
        "discount": item.discount,
        "total_price": item.total_price,
        "total_cost": item.total_cost,
        "profit": item.profit,
    }


class OrderService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.orders = OrderRepository(session)
        self.items = OrderItemRepository(session)
        self.payments = PaymentRepository(session)
        self.aggregates = AggregateService(session)

    def preview(self, items: list[DraftItem], payment_amount: Any) -> OrderSummary:
        """Totals shown while an order is being composed."""
        return calculate_order_summary(items, payment_amount)

    async def _ensure_references(self, customer_id: int, items: list[DraftItem]) -> None:
        if await self.session.get(Customer, customer_id) is None:
            raise NotFoundError(f"Customer not found: {customer_id}")

        product_ids = {i.product_id for i in items if i.item_type == "product"}
        material_ids = {i.material_id for i in items if i.item_type == "material"}
        if product_ids:
            found = set(
                (await self.session.execute(select(Product.id).where(Product.id.in_(product_ids))))
                .scalars()
                .all()
            )
            missing = product_ids - found
            if missing:
                raise NotFoundError(f"Product not found: {min(missing)}")
        if material_ids:
            found = set(
                (await self.session.execute(select(Material.id).where(Material.id.in_(material_ids))))
                .scalars()
                .all()
            )
            missing = material_ids - found
            if missing:
                raise NotFoundError(f"Material not found: {min(missing)}")

    async def submit_order(
        self,
        customer_id: int,
        items: list[DraftItem],
        payment_amount: Any = None,
        notes: str | None = None,
        payment_method: str = "cash",
    ) -> Order:
        """Create an order, its lines and its first payment, and consume stock.

        Args:
            customer_id: Buyer of the order
            items: Draft lines, products and/or raw materials
            payment_amount: Amount paid now; empty or non-numeric means 0
            notes: Free-text notes stored on the order and the payment
            payment_method: cash, transfer or card

        Returns:
            The committed order with refreshed paid/debt/status

        Raises:
            ValidationError: malformed input
            NotFoundError: unknown customer, product or material
            InsufficientStockError: stock cannot cover the order
        """
        try:
            items = validate_items(items)
            if payment_method not in PAYMENT_METHODS:
                raise ValidationError(f"Unknown payment method '{payment_method}'")
            paid = parse_amount(payment_amount)
            if paid < 0:
                raise ValidationError("Payment amount cannot be negative")

            await self._ensure_references(customer_id, items)
            requirements = await FeasibilityChecker(self.session).check(items)

            summary = calculate_order_summary(items, paid)
            status = derive_order_status(summary.total_amount, paid)

            order = await self.orders.create(
                customer_id=customer_id,
                total_amount=summary.total_amount,
                total_cost=summary.total_cost,
                paid_amount=paid,
                status=status,
                notes=notes,
            )
            for item in items:
                totals = calculate_item_totals(item)
                await self.items.create(
                    order.id,
                    item_type=item.item_type,
                    product_id=item.product_id if item.item_type == "product" else None,
                    material_id=item.material_id if item.item_type == "material" else None,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    unit_cost=item.unit_cost or 0.0,
                    discount=item.discount or 0.0,
                    total_price=totals.total_price,
                    total_cost=totals.total_cost,
                    profit=totals.profit,
                )
            if paid > 0:
                await self.payments.create(order.id, paid, payment_method, notes)

            await InventoryLedger(self.session).consume_all(requirements)
            await self.aggregates.refresh_order(order)
            await self.aggregates.refresh_customer(customer_id)
            await self.session.commit()
        except ValueError:
            await self.session.rollback()
            raise
        except Exception:
            logger.exception(f"Failed to submit order for customer {customer_id}")
            await self.session.rollback()
            raise

        logger.info(
            f"Order {order.id} submitted for customer {customer_id}: "
            f"total={order.total_amount:g} paid={order.paid_amount:g} status={order.status}"
        )
        return order

    async def get_order(self, order_id: int) -> Order:
        order = await self.orders.get_detail(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")
        return order

    async def get_order_detail(self, order_id: int) -> dict[str, Any]:
        """Order header with customer, named items and payments newest first."""
        order = await self.get_order(order_id)
        payments = sorted(order.payments, key=lambda p: (p.payment_date, p.id), reverse=True)
        return {
            "order": order,
            "customer": order.customer,
            "items": [order_item_row(item) for item in order.items],
            "payments": payments,
        }

    async def update_order(self, order_id: int, **fields) -> Order:
        """Edit header fields of an order and refresh its customer's figures."""
        unknown = set(fields) - set(EDITABLE_ORDER_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit order fields: {', '.join(sorted(unknown))}")
        status = fields.get("status")
        if status is not None and status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status '{status}'")

        order = await self.orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")

        edited = ", ".join(sorted(fields))
        paid_amount = fields.pop("paid_amount", None)
        try:
            for name, value in fields.items():
                if value is not None:
                    setattr(order, name, value)
            # paid_amount is the sum of payments; an edit becomes a correcting payment
            if paid_amount is not None and paid_amount != order.paid_amount:
                await self.payments.create(
                    order.id, paid_amount - order.paid_amount, notes="Paid amount corrected by hand"
                )
            await self.aggregates.refresh_order(order)
            if status is not None:
                order.status = status
            order.updated_at = datetime.utcnow()
            await self.aggregates.refresh_customer(order.customer_id)
            await self.session.commit()
        except Exception:
            logger.exception(f"Failed to update order {order_id}")
            await self.session.rollback()
            raise

        logger.info(f"Order {order_id} updated: {edited}")
        return order

    async def delete_order(self, order_id: int) -> None:
        """Delete an order with its items and payments."""
        order = await self.orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")
        customer_id = order.customer_id

        try:
            await self.orders.delete(order)
            await self.aggregates.refresh_customer(customer_id)
            await self.session.commit()
        except Exception:
            logger.exception(f"Failed to delete order {order_id}")
            await self.session.rollback()
            raise
        logger.info(f"Order {order_id} deleted")

    async def record_payment(
        self,
        order_id: int,
        amount: float,
        payment_method: str = "cash",
        notes: str | None = None,
    ) -> Order:
        """Add a payment to an order and refresh order and customer figures."""
        if amount is None or amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Unknown payment method '{payment_method}'")

        order = await self.orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}")

        try:
            await self.payments.create(order.id, amount, payment_method, notes)
            await self.aggregates.refresh_order(order)
            await self.aggregates.refresh_customer(order.customer_id)
            await self.session.commit()
        except Exception:
            logger.exception(f"Failed to record payment for order {order_id}")
            await self.session.rollback()
            raise

        logger.info(f"Payment of {amount:g} recorded for order {order_id}, status={order.status}")
        return order
