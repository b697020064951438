"""Repository classes for orders, order items and payments."""

from datetime import datetime
from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from backoffice.models.order import Order, OrderItem, Payment


class OrderRepository:
    """Repository for Order database operations."""

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def create(
        self,
        customer_id: int,
        total_amount: float,
        total_cost: float,
        paid_amount: float,
        status: str,
        notes: Optional[str] = None,
        order_date: Optional[datetime] = None
    ) -> Order:
        """Insert an order header.

        debt_amount and profit are filled from the given amounts; they are
        refreshed again by AggregateService once payments exist.
        """
        order = Order(
            customer_id=customer_id,
            total_amount=total_amount,
            total_cost=total_cost,
            paid_amount=paid_amount,
            debt_amount=total_amount - paid_amount,
            profit=total_amount - total_cost,
            status=status,
            notes=notes,
            order_date=order_date or datetime.utcnow(),
        )
        self.session.add(order)
        await self.session.flush()
        return order

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        result = await self.session.execute(
            select(Order).where(Order.id == order_id)
        )
        return result.scalar_one_or_none()

    async def get_detail(self, order_id: int) -> Optional[Order]:
        """Order with customer, items (and their product/material) and payments loaded."""
        result = await self.session.execute(
            select(Order)
            .options(
                selectinload(Order.customer),
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.items).selectinload(OrderItem.material),
                selectinload(Order.payments),
            )
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_customer(self, customer_id: int) -> List[Order]:
        result = await self.session.execute(
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.order_date.desc(), Order.id.desc())
        )
        return list(result.scalars().all())

    async def list_recent(self, limit: int = 5) -> List[Order]:
        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.customer))
            .order_by(Order.order_date.desc(), Order.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_since(self, since: datetime) -> int:
        result = await self.session.execute(
            select(func.count(Order.id)).where(Order.order_date >= since)
        )
        return result.scalar_one()

    async def delete(self, order: Order) -> None:
        await self.session.delete(order)
        await self.session.flush()


class OrderItemRepository:
    """Repository for order lines."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, order_id: int, **values) -> OrderItem:
        item = OrderItem(order_id=order_id, **values)
        self.session.add(item)
        await self.session.flush()
        return item


class PaymentRepository:
    """Repository for payments (append-only)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        order_id: int,
        amount: float,
        payment_method: str = "cash",
        notes: Optional[str] = None
    ) -> Payment:
        payment = Payment(
            order_id=order_id,
            amount=amount,
            payment_method=payment_method,
            notes=notes,
            payment_date=datetime.utcnow(),
        )
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def list_by_order(self, order_id: int) -> List[Payment]:
        result = await self.session.execute(
            select(Payment)
            .where(Payment.order_id == order_id)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
        )
        return list(result.scalars().all())
