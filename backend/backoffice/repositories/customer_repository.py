"""Repository classes for customers and debt adjustments."""

from typing import List, Optional
from sqlalchemy import select, func, or_, case
from sqlalchemy.ext.asyncio import AsyncSession
from backoffice.models.customer import Customer, DebtAdjustment
from backoffice.models.order import Order


class CustomerRepository:
    """Repository for Customer database operations.

    Writes are flushed, not committed: the calling service owns the
    transaction.
    """

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def create(
        self,
        name: str,
        phone: Optional[str] = None,
        address: Optional[str] = None
    ) -> Customer:
        """Create a new customer with zeroed aggregates.

        Args:
            name: Customer name
            phone: Phone number (optional)
            address: Postal address (optional)

        Returns:
            Created Customer instance
        """
        customer = Customer(
            name=name,
            phone=phone,
            address=address,
            total_revenue=0.0,
            total_profit=0.0,
            outstanding_debt=0.0,
        )
        self.session.add(customer)
        await self.session.flush()
        return customer

    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        result = await self.session.execute(
            select(Customer).where(Customer.id == customer_id)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> List[Customer]:
        result = await self.session.execute(select(Customer).order_by(Customer.name))
        return list(result.scalars().all())

    async def update(
        self,
        customer_id: int,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None
    ) -> Optional[Customer]:
        """Update contact details of a customer.

        Returns:
            Updated Customer or None if not found
        """
        customer = await self.get_by_id(customer_id)
        if customer is None:
            return None

        if name is not None:
            customer.name = name
        if phone is not None:
            customer.phone = phone
        if address is not None:
            customer.address = address

        await self.session.flush()
        return customer

    async def delete(self, customer_id: int) -> bool:
        """Delete a customer together with its orders.

        Returns:
            True if deleted, False if not found
        """
        customer = await self.get_by_id(customer_id)
        if customer:
            await self.session.delete(customer)
            await self.session.flush()
            return True
        return False

    async def list_debt_details(self, search: Optional[str] = None) -> List[dict]:
        """Customers with order counts, highest outstanding debt first.

        Args:
            search: Case-insensitive match on name, or substring of phone

        Returns:
            Rows shaped like the customer_debt_details view
        """
        total_orders = func.count(Order.id)
        unpaid_orders = func.coalesce(
            func.sum(case((Order.debt_amount > 0, 1), else_=0)), 0
        )
        query = (
            select(
                Customer.id,
                Customer.name,
                Customer.phone,
                Customer.total_revenue,
                Customer.total_profit,
                Customer.outstanding_debt,
                total_orders.label("total_orders"),
                unpaid_orders.label("unpaid_orders"),
            )
            .outerjoin(Order, Order.customer_id == Customer.id)
            .group_by(Customer.id)
            .order_by(Customer.outstanding_debt.desc(), Customer.name)
        )
        if search:
            query = query.where(
                or_(
                    Customer.name.ilike(f"%{search}%"),
                    Customer.phone.contains(search),
                )
            )
        result = await self.session.execute(query)
        return [dict(row._mapping) for row in result.all()]


class DebtAdjustmentRepository:
    """Repository for DebtAdjustment rows (append-only)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        customer_id: int,
        adjustment_amount: float,
        reason: str,
        notes: Optional[str] = None,
        created_by: str = "admin"
    ) -> DebtAdjustment:
        adjustment = DebtAdjustment(
            customer_id=customer_id,
            adjustment_amount=adjustment_amount,
            reason=reason,
            notes=notes,
            created_by=created_by,
        )
        self.session.add(adjustment)
        await self.session.flush()
        return adjustment

    async def list_by_customer(self, customer_id: int) -> List[DebtAdjustment]:
        result = await self.session.execute(
            select(DebtAdjustment)
            .where(DebtAdjustment.customer_id == customer_id)
            .order_by(DebtAdjustment.created_at.desc(), DebtAdjustment.id.desc())
        )
        return list(result.scalars().all())
