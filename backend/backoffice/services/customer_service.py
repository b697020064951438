"""Customers, their orders and their outstanding debt."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import NotFoundError, ValidationError
from backoffice.models.customer import Customer, DebtAdjustment
from backoffice.repositories.customer_repository import CustomerRepository, DebtAdjustmentRepository
from backoffice.repositories.order_repository import OrderRepository
from backoffice.services.aggregates import AggregateService

logger = logging.getLogger(__name__)


class CustomerService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.customers = CustomerRepository(session)
        self.adjustments = DebtAdjustmentRepository(session)
        self.orders = OrderRepository(session)
        self.aggregates = AggregateService(session)

    async def debt_overview(self, search: str | None = None) -> list[dict[str, Any]]:
        """Customers with revenue, debt and order counts, highest debt first."""
        search = (search or "").strip() or None
        return await self.customers.list_debt_details(search)

    async def get_customer(self, customer_id: int) -> Customer:
        customer = await self.customers.get_by_id(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer not found: {customer_id}")
        return customer

    async def get_customer_detail(self, customer_id: int) -> dict[str, Any]:
        customer = await self.get_customer(customer_id)
        return {
            "customer": customer,
            "orders": await self.orders.list_by_customer(customer_id),
            "debt_adjustments": await self.adjustments.list_by_customer(customer_id),
        }

    async def create_customer(self, name: str, phone: str | None = None, address: str | None = None) -> Customer:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Customer name is required")
        customer = await self.customers.create(
            name=name,
            phone=(phone or "").strip() or None,
            address=(address or "").strip() or None,
        )
        await self.session.commit()
        logger.info(f"Created customer {customer.id} '{name}'")
        return customer

    async def update_customer(
        self,
        customer_id: int,
        name: str | None = None,
        phone: str | None = None,
        address: str | None = None,
    ) -> Customer:
        if name is not None and not name.strip():
            raise ValidationError("Customer name cannot be empty")
        customer = await self.customers.update(
            customer_id,
            name=name.strip() if name is not None else None,
            phone=phone,
            address=address,
        )
        if customer is None:
            raise NotFoundError(f"Customer not found: {customer_id}")
        await self.session.commit()
        logger.info(f"Updated customer {customer_id}")
        return customer

    async def delete_customer(self, customer_id: int) -> None:
        """Delete a customer; orders, items and payments go with it."""
        if not await self.customers.delete(customer_id):
            raise NotFoundError(f"Customer not found: {customer_id}")
        await self.session.commit()
        logger.info(f"Deleted customer {customer_id}")

    async def adjust_debt(
        self,
        customer_id: int,
        new_debt: float,
        reason: str,
        notes: str | None = None,
        created_by: str = "admin",
    ) -> DebtAdjustment | None:
        """Bring outstanding debt to a new figure through an adjustment row.

        Args:
            customer_id: Customer whose debt is corrected
            new_debt: Debt the customer should owe afterwards
            reason: Why the debt changes (required)
            notes: Optional free text
            created_by: Who made the change

        Returns:
            The adjustment, or None when the debt already had that value
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to adjust debt")
        if new_debt is None:
            raise ValidationError("New debt amount is required")

        await self.get_customer(customer_id)
        try:
            customer = await self.aggregates.refresh_customer(customer_id)
            difference = new_debt - customer.outstanding_debt
            adjustment = None
            if difference != 0:
                adjustment = await self.adjustments.create(
                    customer_id=customer_id,
                    adjustment_amount=difference,
                    reason=reason,
                    notes=notes,
                    created_by=created_by,
                )
                await self.aggregates.refresh_customer(customer_id)
            await self.session.commit()
        except Exception:
            logger.exception(f"Failed to adjust debt of customer {customer_id}")
            await self.session.rollback()
            raise

        if adjustment is not None:
            logger.info(f"Adjusted debt of customer {customer_id} by {difference:g} ({reason})")
        return adjustment
