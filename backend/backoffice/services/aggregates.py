"""Derived order and customer figures.

Order paid/debt/profit/status and customer revenue/profit/debt are never
entered by hand; they are recomputed here from payments, orders and debt
adjustments whenever one of those changes. Callers commit.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import NotFoundError
from backoffice.models.customer import Customer, DebtAdjustment
from backoffice.models.order import Order, Payment
from backoffice.services.calculators import derive_order_status

logger = logging.getLogger(__name__)


class AggregateService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def refresh_order(self, order: Order) -> Order:
        """Recompute paid amount, debt, profit and status of an order from its payments."""
        await self.session.flush()
        paid = (
            await self.session.execute(
                select(func.coalesce(func.sum(Payment.amount), 0.0)).where(
                    Payment.order_id == order.id
                )
            )
        ).scalar_one()

        total_amount = order.total_amount or 0.0
        order.paid_amount = paid
        order.debt_amount = total_amount - paid
        order.profit = total_amount - (order.total_cost or 0.0)
        order.status = derive_order_status(total_amount, paid)
        return order

    async def refresh_customer(self, customer_id: int) -> Customer:
        """Recompute revenue, profit and outstanding debt of a customer."""
        await self.session.flush()
        customer = await self.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer not found: {customer_id}")

        totals = (
            await self.session.execute(
                select(
                    func.coalesce(func.sum(Order.total_amount), 0.0),
                    func.coalesce(func.sum(Order.profit), 0.0),
                    func.coalesce(func.sum(Order.debt_amount), 0.0),
                ).where(Order.customer_id == customer_id)
            )
        ).one()
        adjustments = (
            await self.session.execute(
                select(func.coalesce(func.sum(DebtAdjustment.adjustment_amount), 0.0)).where(
                    DebtAdjustment.customer_id == customer_id
                )
            )
        ).scalar_one()

        customer.total_revenue = totals[0]
        customer.total_profit = totals[1]
        customer.outstanding_debt = totals[2] + adjustments
        logger.debug(
            f"Customer {customer_id} aggregates: revenue={customer.total_revenue:g} "
            f"debt={customer.outstanding_debt:g}"
        )
        return customer
