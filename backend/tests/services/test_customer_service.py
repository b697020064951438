"""Tests for customer management and debt adjustments."""

import pytest
from sqlalchemy import func, select

from backoffice.core.exceptions import NotFoundError, ValidationError
from backoffice.models import DebtAdjustment, Order
from backoffice.services.calculators import DraftItem
from backoffice.services.customer_service import CustomerService
from backoffice.services.order_service import OrderService
from tests.factories import add_customer, add_material


async def place_order(session, customer, material, quantity, unit_price, paid=0):
    return await OrderService(session).submit_order(
        customer.id,
        [
            DraftItem(
                item_type="material",
                material_id=material.id,
                quantity=quantity,
                unit_price=unit_price,
                unit_cost=1,
            )
        ],
        payment_amount=paid,
    )


class TestCustomerService:
    @pytest.mark.asyncio
    async def test_create_and_update(self, test_session):
        service = CustomerService(test_session)

        customer = await service.create_customer("  Carol ", phone=" 0912 ", address="")

        assert customer.name == "Carol"
        assert customer.phone == "0912"
        assert customer.address is None
        assert customer.outstanding_debt == 0

        updated = await service.update_customer(customer.id, address="12 Main St")
        assert updated.address == "12 Main St"
        with pytest.raises(ValidationError):
            await service.create_customer(" ")
        with pytest.raises(NotFoundError):
            await service.update_customer(999, name="Nobody")

    @pytest.mark.asyncio
    async def test_debt_overview_sorted_and_searchable(self, test_session):
        wood = await add_material(test_session, "Wood", 100)
        alice = await add_customer(test_session, "Alice", "0901")
        bob = await add_customer(test_session, "Bob", "0902")
        await add_customer(test_session, "Chloe", "0777")
        await place_order(test_session, alice, wood, 1, 50, paid=50)
        await place_order(test_session, bob, wood, 2, 40)
        await place_order(test_session, bob, wood, 1, 10, paid=10)

        rows = await CustomerService(test_session).debt_overview()

        assert [r["name"] for r in rows] == ["Bob", "Alice", "Chloe"]
        assert rows[0]["outstanding_debt"] == 80
        assert rows[0]["total_orders"] == 2
        assert rows[0]["unpaid_orders"] == 1
        assert rows[2]["total_orders"] == 0

        assert [r["name"] for r in await CustomerService(test_session).debt_overview("ali")] == ["Alice"]
        assert [r["name"] for r in await CustomerService(test_session).debt_overview("0777")] == ["Chloe"]

    @pytest.mark.asyncio
    async def test_adjust_debt(self, test_session):
        wood = await add_material(test_session, "Wood", 100)
        customer = await add_customer(test_session)
        await place_order(test_session, customer, wood, 10, 10)
        service = CustomerService(test_session)

        adjustment = await service.adjust_debt(customer.id, 60, "discount agreed")

        assert adjustment.adjustment_amount == -40
        assert adjustment.created_by == "admin"
        assert (await service.get_customer(customer.id)).outstanding_debt == 60

        assert await service.adjust_debt(customer.id, 60, "no change") is None
        count = (await test_session.execute(select(func.count(DebtAdjustment.id)))).scalar_one()
        assert count == 1

        with pytest.raises(ValidationError):
            await service.adjust_debt(customer.id, 0, "  ")

    @pytest.mark.asyncio
    async def test_payment_after_adjustment_keeps_adjustment(self, test_session):
        wood = await add_material(test_session, "Wood", 100)
        customer = await add_customer(test_session)
        order = await place_order(test_session, customer, wood, 10, 10)
        service = CustomerService(test_session)
        await service.adjust_debt(customer.id, 90, "goodwill")

        await OrderService(test_session).record_payment(order.id, 50)

        assert (await service.get_customer(customer.id)).outstanding_debt == 40

    @pytest.mark.asyncio
    async def test_detail_and_delete(self, test_session):
        wood = await add_material(test_session, "Wood", 100)
        customer = await add_customer(test_session)
        await place_order(test_session, customer, wood, 1, 10)
        await place_order(test_session, customer, wood, 1, 20)
        service = CustomerService(test_session)

        detail = await service.get_customer_detail(customer.id)
        assert [o.total_amount for o in detail["orders"]] == [20, 10]

        await service.delete_customer(customer.id)

        orders = (await test_session.execute(select(func.count(Order.id)))).scalar_one()
        assert orders == 0
        with pytest.raises(NotFoundError):
            await service.get_customer(customer.id)
