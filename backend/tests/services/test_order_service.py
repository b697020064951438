"""Tests for order submission and maintenance."""

import pytest
from sqlalchemy import func, select

from backoffice.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from backoffice.models import Customer, Material, Order, OrderItem, Payment
from backoffice.services.calculators import DraftItem
from backoffice.services.inventory_ledger import InventoryLedger
from backoffice.services.order_service import OrderService
from tests.factories import add_customer, add_material, add_product


async def count(session, model) -> int:
    return (await session.execute(select(func.count(model.id)))).scalar_one()


async def stock_of(session, material_id) -> float:
    return (
        await session.execute(select(Material.current_stock).where(Material.id == material_id))
    ).scalar_one()


async def debt_of(session, customer_id) -> float:
    return (
        await session.execute(select(Customer.outstanding_debt).where(Customer.id == customer_id))
    ).scalar_one()


def material_line(material, quantity, unit_price=10.0, unit_cost=6.0, discount=0.0):
    return DraftItem(
        item_type="material",
        material_id=material.id,
        quantity=quantity,
        unit_price=unit_price,
        unit_cost=unit_cost,
        discount=discount,
    )


def product_line(product, quantity, unit_price=100.0, unit_cost=40.0, discount=0.0):
    return DraftItem(
        item_type="product",
        product_id=product.id,
        quantity=quantity,
        unit_price=unit_price,
        unit_cost=unit_cost,
        discount=discount,
    )


class TestSubmitOrder:
    @pytest.mark.asyncio
    async def test_submit_with_partial_payment(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        chair = await add_product(test_session, "Chair", [(wood, 2)])

        order = await OrderService(test_session).submit_order(
            customer.id,
            [product_line(chair, 3, discount=20), material_line(wood, 1)],
            payment_amount="100",
            notes="first order",
        )

        assert order.total_amount == 290
        assert order.total_cost == 126
        assert order.paid_amount == 100
        assert order.debt_amount == 190
        assert order.profit == 164
        assert order.status == "partial_paid"

        assert await stock_of(test_session, wood.id) == 3
        assert await count(test_session, OrderItem) == 2
        assert await count(test_session, Payment) == 1

        assert customer.total_revenue == 290
        assert customer.total_profit == 164
        assert await debt_of(test_session, customer.id) == 190

    @pytest.mark.asyncio
    async def test_line_totals_are_stored(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)

        order = await OrderService(test_session).submit_order(
            customer.id, [material_line(wood, 4, unit_price=15, unit_cost=9, discount=5)]
        )

        item = (await test_session.execute(select(OrderItem).where(OrderItem.order_id == order.id))).scalar_one()
        assert item.total_price == 55
        assert item.total_cost == 36
        assert item.profit == 19

    @pytest.mark.asyncio
    async def test_unpaid_order_is_pending_without_payment_row(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)

        order = await OrderService(test_session).submit_order(
            customer.id, [material_line(wood, 2)], payment_amount=""
        )

        assert order.status == "pending"
        assert order.paid_amount == 0
        assert await count(test_session, Payment) == 0

    @pytest.mark.asyncio
    async def test_full_payment_completes_order(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)

        order = await OrderService(test_session).submit_order(
            customer.id, [material_line(wood, 2)], payment_amount=25, payment_method="transfer"
        )

        assert order.status == "completed"
        assert order.debt_amount == -5
        payment = (await test_session.execute(select(Payment))).scalar_one()
        assert payment.payment_method == "transfer"

    @pytest.mark.asyncio
    async def test_insufficient_stock_writes_nothing(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        chair = await add_product(test_session, "Chair", [(wood, 4)])
        customer_id, wood_id = customer.id, wood.id

        with pytest.raises(InsufficientStockError) as exc_info:
            await OrderService(test_session).submit_order(
                customer.id, [product_line(chair, 3)], payment_amount=50
            )

        assert "required 12, available 10" in str(exc_info.value)
        assert await count(test_session, Order) == 0
        assert await count(test_session, Payment) == 0
        assert await stock_of(test_session, wood_id) == 10
        assert await debt_of(test_session, customer_id) == 0

    @pytest.mark.asyncio
    async def test_requirements_of_several_items_are_summed(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        chair = await add_product(test_session, "Chair", [(wood, 2)])
        wood_id = wood.id

        with pytest.raises(InsufficientStockError):
            await OrderService(test_session).submit_order(
                customer.id, [product_line(chair, 3), material_line(wood, 5)]
            )

        assert await stock_of(test_session, wood_id) == 10

    @pytest.mark.asyncio
    async def test_failure_after_inserts_rolls_everything_back(self, test_session, monkeypatch):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        wood_id = wood.id

        async def broken_consume_all(self, requirements):
            raise RuntimeError("connection lost")

        monkeypatch.setattr(InventoryLedger, "consume_all", broken_consume_all)

        with pytest.raises(RuntimeError):
            await OrderService(test_session).submit_order(
                customer.id, [material_line(wood, 2)], payment_amount=5
            )

        assert await count(test_session, Order) == 0
        assert await count(test_session, OrderItem) == 0
        assert await count(test_session, Payment) == 0
        assert await stock_of(test_session, wood_id) == 10

    @pytest.mark.asyncio
    async def test_validation(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        service = OrderService(test_session)

        with pytest.raises(ValidationError):
            await service.submit_order(customer.id, [])
        with pytest.raises(ValidationError):
            await service.submit_order(customer.id, [material_line(wood, 0)])
        with pytest.raises(ValidationError):
            await service.submit_order(
                customer.id, [DraftItem(item_type="product", quantity=1, unit_price=1)]
            )
        with pytest.raises(ValidationError):
            await service.submit_order(customer.id, [material_line(wood, 1)], payment_method="barter")
        with pytest.raises(NotFoundError):
            await service.submit_order(999, [material_line(wood, 1)])

        assert await count(test_session, Order) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"quantity": float("nan")},
            {"quantity": float("inf")},
            {"unit_price": float("inf")},
            {"unit_cost": float("nan")},
            {"discount": float("-inf")},
        ],
    )
    async def test_non_finite_line_values_are_rejected(self, test_session, overrides):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        line = DraftItem(
            **{
                "item_type": "material",
                "material_id": wood.id,
                "quantity": 1,
                "unit_price": 10.0,
                "unit_cost": 6.0,
                **overrides,
            }
        )

        with pytest.raises(ValidationError, match="finite"):
            await OrderService(test_session).submit_order(customer.id, [line])

        assert await count(test_session, Order) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payment_amount", ["nan", "inf", "1e999"])
    async def test_non_finite_payment_counts_as_unpaid(self, test_session, payment_amount):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)

        order = await OrderService(test_session).submit_order(
            customer.id, [material_line(wood, 5)], payment_amount=payment_amount
        )

        assert order.paid_amount == 0
        assert order.status == "pending"
        assert await count(test_session, Payment) == 0


class TestOrderMaintenance:
    @pytest.mark.asyncio
    async def test_record_payment_completes_order(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        service = OrderService(test_session)
        order = await service.submit_order(customer.id, [material_line(wood, 5)], payment_amount=20)

        order = await service.record_payment(order.id, 30)

        assert order.paid_amount == 50
        assert order.debt_amount == 0
        assert order.status == "completed"
        assert await debt_of(test_session, customer.id) == 0

    @pytest.mark.asyncio
    async def test_record_payment_rejects_non_positive_amount(self, test_session):
        with pytest.raises(ValidationError):
            await OrderService(test_session).record_payment(1, 0)

    @pytest.mark.asyncio
    async def test_order_detail(self, test_session):
        customer = await add_customer(test_session, name="Bob")
        wood = await add_material(test_session, "Wood", 10)
        chair = await add_product(test_session, "Chair", [(wood, 1)])
        service = OrderService(test_session)
        order = await service.submit_order(
            customer.id, [product_line(chair, 1), material_line(wood, 1)], payment_amount=10
        )
        await service.record_payment(order.id, 20)

        detail = await service.get_order_detail(order.id)

        assert detail["customer"].name == "Bob"
        assert [(i["item_type"], i["item_name"], i["unit"]) for i in detail["items"]] == [
            ("product", "Chair", "pcs"),
            ("material", "Wood", "kg"),
        ]
        assert [p.amount for p in detail["payments"]] == [20, 10]

    @pytest.mark.asyncio
    async def test_update_order_refreshes_customer(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        service = OrderService(test_session)
        order = await service.submit_order(customer.id, [material_line(wood, 5)])

        order = await service.update_order(order.id, total_amount=80, notes="renegotiated")

        assert order.debt_amount == 80
        assert order.status == "pending"
        assert order.notes == "renegotiated"
        assert customer.total_revenue == 80
        assert await debt_of(test_session, customer.id) == 80

    @pytest.mark.asyncio
    async def test_paid_amount_edit_survives_next_payment(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        service = OrderService(test_session)
        order = await service.submit_order(customer.id, [material_line(wood, 10)])

        order = await service.update_order(order.id, paid_amount=50)

        assert order.paid_amount == 50
        assert order.status == "partial_paid"
        assert await debt_of(test_session, customer.id) == 50

        order = await service.record_payment(order.id, 10)

        assert order.paid_amount == 60
        assert order.debt_amount == 40
        assert order.status == "partial_paid"
        assert await count(test_session, Payment) == 2
        assert await debt_of(test_session, customer.id) == 40

    @pytest.mark.asyncio
    async def test_paid_amount_can_be_corrected_down(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        service = OrderService(test_session)
        order = await service.submit_order(customer.id, [material_line(wood, 10)], payment_amount=100)

        order = await service.update_order(order.id, paid_amount=30, status="completed")

        assert order.paid_amount == 30
        assert order.debt_amount == 70
        assert order.status == "completed"
        assert await debt_of(test_session, customer.id) == 70

    @pytest.mark.asyncio
    async def test_update_order_rejects_unknown_status(self, test_session):
        with pytest.raises(ValidationError):
            await OrderService(test_session).update_order(1, status="shipped")

    @pytest.mark.asyncio
    async def test_delete_order_cascades(self, test_session):
        customer = await add_customer(test_session)
        wood = await add_material(test_session, "Wood", 10)
        service = OrderService(test_session)
        order = await service.submit_order(customer.id, [material_line(wood, 5)], payment_amount=10)

        await service.delete_order(order.id)

        assert await count(test_session, Order) == 0
        assert await count(test_session, OrderItem) == 0
        assert await count(test_session, Payment) == 0
        assert await debt_of(test_session, customer.id) == 0
        with pytest.raises(NotFoundError):
            await service.get_order(order.id)
