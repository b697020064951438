"""Dashboard figures and sales/stock reports."""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.config import settings
from backoffice.core.exceptions import ValidationError
from backoffice.models.customer import Customer
from backoffice.models.inventory import Material, MaterialImport, Product
from backoffice.models.order import Order, OrderItem
from backoffice.repositories.customer_repository import CustomerRepository
from backoffice.repositories.inventory_repository import MaterialRepository
from backoffice.repositories.order_repository import OrderRepository
from backoffice.services.material_service import start_of_today

logger = logging.getLogger(__name__)


def profit_margin(revenue: float, profit: float) -> float:
    """Profit as a percentage of revenue, rounded to one decimal; 0 without revenue."""
    if not revenue or revenue <= 0:
        return 0.0
    return round(profit / revenue * 100, 1)


def summarize_sales(lines: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Group sold lines per item, best revenue first.

    Each line needs item_id, item_name, unit, order_id, customer_id,
    quantity, total_price, total_cost and profit.
    """
    groups: dict[Any, dict[str, Any]] = {}
    orders: dict[Any, set] = defaultdict(set)
    customers: dict[Any, set] = defaultdict(set)
    for line in lines:
        key = line["item_id"]
        summary = groups.setdefault(
            key,
            {
                "item_id": key,
                "item_name": line["item_name"],
                "unit": line["unit"],
                "total_quantity_sold": 0.0,
                "total_revenue": 0.0,
                "total_cost": 0.0,
                "total_profit": 0.0,
            },
        )
        summary["total_quantity_sold"] += line["quantity"] or 0.0
        summary["total_revenue"] += line["total_price"] or 0.0
        summary["total_cost"] += line["total_cost"] or 0.0
        summary["total_profit"] += line["profit"] or 0.0
        orders[key].add(line["order_id"])
        customers[key].add(line["customer_id"])

    for key, summary in groups.items():
        quantity = summary["total_quantity_sold"]
        summary["total_orders"] = len(orders[key])
        summary["unique_customers"] = len(customers[key])
        summary["profit_margin"] = profit_margin(summary["total_revenue"], summary["total_profit"])
        summary["avg_unit_price"] = summary["total_revenue"] / quantity if quantity > 0 else 0.0
        summary["avg_cost_price"] = summary["total_cost"] / quantity if quantity > 0 else 0.0
    return sorted(groups.values(), key=lambda s: s["total_revenue"], reverse=True)


class ReportService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def system_overview(self) -> dict[str, Any]:
        async def scalar(query):
            return (await self.session.execute(query)).scalar_one()

        total_revenue = await scalar(select(func.coalesce(func.sum(Customer.total_revenue), 0.0)))
        total_profit = await scalar(select(func.coalesce(func.sum(Customer.total_profit), 0.0)))
        return {
            "total_customers": await scalar(select(func.count(Customer.id))),
            "total_orders": await scalar(select(func.count(Order.id))),
            "total_products": await scalar(select(func.count(Product.id))),
            "total_materials": await scalar(select(func.count(Material.id))),
            "total_revenue": total_revenue,
            "total_profit": total_profit,
            "total_debt": await scalar(select(func.coalesce(func.sum(Customer.outstanding_debt), 0.0))),
            "total_material_stock": await scalar(select(func.coalesce(func.sum(Material.current_stock), 0.0))),
            "profit_margin": profit_margin(total_revenue, total_profit),
        }

    async def dashboard(self) -> dict[str, Any]:
        """Overview plus the short lists shown on the home screen."""
        overview = await self.system_overview()
        top_customers = sorted(
            await CustomerRepository(self.session).list_debt_details(),
            key=lambda row: row["total_revenue"],
            reverse=True,
        )[:5]
        orders = OrderRepository(self.session)
        return {
            "overview": overview,
            "recent_orders": await orders.list_recent(5),
            "top_customers": top_customers,
            "low_stock_materials": await MaterialRepository(self.session).list_low_stock(
                settings.LOW_STOCK_THRESHOLD, limit=5
            ),
            "orders_today": await orders.count_since(start_of_today()),
        }

    async def _sold_lines(
        self,
        item_type: str,
        start: datetime | None = None,
        end: datetime | None = None,
        item_id: int | None = None,
    ) -> list[dict[str, Any]]:
        if start and end and start > end:
            raise ValidationError("Start date must not be after end date")

        query = (
            select(OrderItem)
            .join(Order, OrderItem.order_id == Order.id)
            .options(
                selectinload(OrderItem.order).selectinload(Order.customer),
                selectinload(OrderItem.product),
                selectinload(OrderItem.material),
            )
            .where(OrderItem.item_type == item_type)
            .order_by(Order.order_date.desc(), OrderItem.id)
        )
        if start is not None:
            query = query.where(Order.order_date >= start)
        if end is not None:
            query = query.where(Order.order_date <= end)
        if item_id is not None:
            column = OrderItem.product_id if item_type == "product" else OrderItem.material_id
            query = query.where(column == item_id)

        rows = []
        for item in (await self.session.execute(query)).scalars().all():
            source = item.product if item_type == "product" else item.material
            order = item.order
            rows.append(
                {
                    "order_id": order.id,
                    "order_date": order.order_date,
                    "customer_id": order.customer_id,
                    "customer_name": order.customer.name if order.customer else None,
                    "item_id": item.product_id if item_type == "product" else item.material_id,
                    "item_name": source.name if source else None,
                    "unit": source.unit if source else None,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "unit_cost": item.unit_cost,
                    "discount": item.discount,
                    "total_price": item.total_price,
                    "total_cost": item.total_cost,
                    "profit": item.profit,
                }
            )
        return rows

    async def product_sales_report(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        product_id: int | None = None,
    ) -> dict[str, Any]:
        details = await self._sold_lines("product", start, end, product_id)
        return {"summaries": summarize_sales(details), "details": details}

    async def material_sales_report(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        material_id: int | None = None,
    ) -> dict[str, Any]:
        details = await self._sold_lines("material", start, end, material_id)
        return {"summaries": summarize_sales(details), "details": details}

    async def material_stock_report(self) -> list[dict[str, Any]]:
        """Per material: imported, sold directly, import cost and stock value."""
        imported = {
            row.material_id: (row.quantity, row.cost)
            for row in (
                await self.session.execute(
                    select(
                        MaterialImport.material_id,
                        func.coalesce(func.sum(MaterialImport.quantity), 0.0).label("quantity"),
                        func.coalesce(func.sum(MaterialImport.total_amount), 0.0).label("cost"),
                    ).group_by(MaterialImport.material_id)
                )
            ).all()
        }
        sold = {
            row.material_id: row.quantity
            for row in (
                await self.session.execute(
                    select(
                        OrderItem.material_id,
                        func.coalesce(func.sum(OrderItem.quantity), 0.0).label("quantity"),
                    )
                    .where(OrderItem.item_type == "material", OrderItem.material_id.is_not(None))
                    .group_by(OrderItem.material_id)
                )
            ).all()
        }

        report = []
        for material in await MaterialRepository(self.session).list_all():
            total_imported, total_import_cost = imported.get(material.id, (0.0, 0.0))
            avg_import_price = total_import_cost / total_imported if total_imported > 0 else 0.0
            report.append(
                {
                    "material_id": material.id,
                    "material_name": material.name,
                    "unit": material.unit,
                    "current_stock": material.current_stock,
                    "total_imported": total_imported,
                    "total_sold": sold.get(material.id, 0.0),
                    "total_import_cost": total_import_cost,
                    "avg_import_price": avg_import_price,
                    "stock_value": material.current_stock * avg_import_price,
                }
            )
        return report
