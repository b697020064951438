"""REST API endpoints for the dashboard and reports."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.errors import to_http_error
from backoffice.core.database import get_db
from backoffice.schemas.inventory import MaterialResponse
from backoffice.services.report_service import ReportService

router = APIRouter(prefix="/api", tags=["reports"])


@router.get("/dashboard")
async def dashboard(db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    data = await ReportService(db).dashboard()
    return {
        "overview": data["overview"],
        "recent_orders": [
            {
                "id": order.id,
                "customer_name": order.customer.name if order.customer else None,
                "customer_phone": order.customer.phone if order.customer else None,
                "total_amount": order.total_amount,
                "debt_amount": order.debt_amount,
                "status": order.status,
                "order_date": order.order_date.isoformat(),
            }
            for order in data["recent_orders"]
        ],
        "top_customers": data["top_customers"],
        "low_stock_materials": [
            MaterialResponse.model_validate(m).model_dump(mode="json")
            for m in data["low_stock_materials"]
        ],
        "orders_today": data["orders_today"],
    }


@router.get("/reports/overview")
async def system_overview(db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    return await ReportService(db).system_overview()


@router.get("/reports/materials/stock")
async def material_stock_report(db: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    """Imported, sold and valued stock per material."""
    return await ReportService(db).material_stock_report()


@router.get("/reports/materials/sales")
async def material_sales_report(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    material_id: int | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    try:
        return await ReportService(db).material_sales_report(start, end, material_id)
    except ValueError as e:
        raise to_http_error(e)


@router.get("/reports/products/sales")
async def product_sales_report(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    product_id: int | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    try:
        return await ReportService(db).product_sales_report(start, end, product_id)
    except ValueError as e:
        raise to_http_error(e)
