"""REST API endpoints for customers and their debt."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any

from backoffice.api.errors import to_http_error
from backoffice.core.database import get_db
from backoffice.schemas.customer import (
    CustomerCreate,
    CustomerDebtRow,
    CustomerResponse,
    CustomerUpdate,
    DebtAdjustmentRequest,
    DebtAdjustmentResponse,
)
from backoffice.schemas.order import OrderResponse
from backoffice.services.customer_service import CustomerService

router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.get("", response_model=list[CustomerDebtRow])
async def list_customers(
    search: str | None = Query(default=None, description="Name or phone fragment"),
    db: AsyncSession = Depends(get_db),
):
    """Customers with revenue and debt, highest outstanding debt first."""
    return await CustomerService(db).debt_overview(search)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(request: CustomerCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await CustomerService(db).create_customer(request.name, request.phone, request.address)
    except ValueError as e:
        raise to_http_error(e)


@router.get("/{customer_id}")
async def get_customer(customer_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """Customer with orders (newest first) and debt adjustments."""
    try:
        detail = await CustomerService(db).get_customer_detail(customer_id)
    except ValueError as e:
        raise to_http_error(e)

    return {
        "customer": CustomerResponse.model_validate(detail["customer"]),
        "orders": [OrderResponse.model_validate(o) for o in detail["orders"]],
        "debt_adjustments": [
            DebtAdjustmentResponse.model_validate(a) for a in detail["debt_adjustments"]
        ],
    }


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    request: CustomerUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CustomerService(db).update_customer(
            customer_id, name=request.name, phone=request.phone, address=request.address
        )
    except ValueError as e:
        raise to_http_error(e)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(customer_id: int, db: AsyncSession = Depends(get_db)):
    try:
        await CustomerService(db).delete_customer(customer_id)
    except ValueError as e:
        raise to_http_error(e)


@router.post("/{customer_id}/debt-adjustments")
async def adjust_debt(
    customer_id: int,
    request: DebtAdjustmentRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Set the customer's outstanding debt to a new figure."""
    service = CustomerService(db)
    try:
        adjustment = await service.adjust_debt(
            customer_id, request.new_debt, request.reason, request.notes
        )
        customer = await service.get_customer(customer_id)
    except ValueError as e:
        raise to_http_error(e)

    return {
        "adjustment": DebtAdjustmentResponse.model_validate(adjustment) if adjustment else None,
        "outstanding_debt": customer.outstanding_debt,
    }
