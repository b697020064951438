"""REST API endpoints for existing orders."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.errors import to_http_error
from backoffice.core.database import get_db
from backoffice.schemas.order import (
    OrderDetailResponse,
    OrderResponse,
    OrderUpdateRequest,
    PaymentRequest,
)
from backoffice.services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)):
    """Order with customer, named items and payments newest first."""
    try:
        return await OrderService(db).get_order_detail(order_id)
    except ValueError as e:
        raise to_http_error(e)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: int,
    request: OrderUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await OrderService(db).update_order(
            order_id, **request.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise to_http_error(e)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(order_id: int, db: AsyncSession = Depends(get_db)):
    try:
        await OrderService(db).delete_order(order_id)
    except ValueError as e:
        raise to_http_error(e)


@router.post("/{order_id}/payments", response_model=OrderResponse)
async def record_payment(
    order_id: int,
    request: PaymentRequest,
    db: AsyncSession = Depends(get_db),
):
    """Add a payment; paid amount, debt and status are recomputed."""
    try:
        return await OrderService(db).record_payment(
            order_id, request.amount, request.payment_method, request.notes
        )
    except ValueError as e:
        raise to_http_error(e)
