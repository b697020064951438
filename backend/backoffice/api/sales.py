"""REST API endpoints for order entry."""

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.errors import to_http_error
from backoffice.core.database import get_db
from backoffice.models.order import ITEM_TYPES
from backoffice.schemas.order import (
    CostPriceResponse,
    ImportedLine,
    OrderPreviewRequest,
    OrderResponse,
    OrderSubmitRequest,
    OrderSummaryResponse,
    SalesImportResponse,
    UnmatchedLine,
)
from backoffice.services.costing import CostResolver
from backoffice.services.order_service import OrderService
from backoffice.services.sales_import import SalesImportService

router = APIRouter(prefix="/api/sales", tags=["sales"])


@router.post("/preview", response_model=OrderSummaryResponse)
async def preview_order(request: OrderPreviewRequest, db: AsyncSession = Depends(get_db)):
    """Running totals of an order being composed. Nothing is stored."""
    summary = OrderService(db).preview(
        [item.to_draft() for item in request.items], request.payment_amount
    )
    return OrderSummaryResponse.model_validate(summary)


@router.get("/cost-price", response_model=CostPriceResponse)
async def cost_price(
    item_type: str = Query(...),
    item_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Cost price suggested when an item is added to an order."""
    if item_type not in ITEM_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown item type '{item_type}'")
    cost = await CostResolver(db).latest_cost_price(item_id, item_type)
    return CostPriceResponse(item_type=item_type, item_id=item_id, cost_price=cost)


@router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def submit_order(request: OrderSubmitRequest, db: AsyncSession = Depends(get_db)):
    """Create an order, take its first payment and consume stock."""
    try:
        return await OrderService(db).submit_order(
            customer_id=request.customer_id,
            items=[item.to_draft() for item in request.items],
            payment_amount=request.payment_amount,
            notes=request.notes,
            payment_method=request.payment_method,
        )
    except ValueError as e:
        raise to_http_error(e)


@router.post("/import", response_model=SalesImportResponse)
async def import_lines(file: UploadFile = File(...), db: AsyncSession = Depends(get_db)):
    """Draft order lines from an .xlsx or .csv sheet."""
    content = await file.read()
    try:
        result = await SalesImportService(db).parse(file.filename, content)
    except ValueError as e:
        raise to_http_error(e)
    return SalesImportResponse(
        items=[ImportedLine.model_validate(item) for item in result["items"]],
        unmatched=[UnmatchedLine(**row) for row in result["unmatched"]],
    )
