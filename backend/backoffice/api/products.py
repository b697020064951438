"""REST API endpoints for products and their bill of materials."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.errors import to_http_error
from backoffice.core.database import get_db
from backoffice.schemas.inventory import (
    BomReplaceRequest,
    CapacityRow,
    CostPreviewRequest,
    CostResponse,
    ProductCreate,
    ProductDetailResponse,
    ProductResponse,
    ProductUpdate,
    ShortageAlert,
)
from backoffice.services.product_service import ProductService

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=list[ProductResponse])
async def list_products(db: AsyncSession = Depends(get_db)):
    return await ProductService(db).list_products()


@router.get("/recent", response_model=list[ProductResponse])
async def recent_products(db: AsyncSession = Depends(get_db)):
    """Most recently created products."""
    return await ProductService(db).recent_products()


@router.get("/capacity", response_model=list[CapacityRow])
async def production_capacity(db: AsyncSession = Depends(get_db)):
    """How many units of each product current stock can cover."""
    return await ProductService(db).production_capacity()


@router.get("/shortages", response_model=list[ShortageAlert])
async def material_shortages(db: AsyncSession = Depends(get_db)):
    return await ProductService(db).material_shortages()


@router.post("/cost-preview", response_model=CostResponse)
async def preview_cost(request: CostPreviewRequest, db: AsyncSession = Depends(get_db)):
    """Unit cost of a BOM that has not been saved."""
    cost = await ProductService(db).preview_cost(
        (line.material_id, line.quantity_required) for line in request.materials
    )
    return CostResponse(cost=cost)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(request: ProductCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await ProductService(db).create_product(
            request.name,
            request.unit,
            [(line.material_id, line.quantity_required) for line in request.materials],
            production_quantity=request.production_quantity,
        )
    except ValueError as e:
        raise to_http_error(e)


@router.get("/{product_id}", response_model=ProductDetailResponse)
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await ProductService(db).get_product_detail(product_id)
    except ValueError as e:
        raise to_http_error(e)


@router.get("/{product_id}/cost", response_model=CostResponse)
async def product_cost(product_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return CostResponse(cost=await ProductService(db).product_cost(product_id))
    except ValueError as e:
        raise to_http_error(e)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    request: ProductUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await ProductService(db).update_product(product_id, request.name, request.unit)
    except ValueError as e:
        raise to_http_error(e)


@router.put("/{product_id}/materials", status_code=status.HTTP_204_NO_CONTENT)
async def replace_materials(
    product_id: int,
    request: BomReplaceRequest,
    db: AsyncSession = Depends(get_db),
):
    """Replace the whole BOM of a product."""
    try:
        await ProductService(db).replace_materials(
            product_id,
            [(line.material_id, line.quantity_required) for line in request.materials],
        )
    except ValueError as e:
        raise to_http_error(e)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(product_id: int, db: AsyncSession = Depends(get_db)):
    try:
        await ProductService(db).delete_product(product_id)
    except ValueError as e:
        raise to_http_error(e)
