"""REST API endpoints for materials and stock receipts."""

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any

from backoffice.api.errors import to_http_error
from backoffice.core.database import get_db
from backoffice.models.inventory import MaterialImport
from backoffice.schemas.inventory import (
    ImportBatchRequest,
    ImportHistoryResponse,
    MaterialCreate,
    MaterialImportResponse,
    MaterialResponse,
    MaterialUpdate,
    MaterialWithCost,
)
from backoffice.services.material_service import ImportLine, MaterialService

router = APIRouter(prefix="/api/materials", tags=["materials"])


def _import_response(row: MaterialImport) -> MaterialImportResponse:
    response = MaterialImportResponse.model_validate(row)
    if row.material is not None:
        response.material_name = row.material.name
        response.unit = row.material.unit
    return response


@router.get("", response_model=list[MaterialWithCost])
async def list_materials(db: AsyncSession = Depends(get_db)):
    """All materials with weighted-average cost and latest import price."""
    rows = await MaterialService(db).list_with_costs()
    return [
        MaterialWithCost(
            **MaterialResponse.model_validate(row["material"]).model_dump(),
            average_cost=row["average_cost"],
            latest_price=row["latest_price"],
        )
        for row in rows
    ]


@router.post("", response_model=MaterialResponse, status_code=status.HTTP_201_CREATED)
async def create_material(request: MaterialCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await MaterialService(db).create_material(
            request.name, request.unit, request.current_stock
        )
    except ValueError as e:
        raise to_http_error(e)


@router.get("/imports", response_model=ImportHistoryResponse)
async def import_history(
    period: str = Query(default="all", description="all, today, week or month"),
    limit: int | None = Query(default=None, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Recent receipts, newest first, with statistics over the listed rows."""
    try:
        history = await MaterialService(db).import_history(period, limit)
    except ValueError as e:
        raise to_http_error(e)
    return ImportHistoryResponse(
        imports=[_import_response(row) for row in history["imports"]],
        statistics=history["statistics"],
    )


@router.post("/imports", status_code=status.HTTP_201_CREATED)
async def save_imports(request: ImportBatchRequest, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """Record a batch of receipts; each adds its quantity to stock."""
    try:
        rows = await MaterialService(db).save_imports(
            [ImportLine(i.material_id, i.quantity, i.unit_price) for i in request.items],
            notes=request.notes,
        )
    except ValueError as e:
        raise to_http_error(e)
    return {"imported": len(rows), "ids": [row.id for row in rows]}


@router.post("/imports/upload", status_code=status.HTTP_201_CREATED)
async def upload_imports(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
) -> dict[str, int]:
    """Bulk receipts from an .xlsx or .csv sheet."""
    content = await file.read()
    try:
        return await MaterialService(db).import_spreadsheet(file.filename, content)
    except ValueError as e:
        raise to_http_error(e)


@router.get("/{material_id}", response_model=MaterialResponse)
async def get_material(material_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await MaterialService(db).get_material(material_id)
    except ValueError as e:
        raise to_http_error(e)


@router.put("/{material_id}", response_model=MaterialResponse)
async def update_material(
    material_id: int,
    request: MaterialUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await MaterialService(db).update_material(
            material_id, name=request.name, current_stock=request.current_stock
        )
    except ValueError as e:
        raise to_http_error(e)


@router.delete("/{material_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_material(material_id: int, db: AsyncSession = Depends(get_db)):
    try:
        await MaterialService(db).delete_material(material_id)
    except ValueError as e:
        raise to_http_error(e)
