# backend/backoffice/schemas/inventory.py
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class MaterialCreate(BaseModel):
    name: str
    unit: str
    current_stock: float = Field(default=0.0, ge=0)


class MaterialUpdate(BaseModel):
    name: str | None = None
    current_stock: float | None = None


class MaterialResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    unit: str
    current_stock: float
    created_at: datetime


class MaterialWithCost(MaterialResponse):
    average_cost: float
    latest_price: float


class ImportLineRequest(BaseModel):
    material_id: int
    quantity: float = Field(..., gt=0)
    unit_price: float = Field(..., gt=0)


class ImportBatchRequest(BaseModel):
    items: list[ImportLineRequest] = Field(..., min_length=1)
    notes: str | None = None


class MaterialImportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    material_id: int
    material_name: str | None = None
    unit: str | None = None
    quantity: float
    unit_price: float
    total_amount: float
    notes: str | None
    import_date: datetime


class ImportStatistics(BaseModel):
    total_imports: int
    total_value: float
    unique_materials: int
    today_imports: int


class ImportHistoryResponse(BaseModel):
    imports: list[MaterialImportResponse]
    statistics: ImportStatistics


class BomLineRequest(BaseModel):
    material_id: int
    quantity_required: float = Field(..., gt=0)


class ProductCreate(BaseModel):
    name: str
    unit: str
    materials: list[BomLineRequest] = []
    production_quantity: float = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    name: str | None = None
    unit: str | None = None


class BomReplaceRequest(BaseModel):
    materials: list[BomLineRequest]


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    unit: str
    created_at: datetime


class BomLineResponse(BaseModel):
    material_id: int
    material_name: str | None
    unit: str | None
    current_stock: float
    quantity_required: float


class ProductDetailResponse(BaseModel):
    product: ProductResponse
    materials: list[BomLineResponse]
    unit_cost: float
    max_possible_quantity: int


class CapacityRow(BaseModel):
    product_id: int
    product_name: str
    unit: str
    max_possible_quantity: int


class ShortageAlert(BaseModel):
    material_id: int
    material_name: str
    unit: str
    current_stock: float
    required: float
    shortage: float
    products: list[str]


class CostPreviewRequest(BaseModel):
    materials: list[BomLineRequest]


class CostResponse(BaseModel):
    cost: float
