# backend/backoffice/schemas/order.py
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field

from backoffice.services.calculators import DraftItem


class DraftItemRequest(BaseModel):
    """An order line as composed on the sales screen."""

    item_type: Literal["product", "material"]
    product_id: int | None = None
    material_id: int | None = None
    quantity: float = Field(..., gt=0, allow_inf_nan=False)
    unit_price: float = Field(..., allow_inf_nan=False)
    unit_cost: float = Field(default=0.0, allow_inf_nan=False)
    discount: float = Field(default=0.0, allow_inf_nan=False)

    def to_draft(self) -> DraftItem:
        return DraftItem(
            item_type=self.item_type,
            product_id=self.product_id,
            material_id=self.material_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            unit_cost=self.unit_cost,
            discount=self.discount,
        )


class OrderPreviewRequest(BaseModel):
    items: list[DraftItemRequest]
    payment_amount: str | float | None = None


class OrderSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subtotal_amount: float
    total_discount: float
    total_amount: float
    total_cost: float
    profit: float
    debt: float


class OrderSubmitRequest(BaseModel):
    customer_id: int
    items: list[DraftItemRequest]
    payment_amount: str | float | None = None
    payment_method: str = "cash"
    notes: str | None = None


class OrderUpdateRequest(BaseModel):
    order_date: datetime | None = None
    total_amount: float | None = None
    total_cost: float | None = None
    paid_amount: float | None = None
    status: str | None = None
    notes: str | None = None


class PaymentRequest(BaseModel):
    amount: float = Field(..., gt=0)
    payment_method: str = "cash"
    notes: str | None = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    total_amount: float
    total_cost: float
    paid_amount: float
    debt_amount: float
    profit: float
    status: str
    notes: str | None
    order_date: datetime


class OrderItemResponse(BaseModel):
    id: int
    item_type: str
    product_id: int | None
    material_id: int | None
    item_name: str | None
    unit: str | None
    quantity: float
    unit_price: float
    unit_cost: float
    discount: float
    total_price: float
    total_cost: float
    profit: float


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    amount: float
    payment_method: str
    notes: str | None
    payment_date: datetime


class OrderCustomer(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: str | None


class OrderDetailResponse(BaseModel):
    order: OrderResponse
    customer: OrderCustomer | None
    items: list[OrderItemResponse]
    payments: list[PaymentResponse]


class CostPriceResponse(BaseModel):
    item_type: str
    item_id: int
    cost_price: float


class ImportedLine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_type: str
    product_id: int | None
    material_id: int | None
    name: str | None
    quantity: float
    unit_price: float
    unit_cost: float
    discount: float
    available_stock: float | None


class UnmatchedLine(BaseModel):
    row: int
    name: str | None
    reason: str


class SalesImportResponse(BaseModel):
    items: list[ImportedLine]
    unmatched: list[UnmatchedLine]
