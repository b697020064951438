# backend/backoffice/schemas/customer.py
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str | None = None
    address: str | None = None


class CustomerUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    address: str | None = None


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: str | None
    address: str | None
    total_revenue: float
    total_profit: float
    outstanding_debt: float
    created_at: datetime


class CustomerDebtRow(BaseModel):
    """One row of the customer debt overview."""

    id: int
    name: str
    phone: str | None
    total_revenue: float
    total_profit: float
    outstanding_debt: float
    total_orders: int
    unpaid_orders: int


class DebtAdjustmentRequest(BaseModel):
    new_debt: float
    reason: str = Field(..., min_length=1)
    notes: str | None = None


class DebtAdjustmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    adjustment_amount: float
    reason: str
    notes: str | None
    created_by: str
    created_at: datetime
