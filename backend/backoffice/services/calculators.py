"""Order line and order summary arithmetic.

Pure functions over draft order items. Nothing here is clamped: a discount
larger than the line subtotal gives a negative line total, and an
overpayment gives a negative debt. Display decisions belong to callers.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Iterable

# leading decimal number; anything after it is ignored
_NUMBER_PREFIX = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass
class DraftItem:
    """An order line that is being composed and has not been persisted.

    Attributes:
        item_type: "product" or "material"
        quantity: Number of units ordered
        unit_price: Selling price per unit
        unit_cost: Cost price per unit
        discount: Absolute discount on the whole line
        product_id: Set when item_type is "product"
        material_id: Set when item_type is "material"
        available_stock: Stock snapshot shown while composing, informational only
    """

    item_type: str
    quantity: float
    unit_price: float
    unit_cost: float = 0.0
    discount: float = 0.0
    product_id: int | None = None
    material_id: int | None = None
    available_stock: float | None = None
    name: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class ItemTotals:
    subtotal: float
    total_price: float
    total_cost: float
    profit: float


@dataclass(frozen=True)
class OrderSummary:
    subtotal_amount: float
    total_discount: float
    total_amount: float
    total_cost: float
    profit: float
    debt: float


def calculate_item_totals(item: DraftItem) -> ItemTotals:
    """Compute subtotal, total price, total cost and profit of one line."""
    subtotal = item.quantity * item.unit_price
    total_price = subtotal - item.discount
    total_cost = item.quantity * item.unit_cost
    return ItemTotals(
        subtotal=subtotal,
        total_price=total_price,
        total_cost=total_cost,
        profit=total_price - total_cost,
    )


def parse_amount(value: str | float | int | None) -> float:
    """Parse a user-entered amount; empty or non-numeric input counts as 0.

    Text is read up to the end of its leading number ("12abc" is 12).
    NaN and infinite amounts also count as 0.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        match = _NUMBER_PREFIX.match(value)
        if match is None:
            return 0.0
        amount = float(match.group())
    return amount if math.isfinite(amount) else 0.0


def calculate_order_summary(
    items: Iterable[DraftItem], payment_amount: str | float | int | None
) -> OrderSummary:
    """Aggregate line totals of a draft order against a proposed payment.

    total_amount always equals subtotal_amount - total_discount.
    """
    items = list(items)
    totals = [calculate_item_totals(item) for item in items]

    subtotal_amount = sum(t.subtotal for t in totals)
    total_discount = sum(item.discount for item in items)
    total_amount = sum(t.total_price for t in totals)
    total_cost = sum(t.total_cost for t in totals)

    return OrderSummary(
        subtotal_amount=subtotal_amount,
        total_discount=total_discount,
        total_amount=total_amount,
        total_cost=total_cost,
        profit=total_amount - total_cost,
        debt=total_amount - parse_amount(payment_amount),
    )


def derive_order_status(total_amount: float, paid_amount: float) -> str:
    """Status of an order from what is owed and what has been paid.

    completed when nothing is left to pay (overpayment included),
    partial_paid when something but not everything was paid, else pending.
    """
    debt_amount = total_amount - paid_amount
    if debt_amount <= 0:
        return "completed"
    if paid_amount > 0:
        return "partial_paid"
    return "pending"
