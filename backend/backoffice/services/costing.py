"""Weighted-average material costing and BOM cost roll-up.

The same two pure functions serve the cost preview of a BOM that is still
being edited and the cost of a persisted product, so both always agree.
"""

import logging
from typing import Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.models.inventory import MaterialImport, ProductMaterial

logger = logging.getLogger(__name__)


class ImportRow(Protocol):
    quantity: float
    unit_price: float


def weighted_average_cost(imports: Iterable[ImportRow]) -> float:
    """Average unit cost over import records, weighted by quantity.

    Records with a non-positive quantity or unit price are ignored. With no
    usable record the cost is 0.
    """
    total_quantity = 0.0
    total_value = 0.0
    for row in imports:
        quantity = row.quantity or 0
        unit_price = row.unit_price or 0
        if quantity > 0 and unit_price > 0:
            total_quantity += quantity
            total_value += quantity * unit_price
    if total_quantity == 0:
        return 0.0
    return total_value / total_quantity


def bom_cost(lines: Iterable[tuple[int, float]], material_costs: dict[int, float]) -> float:
    """Cost of one product unit: sum of quantity_required x material cost.

    Args:
        lines: (material_id, quantity_required) pairs
        material_costs: weighted-average cost per material id
    """
    return sum(
        quantity_required * material_costs.get(material_id, 0.0)
        for material_id, quantity_required in lines
        if material_id is not None and quantity_required > 0
    )


class CostResolver:
    """Reads import history and BOMs and applies the pure costing rules."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def material_cost(self, material_id: int) -> float:
        """Weighted-average unit cost of a material from its import history."""
        costs = await self.material_costs([material_id])
        return costs.get(material_id, 0.0)

    async def material_costs(self, material_ids: Iterable[int]) -> dict[int, float]:
        """Weighted-average unit cost for several materials in one query."""
        ids = {mid for mid in material_ids if mid is not None}
        if not ids:
            return {}
        result = await self.session.execute(
            select(MaterialImport.material_id, MaterialImport.quantity, MaterialImport.unit_price)
            .where(MaterialImport.material_id.in_(ids))
        )
        grouped: dict[int, list] = {mid: [] for mid in ids}
        for row in result.all():
            grouped[row.material_id].append(row)
        return {mid: weighted_average_cost(rows) for mid, rows in grouped.items()}

    async def preview_bom_cost(self, lines: Iterable[tuple[int, float]]) -> float:
        """Cost of a BOM that has not been saved yet."""
        lines = list(lines)
        costs = await self.material_costs(mid for mid, _ in lines)
        return bom_cost(lines, costs)

    async def product_cost(self, product_id: int) -> float:
        """Cost of one unit of a persisted product.

        Errors are logged and reported as a cost of 0 so that a costing
        problem never blocks order entry.
        """
        try:
            result = await self.session.execute(
                select(ProductMaterial.material_id, ProductMaterial.quantity_required)
                .where(ProductMaterial.product_id == product_id)
            )
            lines = [(row.material_id, row.quantity_required) for row in result.all()]
            return await self.preview_bom_cost(lines)
        except Exception:
            logger.exception(f"Failed to calculate cost of product {product_id}")
            return 0.0

    async def latest_material_price(self, material_id: int) -> float:
        """Unit price of the most recent import, 0 when never imported."""
        result = await self.session.execute(
            select(MaterialImport.unit_price)
            .where(MaterialImport.material_id == material_id)
            .order_by(MaterialImport.import_date.desc(), MaterialImport.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none() or 0.0

    async def latest_cost_price(self, item_id: int, item_type: str) -> float:
        """Cost price suggested when an item is added to a sales order."""
        try:
            if item_type == "material":
                return await self.latest_material_price(item_id)
            return await self.product_cost(item_id)
        except Exception:
            logger.exception(f"Failed to get cost price of {item_type} {item_id}")
            return 0.0
