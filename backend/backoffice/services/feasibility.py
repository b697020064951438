"""Stock feasibility of an order or a production run.

Material items need their own quantity. Product items are expanded through
the product's BOM: each line needs quantity_required x ordered quantity.
Needs for the same material coming from several items are added up before
being compared with the stock snapshot.
"""

import logging
import math
from collections import defaultdict
from typing import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import InsufficientStockError, NotFoundError, StockShortage
from backoffice.models.inventory import Material, ProductMaterial
from backoffice.services.calculators import DraftItem

logger = logging.getLogger(__name__)


def material_requirements(
    items: Iterable[DraftItem],
    boms: Mapping[int, list[tuple[int, float]]],
) -> dict[int, float]:
    """Total quantity needed per material id.

    Args:
        items: Draft order items
        boms: product_id -> [(material_id, quantity_required), ...]

    Returns:
        material_id -> required quantity, in first-seen order
    """
    required: dict[int, float] = defaultdict(float)
    for item in items:
        if item.item_type == "material":
            required[item.material_id] += item.quantity
        elif item.item_type == "product":
            for material_id, quantity_required in boms.get(item.product_id, []):
                required[material_id] += quantity_required * item.quantity
        else:
            raise ValueError(f"Unknown item type: {item.item_type}")
    return dict(required)


def find_shortages(
    required: Mapping[int, float],
    stock: Mapping[int, tuple[str, float]],
) -> list[StockShortage]:
    """Materials whose requirement exceeds what is in stock.

    Args:
        required: material_id -> required quantity
        stock: material_id -> (material name, current stock)
    """
    shortages = []
    for material_id, needed in required.items():
        name, available = stock.get(material_id, (f"#{material_id}", 0.0))
        available = available or 0.0
        if needed > available:
            shortages.append(
                StockShortage(
                    material_id=material_id,
                    material_name=name,
                    required=needed,
                    available=available,
                )
            )
    return shortages


class FeasibilityChecker:
    """Loads BOMs and live stock and runs the pure checks against them."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load_boms(self, product_ids: Iterable[int]) -> dict[int, list[tuple[int, float]]]:
        ids = {pid for pid in product_ids if pid is not None}
        if not ids:
            return {}
        result = await self.session.execute(
            select(
                ProductMaterial.product_id,
                ProductMaterial.material_id,
                ProductMaterial.quantity_required,
            ).where(ProductMaterial.product_id.in_(ids))
        )
        boms: dict[int, list[tuple[int, float]]] = {pid: [] for pid in ids}
        for row in result.all():
            boms[row.product_id].append((row.material_id, row.quantity_required))
        return boms

    async def load_stock(self, material_ids: Iterable[int]) -> dict[int, tuple[str, float]]:
        ids = set(material_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(Material.id, Material.name, Material.current_stock).where(Material.id.in_(ids))
        )
        return {row.id: (row.name, row.current_stock) for row in result.all()}

    async def requirements(self, items: list[DraftItem]) -> dict[int, float]:
        boms = await self.load_boms(
            item.product_id for item in items if item.item_type == "product"
        )
        return material_requirements(items, boms)

    async def check(self, items: list[DraftItem]) -> dict[int, float]:
        """Raise InsufficientStockError if the items cannot be covered.

        Returns:
            The per-material requirements, for the caller to consume
        """
        required = await self.requirements(items)
        stock = await self.load_stock(required)

        missing = [mid for mid in required if mid not in stock]
        if missing:
            raise NotFoundError(f"Material not found: {missing[0]}")

        shortages = find_shortages(required, stock)
        if shortages:
            logger.warning(
                f"Feasibility check failed for {len(shortages)} material(s): {shortages[0].describe()}"
            )
            raise InsufficientStockError(shortages)
        return required


def max_producible(lines: Iterable[tuple[float, float]]) -> int:
    """Whole units of a product that current stock can cover.

    Args:
        lines: (quantity_required, current_stock) per BOM line

    Returns:
        min over lines of floor(stock / quantity_required); 0 without a BOM
    """
    counts = [
        math.floor((stock or 0.0) / quantity_required)
        for quantity_required, stock in lines
        if quantity_required and quantity_required > 0
    ]
    if not counts:
        return 0
    return max(min(counts), 0)
