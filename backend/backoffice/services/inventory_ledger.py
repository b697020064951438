"""Stock movements on materials.

The only writer of Material.current_stock. Receipts add to stock; sales
consume it with a conditional UPDATE so two concurrent orders can never
drive a material below zero. Nothing here commits: callers own the
transaction.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import InsufficientStockError, NotFoundError, StockShortage
from backoffice.models.inventory import Material

logger = logging.getLogger(__name__)


class InventoryLedger:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def read(self, material_id: int) -> float:
        """Current stock of a material."""
        result = await self.session.execute(
            select(Material.current_stock).where(Material.id == material_id)
        )
        stock = result.scalar_one_or_none()
        if stock is None:
            raise NotFoundError(f"Material not found: {material_id}")
        return stock

    async def apply_delta(self, material_id: int, delta: float) -> None:
        """Add (or, for corrections, subtract) a quantity unconditionally."""
        result = await self.session.execute(
            update(Material)
            .where(Material.id == material_id)
            .values(current_stock=Material.current_stock + delta)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Material not found: {material_id}")
        logger.debug(f"Stock of material {material_id} changed by {delta:g}")

    async def consume(self, material_id: int, quantity: float) -> None:
        """Take quantity out of stock, only if that much is available.

        Raises:
            InsufficientStockError: stock changed under us since the check
        """
        result = await self.session.execute(
            update(Material)
            .where(Material.id == material_id, Material.current_stock >= quantity)
            .values(current_stock=Material.current_stock - quantity)
        )
        if result.rowcount == 0:
            row = (
                await self.session.execute(
                    select(Material.name, Material.current_stock).where(Material.id == material_id)
                )
            ).one_or_none()
            if row is None:
                raise NotFoundError(f"Material not found: {material_id}")
            raise InsufficientStockError(
                [
                    StockShortage(
                        material_id=material_id,
                        material_name=row.name,
                        required=quantity,
                        available=row.current_stock,
                    )
                ]
            )

    async def consume_all(self, requirements: dict[int, float]) -> None:
        """Consume several materials; the first failure aborts the rest."""
        for material_id, quantity in requirements.items():
            if quantity > 0:
                await self.consume(material_id, quantity)
