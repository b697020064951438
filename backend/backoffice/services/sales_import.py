"""Turning an uploaded sales sheet into draft order items."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import ValidationError
from backoffice.repositories.inventory_repository import MaterialRepository, ProductRepository
from backoffice.services.calculators import DraftItem
from backoffice.services.costing import CostResolver
from backoffice.services.spreadsheets import normalize_name, pick, read_rows, to_number

logger = logging.getLogger(__name__)

NAME_COLUMNS = ("product_name", "name", "Tên sản phẩm")
QUANTITY_COLUMNS = ("quantity", "Số lượng")
PRICE_COLUMNS = ("unit_price", "Đơn giá")
DISCOUNT_COLUMNS = ("discount", "Giảm giá")


class SalesImportService:
    """Matches sheet rows to products, then materials, by normalized name."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def parse(self, filename: str, content: bytes) -> dict[str, Any]:
        """Read a sales sheet.

        Returns:
            {"items": [DraftItem, ...], "unmatched": [{"row", "name", "reason"}, ...]}
        """
        rows = read_rows(filename, content)
        if not rows:
            raise ValidationError("The uploaded file has no data rows")

        products = {
            normalize_name(p.name): p for p in reversed(await ProductRepository(self.session).list_all())
        }
        materials = {
            normalize_name(m.name): m for m in reversed(await MaterialRepository(self.session).list_all())
        }
        costs = CostResolver(self.session)

        items: list[DraftItem] = []
        unmatched: list[dict[str, Any]] = []
        for row_idx, row in enumerate(rows, start=2):
            raw_name = pick(row, *NAME_COLUMNS)
            key = normalize_name(raw_name)
            quantity = to_number(pick(row, *QUANTITY_COLUMNS))
            unit_price = to_number(pick(row, *PRICE_COLUMNS))
            discount = to_number(pick(row, *DISCOUNT_COLUMNS))
            name = str(raw_name) if raw_name is not None else None

            if quantity <= 0:
                unmatched.append({"row": row_idx, "name": name, "reason": "quantity must be greater than 0"})
                continue

            product = products.get(key)
            material = materials.get(key) if product is None else None
            if product is not None:
                items.append(
                    DraftItem(
                        item_type="product",
                        product_id=product.id,
                        quantity=quantity,
                        unit_price=unit_price,
                        unit_cost=await costs.latest_cost_price(product.id, "product"),
                        discount=discount,
                        name=product.name,
                    )
                )
            elif material is not None:
                items.append(
                    DraftItem(
                        item_type="material",
                        material_id=material.id,
                        quantity=quantity,
                        unit_price=unit_price,
                        unit_cost=await costs.latest_cost_price(material.id, "material"),
                        discount=discount,
                        available_stock=material.current_stock,
                        name=material.name,
                    )
                )
            else:
                unmatched.append({"row": row_idx, "name": name, "reason": "no product or material with this name"})

        if unmatched:
            logger.warning(f"{len(unmatched)} row(s) of {filename} did not match any product or material")
        logger.info(f"Parsed {len(items)} sales line(s) from {filename}")
        return {"items": items, "unmatched": unmatched}
