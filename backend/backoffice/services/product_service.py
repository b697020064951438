"""Products, their bill of materials and production capacity."""

import logging
from collections import defaultdict
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from backoffice.models.inventory import Material, Product
from backoffice.repositories.inventory_repository import ProductRepository
from backoffice.services.costing import CostResolver
from backoffice.services.feasibility import FeasibilityChecker, find_shortages, max_producible

logger = logging.getLogger(__name__)

BomLine = tuple[int, float]


def validate_bom(lines: Iterable[BomLine]) -> list[BomLine]:
    """A BOM lists each material once, each with a positive quantity."""
    lines = [(material_id, quantity_required) for material_id, quantity_required in lines]
    seen = set()
    for material_id, quantity_required in lines:
        if material_id is None:
            raise ValidationError("Every BOM line needs a material")
        if quantity_required is None or quantity_required <= 0:
            raise ValidationError(f"Material {material_id}: quantity required must be greater than 0")
        if material_id in seen:
            raise ValidationError(f"Material {material_id} appears more than once in the BOM")
        seen.add(material_id)
    return lines


class ProductService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.products = ProductRepository(session)
        self.costs = CostResolver(session)

    async def list_products(self) -> list[Product]:
        return await self.products.list_all()

    async def recent_products(self, limit: int = 6) -> list[Product]:
        return await self.products.list_recent(limit)

    async def _ensure_materials(self, lines: list[BomLine]) -> None:
        ids = {material_id for material_id, _ in lines}
        if not ids:
            return
        found = set(
            (await self.session.execute(select(Material.id).where(Material.id.in_(ids))))
            .scalars()
            .all()
        )
        missing = ids - found
        if missing:
            raise NotFoundError(f"Material not found: {min(missing)}")

    async def get_product_detail(self, product_id: int) -> dict[str, Any]:
        """Product with its BOM lines, unit cost and production capacity."""
        product = await self.products.get_with_bom(product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}")

        lines = [
            {
                "material_id": line.material_id,
                "material_name": line.material.name if line.material else None,
                "unit": line.material.unit if line.material else None,
                "current_stock": line.material.current_stock if line.material else 0.0,
                "quantity_required": line.quantity_required,
            }
            for line in product.materials
        ]
        return {
            "product": product,
            "materials": lines,
            "unit_cost": await self.costs.product_cost(product_id),
            "max_possible_quantity": max_producible(
                (line["quantity_required"], line["current_stock"]) for line in lines
            ),
        }

    async def check_production(self, lines: list[BomLine], quantity: float) -> None:
        """Raise InsufficientStockError if stock cannot cover `quantity` units of a BOM."""
        if quantity <= 0:
            return
        required: dict[int, float] = defaultdict(float)
        for material_id, quantity_required in lines:
            required[material_id] += quantity_required * quantity
        stock = await FeasibilityChecker(self.session).load_stock(required)
        shortages = find_shortages(required, stock)
        if shortages:
            logger.warning(f"Production of {quantity:g} unit(s) blocked: {shortages[0].describe()}")
            raise InsufficientStockError(shortages)

    async def create_product(
        self,
        name: str,
        unit: str,
        materials: Iterable[BomLine] = (),
        production_quantity: float = 0,
    ) -> Product:
        """Create a product with its BOM.

        Args:
            name: Product name
            unit: Unit the product is sold in
            materials: (material_id, quantity_required) pairs
            production_quantity: Units about to be produced; stock must cover them

        Returns:
            Created Product
        """
        name = (name or "").strip()
        unit = (unit or "").strip()
        if not name:
            raise ValidationError("Product name is required")
        if not unit:
            raise ValidationError("Product unit is required")
        lines = validate_bom(materials)
        await self._ensure_materials(lines)
        await self.check_production(lines, production_quantity or 0)

        try:
            product = await self.products.create(name=name, unit=unit)
            await self.products.replace_bom(product.id, lines)
            await self.session.commit()
        except Exception:
            logger.exception(f"Failed to create product '{name}'")
            await self.session.rollback()
            raise

        logger.info(f"Created product {product.id} '{name}' with {len(lines)} BOM line(s)")
        return product

    async def update_product(self, product_id: int, name: str | None = None, unit: str | None = None) -> Product:
        if name is not None and not name.strip():
            raise ValidationError("Product name cannot be empty")
        if unit is not None and not unit.strip():
            raise ValidationError("Product unit cannot be empty")
        product = await self.products.update(
            product_id,
            name=name.strip() if name is not None else None,
            unit=unit.strip() if unit is not None else None,
        )
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}")
        await self.session.commit()
        logger.info(f"Updated product {product_id}")
        return product

    async def replace_materials(self, product_id: int, materials: Iterable[BomLine]) -> None:
        """Swap the whole BOM of a product for a new one."""
        lines = validate_bom(materials)
        if await self.products.get_by_id(product_id) is None:
            raise NotFoundError(f"Product not found: {product_id}")
        await self._ensure_materials(lines)

        try:
            await self.products.replace_bom(product_id, lines)
            await self.session.commit()
        except Exception:
            logger.exception(f"Failed to replace BOM of product {product_id}")
            await self.session.rollback()
            raise
        logger.info(f"Replaced BOM of product {product_id} ({len(lines)} line(s))")

    async def delete_product(self, product_id: int) -> None:
        if not await self.products.delete(product_id):
            raise NotFoundError(f"Product not found: {product_id}")
        await self.session.commit()
        logger.info(f"Deleted product {product_id}")

    async def product_cost(self, product_id: int) -> float:
        if await self.products.get_by_id(product_id) is None:
            raise NotFoundError(f"Product not found: {product_id}")
        return await self.costs.product_cost(product_id)

    async def preview_cost(self, materials: Iterable[BomLine]) -> float:
        """Unit cost of a BOM that is still being edited."""
        return await self.costs.preview_bom_cost(
            (material_id, quantity_required)
            for material_id, quantity_required in materials
            if material_id is not None and (quantity_required or 0) > 0
        )

    async def production_capacity(self) -> list[dict[str, Any]]:
        """Units of every product that current stock can cover, by product name."""
        products = await self.products.list_all()
        lines_by_product: dict[int, list[tuple[float, float]]] = defaultdict(list)
        for line in await self.products.list_bom_lines():
            stock = line.material.current_stock if line.material else 0.0
            lines_by_product[line.product_id].append((line.quantity_required, stock))

        return [
            {
                "product_id": product.id,
                "product_name": product.name,
                "unit": product.unit,
                "max_possible_quantity": max_producible(lines_by_product.get(product.id, [])),
            }
            for product in products
        ]

    async def material_shortages(self) -> list[dict[str, Any]]:
        """Materials that cannot cover one unit of every product using them."""
        usage: dict[int, dict[str, Any]] = {}
        for line in await self.products.list_bom_lines():
            if line.material is None:
                continue
            entry = usage.setdefault(
                line.material_id,
                {
                    "material_id": line.material_id,
                    "material_name": line.material.name,
                    "unit": line.material.unit,
                    "current_stock": line.material.current_stock,
                    "required": 0.0,
                    "products": [],
                },
            )
            entry["required"] += line.quantity_required
            if line.product is not None and line.product.name not in entry["products"]:
                entry["products"].append(line.product.name)

        shortages = []
        for entry in usage.values():
            if entry["current_stock"] < entry["required"]:
                entry["shortage"] = entry["required"] - entry["current_stock"]
                shortages.append(entry)
        return sorted(shortages, key=lambda e: e["shortage"], reverse=True)
