"""Material catalogue, stock receipts and import history."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.config import settings
from backoffice.core.exceptions import ConflictError, NotFoundError, ValidationError
from backoffice.models.inventory import Material, MaterialImport, ProductMaterial
from backoffice.repositories.inventory_repository import MaterialImportRepository, MaterialRepository
from backoffice.services.costing import CostResolver
from backoffice.services.inventory_ledger import InventoryLedger
from backoffice.services.spreadsheets import pick, read_rows, to_number

logger = logging.getLogger(__name__)

IMPORT_PERIODS = ("all", "today", "week", "month")


@dataclass
class ImportLine:
    material_id: int
    quantity: float
    unit_price: float


def start_of_today(now: datetime | None = None) -> datetime:
    now = now or datetime.utcnow()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def period_start(period: str, now: datetime | None = None) -> datetime | None:
    """Lower bound of import_date for a history period, None for 'all'."""
    now = now or datetime.utcnow()
    if period == "all":
        return None
    if period == "today":
        return start_of_today(now)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now - timedelta(days=30)
    raise ValidationError(f"Unknown period '{period}', expected one of {', '.join(IMPORT_PERIODS)}")


def import_statistics(imports: list[MaterialImport], now: datetime | None = None) -> dict[str, Any]:
    """Summary figures over the listed imports."""
    today = start_of_today(now)
    return {
        "total_imports": len(imports),
        "total_value": sum(row.total_amount or 0.0 for row in imports),
        "unique_materials": len({row.material_id for row in imports}),
        "today_imports": sum(1 for row in imports if row.import_date >= today),
    }


class MaterialService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.materials = MaterialRepository(session)
        self.imports = MaterialImportRepository(session)
        self.ledger = InventoryLedger(session)

    async def list_materials(self) -> list[Material]:
        return await self.materials.list_all()

    async def get_material(self, material_id: int) -> Material:
        material = await self.materials.get_by_id(material_id)
        if material is None:
            raise NotFoundError(f"Material not found: {material_id}")
        return material

    async def list_with_costs(self) -> list[dict[str, Any]]:
        """Materials with their weighted-average and latest import prices."""
        materials = await self.materials.list_all()
        resolver = CostResolver(self.session)
        costs = await resolver.material_costs(m.id for m in materials)
        rows = []
        for material in materials:
            rows.append(
                {
                    "material": material,
                    "average_cost": costs.get(material.id, 0.0),
                    "latest_price": await resolver.latest_material_price(material.id),
                }
            )
        return rows

    async def create_material(self, name: str, unit: str, current_stock: float = 0.0) -> Material:
        """Create a material; names are unique regardless of case."""
        name = (name or "").strip()
        unit = (unit or "").strip()
        if not name:
            raise ValidationError("Material name is required")
        if not unit:
            raise ValidationError("Material unit is required")
        if current_stock is None or current_stock < 0:
            raise ValidationError("Initial stock cannot be negative")
        if await self.materials.find_by_name_ci(name):
            raise ConflictError(f"Material '{name}' already exists")

        material = await self.materials.create(name=name, unit=unit, current_stock=current_stock)
        await self.session.commit()
        logger.info(f"Created material {material.id} '{name}'")
        return material

    async def update_material(
        self,
        material_id: int,
        name: str | None = None,
        current_stock: float | None = None,
    ) -> Material:
        """Rename a material and/or set its stock level by hand.

        A stock correction is recorded as a ledger delta, not a plain write.
        """
        if name is None and current_stock is None:
            raise ValidationError("Nothing to update")

        material = await self.get_material(material_id)
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Material name cannot be empty")
            if await self.materials.find_by_name_ci(name, exclude_id=material_id):
                raise ConflictError(f"Material '{name}' already exists")
        if current_stock is not None and current_stock < 0:
            raise ValidationError("Stock cannot be negative")

        try:
            if name is not None:
                material.name = name
            if current_stock is not None:
                delta = current_stock - material.current_stock
                if delta:
                    await self.ledger.apply_delta(material_id, delta)
            material.updated_at = datetime.utcnow()
            await self.session.commit()
        except Exception:
            logger.exception(f"Failed to update material {material_id}")
            await self.session.rollback()
            raise

        await self.session.refresh(material)
        logger.info(f"Updated material {material_id}")
        return material

    async def delete_material(self, material_id: int) -> None:
        """Delete a material that has never been imported nor used in a BOM."""
        await self.get_material(material_id)
        if await self.materials.has_imports(material_id):
            raise ConflictError("Cannot delete a material that has import history")
        in_bom = (
            await self.session.execute(
                select(ProductMaterial.id).where(ProductMaterial.material_id == material_id).limit(1)
            )
        ).first()
        if in_bom is not None:
            raise ConflictError("Cannot delete a material used in a product's bill of materials")

        await self.materials.delete(material_id)
        await self.session.commit()
        logger.info(f"Deleted material {material_id}")

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    async def save_imports(self, lines: Iterable[ImportLine], notes: str | None = None) -> list[MaterialImport]:
        """Record a batch of receipts and add each quantity to stock.

        Args:
            lines: Materials received, each with quantity and unit price
            notes: Notes shared by every row of the batch

        Returns:
            The created import rows
        """
        lines = list(lines)
        if not lines:
            raise ValidationError("Import batch is empty")
        for index, line in enumerate(lines, start=1):
            if line.quantity is None or line.quantity <= 0:
                raise ValidationError(f"Row {index}: quantity must be greater than 0")
            if line.unit_price is None or line.unit_price <= 0:
                raise ValidationError(f"Row {index}: unit price must be greater than 0")

        created = []
        try:
            for line in lines:
                if await self.session.get(Material, line.material_id) is None:
                    raise NotFoundError(f"Material not found: {line.material_id}")
                created.append(
                    await self.imports.create(
                        material_id=line.material_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        notes=notes,
                    )
                )
                await self.ledger.apply_delta(line.material_id, line.quantity)
            await self.session.commit()
        except ValueError:
            await self.session.rollback()
            raise
        except Exception:
            logger.exception("Failed to save material imports")
            await self.session.rollback()
            raise

        logger.info(f"Saved {len(created)} material import(s)")
        return created

    async def import_history(self, period: str = "all", limit: int | None = None) -> dict[str, Any]:
        """Newest imports in the period, plus statistics over them."""
        since = period_start(period)
        rows = await self.imports.list_recent(
            since=since, limit=limit or settings.IMPORT_HISTORY_LIMIT
        )
        return {"imports": rows, "statistics": import_statistics(rows)}

    async def import_spreadsheet(self, filename: str, content: bytes) -> dict[str, int]:
        """Bulk receipts from a sheet with name, unit, quantity, unit_price[, notes].

        Names match existing materials case-insensitively; missing materials
        are created with the unit of their first row.
        Any invalid row rejects the whole file.
        """
        rows = read_rows(filename, content)
        if not rows:
            raise ValidationError("The uploaded file has no data rows")

        parsed = []
        for row_idx, row in enumerate(rows, start=2):
            name = pick(row, "name")
            unit = pick(row, "unit")
            quantity = to_number(pick(row, "quantity"), default=None)
            unit_price = to_number(pick(row, "unit_price"), default=None)
            if not name or not unit or not quantity or not unit_price:
                raise ValidationError(
                    f"Row {row_idx}: missing required value (name, unit, quantity, unit_price)"
                )
            if quantity < 0 or unit_price < 0:
                raise ValidationError(f"Row {row_idx}: quantity and unit price must be positive")
            notes = pick(row, "notes")
            parsed.append((str(name).strip(), str(unit).strip(), quantity, unit_price, notes))

        created_materials = 0
        try:
            material_ids: dict[str, int] = {}
            for name, unit, _, _, _ in parsed:
                if name.lower() in material_ids:
                    continue
                material = await self.materials.find_by_name_ci(name)
                if material is None:
                    material = await self.materials.create(name=name, unit=unit)
                    created_materials += 1
                material_ids[name.lower()] = material.id

            for name, _, quantity, unit_price, notes in parsed:
                await self.imports.create(
                    material_id=material_ids[name.lower()],
                    quantity=quantity,
                    unit_price=unit_price,
                    notes=str(notes) if notes is not None else None,
                )
                await self.ledger.apply_delta(material_ids[name.lower()], quantity)
            await self.session.commit()
        except Exception:
            logger.exception(f"Failed to import materials from {filename}")
            await self.session.rollback()
            raise

        logger.info(
            f"Imported {len(parsed)} row(s) from {filename}, {created_materials} new material(s)"
        )
        return {"imported_rows": len(parsed), "created_materials": created_materials}
