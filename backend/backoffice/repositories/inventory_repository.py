"""Repository classes for materials, material imports and products."""

from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy import select, delete, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from backoffice.models.inventory import Material, MaterialImport, Product, ProductMaterial


class MaterialRepository:
    """Repository for Material database operations.

    current_stock is only set at creation time here; later movements go
    through InventoryLedger.
    """

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def create(self, name: str, unit: str, current_stock: float = 0.0) -> Material:
        material = Material(name=name, unit=unit, current_stock=current_stock)
        self.session.add(material)
        await self.session.flush()
        return material

    async def get_by_id(self, material_id: int) -> Optional[Material]:
        result = await self.session.execute(
            select(Material)
            .where(Material.id == material_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_name_ci(self, name: str, exclude_id: Optional[int] = None) -> Optional[Material]:
        """Case-insensitive name lookup, optionally ignoring one material."""
        query = select(Material).where(func.lower(Material.name) == name.lower())
        if exclude_id is not None:
            query = query.where(Material.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def list_all(self) -> List[Material]:
        result = await self.session.execute(
            select(Material).order_by(Material.name).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_low_stock(self, threshold: float, limit: int = 5) -> List[Material]:
        result = await self.session.execute(
            select(Material)
            .where(Material.current_stock < threshold)
            .order_by(Material.current_stock.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def has_imports(self, material_id: int) -> bool:
        result = await self.session.execute(
            select(MaterialImport.id).where(MaterialImport.material_id == material_id).limit(1)
        )
        return result.first() is not None

    async def delete(self, material_id: int) -> bool:
        material = await self.get_by_id(material_id)
        if material:
            await self.session.delete(material)
            await self.session.flush()
            return True
        return False


class MaterialImportRepository:
    """Repository for the material import ledger (append-only)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        material_id: int,
        quantity: float,
        unit_price: float,
        notes: Optional[str] = None,
        import_date: Optional[datetime] = None
    ) -> MaterialImport:
        row = MaterialImport(
            material_id=material_id,
            quantity=quantity,
            unit_price=unit_price,
            total_amount=quantity * unit_price,
            notes=notes,
            import_date=import_date or datetime.utcnow(),
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_by_material(self, material_id: int) -> List[MaterialImport]:
        result = await self.session.execute(
            select(MaterialImport)
            .where(MaterialImport.material_id == material_id)
            .order_by(MaterialImport.import_date.desc())
        )
        return list(result.scalars().all())

    async def list_recent(self, since: Optional[datetime] = None, limit: int = 50) -> List[MaterialImport]:
        """Newest imports first, with their material loaded."""
        query = (
            select(MaterialImport)
            .options(selectinload(MaterialImport.material))
            .order_by(MaterialImport.import_date.desc(), MaterialImport.id.desc())
            .limit(limit)
        )
        if since is not None:
            query = query.where(MaterialImport.import_date >= since)
        result = await self.session.execute(query)
        return list(result.scalars().all())


class ProductRepository:
    """Repository for products and their bill of materials."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, name: str, unit: str) -> Product:
        product = Product(name=name, unit=unit)
        self.session.add(product)
        await self.session.flush()
        return product

    async def get_by_id(self, product_id: int) -> Optional[Product]:
        result = await self.session.execute(
            select(Product).where(Product.id == product_id)
        )
        return result.scalar_one_or_none()

    async def get_with_bom(self, product_id: int) -> Optional[Product]:
        result = await self.session.execute(
            select(Product)
            .options(selectinload(Product.materials).selectinload(ProductMaterial.material))
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> List[Product]:
        result = await self.session.execute(select(Product).order_by(Product.name))
        return list(result.scalars().all())

    async def list_recent(self, limit: int = 6) -> List[Product]:
        result = await self.session.execute(
            select(Product).order_by(Product.created_at.desc(), Product.id.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def update(
        self,
        product_id: int,
        name: Optional[str] = None,
        unit: Optional[str] = None
    ) -> Optional[Product]:
        product = await self.get_by_id(product_id)
        if product is None:
            return None
        if name is not None:
            product.name = name
        if unit is not None:
            product.unit = unit
        await self.session.flush()
        return product

    async def list_bom_lines(self, product_id: Optional[int] = None) -> List[ProductMaterial]:
        """BOM lines with material and product loaded, for one or all products."""
        query = select(ProductMaterial).options(
            selectinload(ProductMaterial.material),
            selectinload(ProductMaterial.product),
        )
        if product_id is not None:
            query = query.where(ProductMaterial.product_id == product_id)
        result = await self.session.execute(query.order_by(ProductMaterial.id))
        return list(result.scalars().all())

    async def replace_bom(self, product_id: int, lines: Iterable[tuple[int, float]]) -> None:
        """Drop the current BOM of a product and insert the given lines."""
        await self.session.execute(
            delete(ProductMaterial).where(ProductMaterial.product_id == product_id)
        )
        for material_id, quantity_required in lines:
            self.session.add(
                ProductMaterial(
                    product_id=product_id,
                    material_id=material_id,
                    quantity_required=quantity_required,
                )
            )
        await self.session.flush()

    async def delete(self, product_id: int) -> bool:
        """Delete a product, its BOM lines first."""
        product = await self.get_by_id(product_id)
        if product is None:
            return False
        await self.session.execute(
            delete(ProductMaterial).where(ProductMaterial.product_id == product_id)
        )
        await self.session.delete(product)
        await self.session.flush()
        return True
