# backend/backoffice/models/inventory.py
from datetime import datetime
from sqlalchemy import String, Text, Float, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from backoffice.core.database import Base


class Material(Base):
    """Raw material kept in stock. current_stock is written by InventoryLedger only."""

    __tablename__ = "materials"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)  # kg, m, pcs, ...
    current_stock: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow, onupdate=datetime.utcnow
    )

    imports: Mapped[list["MaterialImport"]] = relationship(
        "MaterialImport", back_populates="material"
    )


class MaterialImport(Base):
    """One stock receipt at a given unit price."""

    __tablename__ = "material_imports"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    material_id: Mapped[int] = mapped_column(
        ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False)
    total_amount: Mapped[float] = mapped_column(Float, default=0.0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    import_date: Mapped[datetime] = mapped_column(default=datetime.utcnow, index=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    material: Mapped["Material"] = relationship("Material", back_populates="imports")

    __table_args__ = (Index("idx_material_imports_material", "material_id"),)


class Product(Base):
    """Sellable product built from materials according to its BOM."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow, onupdate=datetime.utcnow
    )

    materials: Mapped[list["ProductMaterial"]] = relationship(
        "ProductMaterial",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProductMaterial.id",
    )


class ProductMaterial(Base):
    """BOM line: quantity of a material consumed per one unit of product."""

    __tablename__ = "product_materials"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    material_id: Mapped[int] = mapped_column(
        ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False
    )
    quantity_required: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    product: Mapped["Product"] = relationship("Product", back_populates="materials")
    material: Mapped["Material"] = relationship("Material")

    __table_args__ = (
        UniqueConstraint("product_id", "material_id", name="uq_product_material"),
        Index("idx_product_materials_product", "product_id"),
    )
