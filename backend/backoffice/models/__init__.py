# Database models
from backoffice.models.customer import Customer, DebtAdjustment
from backoffice.models.inventory import Material, MaterialImport, Product, ProductMaterial
from backoffice.models.order import Order, OrderItem, Payment

__all__ = [
    "Customer",
    "DebtAdjustment",
    "Material",
    "MaterialImport",
    "Product",
    "ProductMaterial",
    "Order",
    "OrderItem",
    "Payment",
]
