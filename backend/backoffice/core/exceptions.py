"""Business errors raised by the service layer.

All of them are ValueError subclasses so callers that only care about
"the request was rejected" can keep catching ValueError.
"""

from dataclasses import dataclass


class ValidationError(ValueError):
    """Input that can never be accepted, whatever the stored data."""


class NotFoundError(ValueError):
    """A referenced row does not exist."""


class ConflictError(ValueError):
    """The request clashes with existing data (duplicate name, guarded delete)."""


@dataclass
class StockShortage:
    """One material that cannot cover its requirement."""

    material_id: int
    material_name: str
    required: float
    available: float

    def describe(self) -> str:
        return (
            f"Not enough '{self.material_name}' in stock: "
            f"required {self.required:g}, available {self.available:g}"
        )


class InsufficientStockError(ValueError):
    """Order or production needs more material than is in stock."""

    def __init__(self, shortages: list[StockShortage]):
        self.shortages = shortages
        super().__init__(shortages[0].describe() if shortages else "Insufficient stock")
