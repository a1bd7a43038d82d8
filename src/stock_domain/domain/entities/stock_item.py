"""Stock item entity."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class StockItem:
    """An inventory record whose quantity only changes through stock movements."""

    id: str
    product_code: str
    sku: str
    description: str
    quantity: int
    price: float
    category: str
    created_by: str
    image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Post-initialization for validation."""
        if self.quantity < 0:
            raise ValueError("Quantity cannot be negative.")
        if self.price < 0:
            raise ValueError("Price cannot be negative.")
