
import uuid
from decimal import Decimal
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from tuckshop.core.config import DEFAULT_MIN_STOCK_THRESHOLD
from tuckshop.models.inventory import ItemCategory, StockStatus


class InventoryResponse(BaseModel):
    """Schema for fetching an inventory record."""
    id: uuid.UUID
    name: str
    description: str
    category: ItemCategory
    price: Decimal
    cost_price: Decimal
    quantity: int
    min_stock_threshold: int
    status: StockStatus
    last_updated: datetime
    updated_by: str

    @classmethod
    def from_item(cls, item) -> "InventoryResponse":
        return cls(
            id=item.id,
            name=item.name,
            description=item.description,
            category=item.category,
            price=item.price,
            cost_price=item.cost_price,
            quantity=item.quantity,
            min_stock_threshold=item.min_stock_threshold,
            status=item.status,
            last_updated=item.last_updated,
            updated_by=item.updated_by,
        )

class InventoryItemRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Display name of the item (e.g., Orange Juice).")
    description: str = Field("", description="Free-text description.")
    category: ItemCategory
    price: Decimal = Field(..., ge=0, description="Selling price of the item.")
    cost_price: Decimal = Field(Decimal("0"), ge=0, description="Purchase cost, used for profit reporting.")
    quantity: int = Field(..., ge=0, description="Initial available stock quantity.")
    min_stock_threshold: int = Field(DEFAULT_MIN_STOCK_THRESHOLD, ge=0, description="Stock level at or below which the item is low-stock.")

class InventoryItemUpdate(BaseModel):
    """Partial manual edit. Status is never accepted; it follows quantity."""
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[ItemCategory] = None
    price: Optional[Decimal] = None
    cost_price: Optional[Decimal] = None
    quantity: Optional[int] = None
    min_stock_threshold: Optional[int] = None
