from enum import Enum
from decimal import Decimal
from typing import List, Optional
import uuid

from pydantic import BaseModel, Field


class StockErrorType(str, Enum):
    INSUFFICIENT_STOCK = "insufficient_stock"
    ITEM_NOT_FOUND = "item_not_found"
    PROCESSING_ERROR = "processing_error"


class OrderLine(BaseModel):
    """One line of an order: what the customer asked for, and later the stored snapshot."""
    item_id: uuid.UUID
    name: str
    quantity: int = Field(..., gt=0)
    # Ignored on input; always overwritten from the inventory record.
    price_at_purchase: Optional[Decimal] = None


class StockError(BaseModel):
    type: StockErrorType
    item_name: str
    message: str
    requested: Optional[int] = None
    available: Optional[int] = None


class DeductionResult(BaseModel):
    success: bool
    errors: List[StockError] = Field(default_factory=list)
    calculated_price: Decimal = Decimal("0")
    # Snapshot lines with authoritative names and prices, set on success
    lines: List[OrderLine] = Field(default_factory=list)


class RestoreResult(BaseModel):
    success: bool
    error: Optional[str] = None
    # Item ids that no longer exist and could not be restored
    skipped: List[str] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.success and bool(self.skipped)
