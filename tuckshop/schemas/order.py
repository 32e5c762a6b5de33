from pydantic import BaseModel, Field
from typing import List, Optional
import uuid
from decimal import Decimal
from datetime import datetime

from tuckshop.models.order import OrderStatus
from tuckshop.schemas.stock import OrderLine


class OrderRequest(BaseModel):
    """Schema for the full order placement request body."""
    user_id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    items: List[OrderLine]
    # Accepted for compatibility with older clients, never trusted.
    total_price: Optional[Decimal] = None

class OrderPlacementResponse(BaseModel):
    """Response schema for a newly placed order (201 Created)."""
    order_id: int
    document_id: uuid.UUID
    total_price: Decimal
    status: OrderStatus

class OrderStatusUpdate(BaseModel):
    """Schema for updating an order status."""
    status: OrderStatus

class OrderStatusResponse(BaseModel):
    success: bool = True
    order_id: int
    status: OrderStatus

class OrderDetailResponse(BaseModel):
    """Schema for fetching detailed order information."""
    order_id: int
    document_id: uuid.UUID
    user_id: str
    display_name: str
    status: OrderStatus
    total_price: Decimal
    items: List[OrderLine]
    order_time: datetime

    @classmethod
    def from_order(cls, order) -> "OrderDetailResponse":
        return cls(
            order_id=order.order_number,
            document_id=order.id,
            user_id=order.user_id,
            display_name=order.display_name,
            status=order.status,
            total_price=order.total_price,
            items=[OrderLine.model_validate(line) for line in order.contents],
            order_time=order.order_time,
        )
