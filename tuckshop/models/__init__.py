# tuckshop/models/__init__.py
from .inventory import InventoryItem, ItemCategory, StockStatus, derive_status
from .order import Order, OrderSequence, OrderStatus
from .outbox import OutboxEvent

# Export all models
__all__ = [
    "InventoryItem",
    "ItemCategory",
    "StockStatus",
    "derive_status",
    "Order",
    "OrderSequence",
    "OrderStatus",
    "OutboxEvent",
]
