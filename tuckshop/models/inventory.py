from enum import Enum
from tortoise import fields, models
import uuid

from tuckshop.core.config import DEFAULT_MIN_STOCK_THRESHOLD


class ItemCategory(str, Enum):
    FOOD = "food"
    DRINK = "drink"
    SNACK = "snack"
    HEALTH_AND_WELLNESS = "health-and-wellness"
    HOME_CARE = "home-care"


class StockStatus(str, Enum):
    IN_STOCK = "in-stock"
    LOW_STOCK = "low-stock"
    OUT_OF_STOCK = "out-of-stock"


def derive_status(quantity: int, threshold: int) -> StockStatus:
    """Classifies a stock level. The only place status is ever computed."""
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


class InventoryItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    description = fields.TextField(default="")
    category = fields.CharEnumField(ItemCategory, max_length=32)
    price = fields.DecimalField(max_digits=12, decimal_places=2)
    cost_price = fields.DecimalField(max_digits=12, decimal_places=2, default=0)
    quantity = fields.IntField(default=0)
    min_stock_threshold = fields.IntField(default=DEFAULT_MIN_STOCK_THRESHOLD) # Low-stock boundary
    status = fields.CharEnumField(StockStatus, max_length=16, default=StockStatus.OUT_OF_STOCK)
    last_updated = fields.DatetimeField(auto_now=True)
    updated_by = fields.CharField(max_length=128, default="system")

    # Fields touched by every stock movement; pass as update_fields on save.
    STOCK_FIELDS = ["quantity", "status", "last_updated", "updated_by"]

    class Meta:
        table = "inventory"
        indexes = [
            ("category",),
            ("status",),
        ]

    def apply_stock_level(self, quantity: int, updated_by: str) -> None:
        """Sets a new quantity and keeps the derived status and audit fields in step."""
        self.quantity = quantity
        self.status = derive_status(quantity, self.min_stock_threshold)
        self.updated_by = updated_by
