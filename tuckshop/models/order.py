from enum import Enum
from tortoise import fields, models
import uuid


class OrderStatus(str, Enum):
    PENDING = "pending"  # Created, stock already deducted
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"  # Stock restored
    CANCELLED_ACKNOWLEDGED = "cancelled-acknowledged"


class Order(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    # Public, strictly increasing identifier; not the storage key
    order_number = fields.IntField(unique=True)
    order_time = fields.DatetimeField(auto_now_add=True)
    user_id = fields.CharField(max_length=128)
    display_name = fields.CharField(max_length=255)
    # Snapshot of {item_id, name, quantity, price_at_purchase} taken at creation
    contents = fields.JSONField()
    total_price = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    status = fields.CharEnumField(OrderStatus, max_length=32, default=OrderStatus.PENDING)
    # Set in the same transaction that puts a cancelled order's stock back
    stock_restored = fields.BooleanField(default=False)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "orders"
        indexes = [
            ("status",),                 # Status-based filtering
            ("user_id",),                # User order history
            ("order_time",),             # Time-based queries
        ]


class OrderSequence(models.Model):
    """Last issued order number, locked and bumped inside each creation transaction."""
    name = fields.CharField(max_length=32, primary_key=True)
    value = fields.IntField(default=0)

    class Meta:
        table = "order_sequences"
