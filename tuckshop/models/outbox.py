from tortoise import fields, models
import uuid


class OutboxEvent(models.Model):
    """
    Events handed to the notification and reporting sinks.

    Rows are written after the order/inventory transaction has committed, so a
    failing sink (or a failing insert here) can never undo a stock movement.
    The poller drains the table and records delivery attempts.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    aggregate_type = fields.CharField(max_length=64) # e.g., 'order', 'inventory', 'user'
    aggregate_id = fields.CharField(max_length=128, null=True) # ID of the entity that generated the event
    event_type = fields.CharField(max_length=128) # e.g., 'order.created.v1'
    payload = fields.JSONField() # The actual event data
    published = fields.BooleanField(default=False)
    attempts = fields.IntField(default=0)
    last_error = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "outbox_events"
        indexes = [
            ("published", "attempts"),
        ]
