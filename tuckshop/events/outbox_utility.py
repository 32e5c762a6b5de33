import logging
from typing import Dict, Any, Optional
from tuckshop.models.outbox import OutboxEvent

log = logging.getLogger("outbox")

NOTIFICATION_REQUESTED = "notification.requested.v1"

async def create_outbox_event(
    aggregate_type: str,
    aggregate_id: Optional[Any],
    event_type: str,
    payload: Dict[str, Any],
    conn: Any = None
) -> OutboxEvent:
    """
    Creates a new Outbox event record, on the provided connection if one is given.
    """
    return await OutboxEvent.create(
        aggregate_type=aggregate_type,
        aggregate_id=str(aggregate_id) if aggregate_id is not None else None,
        event_type=event_type,
        payload=payload,
        published=False,
        attempts=0,
        using_db=conn
    )


async def emit_event(
    aggregate_type: str,
    aggregate_id: Optional[Any],
    event_type: str,
    payload: Dict[str, Any],
) -> bool:
    """
    Fire-and-forget emission used after a core transaction has committed.

    A failure here is logged and reported as False; it must never undo or fail
    the order/inventory change that triggered it.
    """
    try:
        await create_outbox_event(aggregate_type, aggregate_id, event_type, payload)
        return True
    except Exception:
        log.exception(f"Failed to record event {event_type} for {aggregate_type} {aggregate_id}")
        return False


async def notify_user(user_id: str, notification_type: str, message: str) -> bool:
    """Queues a user-facing notification for the notification sink."""
    return await emit_event(
        aggregate_type="user",
        aggregate_id=user_id,
        event_type=NOTIFICATION_REQUESTED,
        payload={"user_id": user_id, "type": notification_type, "message": message},
    )
