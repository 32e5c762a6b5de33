import asyncio
import logging
from tuckshop.models.outbox import OutboxEvent
from tuckshop.consumers.sinks import get_notification_sink
from tuckshop.core.db import init_db
from tuckshop.core.config import POLLING_INTERVAL, MAX_ATTEMPTS, BATCH_SIZE, LOG_FORMAT, LOG_LEVEL, RESTORE_SWEEP_INTERVAL
from tuckshop.events.outbox_utility import NOTIFICATION_REQUESTED
from tuckshop.services.order_service import restore_outstanding_cancellations

log = logging.getLogger("outbox_poller")

RECONCILIATION_EVENTS = ("inventory.restore_failed.v1", "inventory.restore_partial.v1")
REPORTING_EVENTS = ("order.created.v1", "order.status_changed.v1")


async def dispatch_event(event: OutboxEvent):
    """
    Routes an OutboxEvent to the sink that consumes it.
    Raising marks the delivery attempt as failed; the event is retried later.
    """
    event_type = event.event_type
    payload = event.payload

    log.debug(f"Poller DISPATCHING: {event_type} (ID: {event.id.hex[:8]}...)")

    if event_type == NOTIFICATION_REQUESTED:
        await get_notification_sink().send(payload["user_id"], payload["type"], payload["message"])

    elif event_type in RECONCILIATION_EVENTS:
        # Stock that could not be put back after a cancellation; needs a human
        log.error(f"RECONCILIATION REQUIRED ({event_type}): order {payload.get('order_id')} {payload}")

    elif event_type in REPORTING_EVENTS:
        log.info(f"REPORTING: {event_type} order {payload.get('order_id')}")

    else:
        log.warning(f"No handler found for event type: {event_type}")


async def poll_outbox_for_new_events() -> int:
    """
    Queries the Outbox table for unpublished events and attempts to dispatch them.
    Returns the number of events published in this pass.
    """
    # Select events that haven't been published and haven't exceeded max attempts
    events = await OutboxEvent.filter(published=False, attempts__lt=MAX_ATTEMPTS).order_by('created_at').limit(BATCH_SIZE)

    published = 0
    for event in events:
        try:
            await dispatch_event(event)

            event.published = True
            await event.save(update_fields=['published'])
            published += 1

        except Exception as e:
            event.attempts += 1
            event.last_error = str(e)
            await event.save(update_fields=['attempts', 'last_error'])
            log.exception(f"Delivery of {event.event_type} ({event.id}) failed, attempt {event.attempts}/{MAX_ATTEMPTS}")

    return published


async def start_outbox_poller():
    """Main loop for the poller service."""
    await init_db()
    log.info("--- Outbox Poller Service Started ---")

    loop = asyncio.get_running_loop()
    next_sweep = loop.time()
    while True:
        try:
            await poll_outbox_for_new_events()
        except Exception as e:
            log.error(f"Poller encountered a critical DB error: {e}.")

        if loop.time() >= next_sweep:
            try:
                restored = await restore_outstanding_cancellations()
                if restored:
                    log.info(f"Restored stock for {restored} previously interrupted cancellation(s)")
            except Exception as e:
                log.error(f"Restore sweep failed: {e}.")
            next_sweep = loop.time() + RESTORE_SWEEP_INTERVAL

        await asyncio.sleep(POLLING_INTERVAL)

if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    try:
        asyncio.run(start_outbox_poller())
    except KeyboardInterrupt:
        log.info("Poller service stopped.")
