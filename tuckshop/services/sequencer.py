import logging
from typing import Any

from tuckshop.core.config import ORDER_SEQUENCE_NAME
from tuckshop.models.order import Order, OrderSequence

log = logging.getLogger("order_sequencer")


async def next_order_number(conn: Any) -> int:
    """
    Mints the next public order number inside the caller's transaction.

    The counter row is locked for the rest of the transaction, so two creations
    can never read the same value. The first call seeds the counter from the
    highest existing order number; if two first calls race, the loser fails on
    the primary key and the caller's retry picks up the seeded row.
    """
    sequence = await (
        OrderSequence.filter(name=ORDER_SEQUENCE_NAME)
        .using_db(conn)
        .select_for_update()
        .first()
    )

    if sequence is None:
        latest = await Order.all().using_db(conn).order_by("-order_number").first()
        start = latest.order_number if latest else 0
        sequence = await OrderSequence.create(name=ORDER_SEQUENCE_NAME, value=start + 1, using_db=conn)
        log.info(f"Order sequence seeded at {sequence.value}")
        return sequence.value

    sequence.value += 1
    await sequence.save(update_fields=["value"], using_db=conn)
    return sequence.value
