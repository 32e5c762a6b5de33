import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from tuckshop.core.config import MAX_TRANSACTION_RETRIES
from tuckshop.core.errors import (
    InvalidTransition,
    OrderForbidden,
    OrderNotFound,
    OrderProcessingError,
    OrderValidationError,
    StockUnavailable,
)
from tuckshop.events.outbox_utility import emit_event, notify_user
from tuckshop.models.order import Order, OrderStatus
from tuckshop.schemas.stock import OrderLine, RestoreResult
from tuckshop.services.sequencer import next_order_number
from tuckshop.services.stock_ledger import (
    RETRYABLE_STORE_ERRORS,
    STORE_FAULTS,
    deduct_stock,
    format_stock_errors,
    restore_stock,
)
from tuckshop.services.transitions import (
    CANCELLED_STATES,
    Caller,
    can_transition,
    releases_stock,
)

log = logging.getLogger("order_service")

# IntegrityError shows up when two first-ever orders race to seed the sequence
CONTENTION_ERRORS = RETRYABLE_STORE_ERRORS + (IntegrityError,)

T = TypeVar("T")


async def _run_in_transaction(description: str, work: Callable[[Any], Awaitable[T]]) -> T:
    """
    Runs `work(conn)` in one transaction, retrying store contention.

    Business exceptions raised by `work` roll the transaction back and
    propagate untouched; only contention is retried. Any other store fault
    becomes OrderProcessingError.
    """
    for attempt in range(1, MAX_TRANSACTION_RETRIES + 1):
        try:
            async with in_transaction() as conn:
                return await work(conn)
        except CONTENTION_ERRORS as e:
            log.warning(f"{description}: attempt {attempt}/{MAX_TRANSACTION_RETRIES} failed: {e}")
        except STORE_FAULTS:
            log.exception(f"{description}: unexpected store fault")
            raise OrderProcessingError(f"Failed to {description}. Please try again.")
    log.error(f"{description}: giving up after {MAX_TRANSACTION_RETRIES} attempts")
    raise OrderProcessingError(f"Failed to {description}. Please try again.")


def _validate_order_input(display_name: str, items: Sequence[OrderLine]) -> None:
    if not display_name or not display_name.strip():
        raise OrderValidationError("display_name is required")
    if not items:
        raise OrderValidationError("Order must contain items.")
    for line in items:
        if line.quantity <= 0:
            raise OrderValidationError(f'Quantity for "{line.name}" must be a positive integer')


async def place_order(caller: Caller, user_id: str, display_name: str, items: Sequence[OrderLine]) -> Order:
    """
    Deducts stock, mints an order number and stores the order, all in one transaction.

    The stored total is the ledger's price from the inventory records; any
    price the client sent is ignored. When any line cannot be deducted nothing
    is written and StockUnavailable carries the per-line errors.
    """
    if caller.uid != user_id:
        raise OrderForbidden("Cannot create orders for other users")
    _validate_order_input(display_name, items)

    async def create(conn) -> Order:
        stock = await deduct_stock(items, updated_by=caller.uid, conn=conn)
        if not stock.success:
            raise StockUnavailable(format_stock_errors(stock.errors), stock.errors)

        order_number = await next_order_number(conn)
        return await Order.create(
            order_number=order_number,
            user_id=user_id,
            display_name=display_name.strip(),
            contents=[line.model_dump(mode="json") for line in stock.lines],
            total_price=stock.calculated_price,
            status=OrderStatus.PENDING,
            using_db=conn,
        )

    order = await _run_in_transaction("create order", create)
    log.info(
        f"Order {order.order_number} ({order.id}) created for user {user_id}: "
        f"{len(items)} line(s), total {order.total_price}"
    )

    await emit_event(
        aggregate_type="order",
        aggregate_id=order.id,
        event_type="order.created.v1",
        payload={
            "order_id": order.order_number,
            "document_id": str(order.id),
            "user_id": user_id,
            "total_price": str(order.total_price),
            "items": order.contents,
        },
    )
    return order


def _check_transition(caller: Caller, order: Order, new_status: OrderStatus) -> bool:
    """
    Raises if `caller` may not move `order` to `new_status`.

    Returns True when the request is an idempotent repeat (staff cancelling an
    order that is already cancelled) and nothing should change.
    """
    if not caller.is_staff:
        if order.user_id != caller.uid:
            raise OrderForbidden("Cannot modify other users' orders")
        if not can_transition(caller.role, order.status, new_status):
            raise OrderForbidden("Customers can only cancel their own pending orders")
        return False

    if new_status == OrderStatus.CANCELLED and order.status in CANCELLED_STATES:
        return True
    if not can_transition(caller.role, order.status, new_status):
        raise InvalidTransition(
            f"Cannot move order {order.order_number} from {order.status.value} to {new_status.value}"
        )
    return False


async def _restore_cancelled_order(order: Order, updated_by: str) -> RestoreResult:
    """
    Puts a cancelled order's stock back. Never raises: the cancellation stands
    whatever happens here, and failures are surfaced for reconciliation.

    The stock write and the order's `stock_restored` flag commit together, so
    a restore interrupted after the cancellation committed is picked up by
    `restore_outstanding_cancellations` and never applied twice.
    """
    lines = [OrderLine.model_validate(line) for line in order.contents]

    async def restore(conn) -> RestoreResult:
        locked = await Order.filter(id=order.id).using_db(conn).select_for_update().first()
        if locked is None or locked.stock_restored:
            return RestoreResult(success=True)
        outcome = await restore_stock(lines, updated_by=updated_by, conn=conn)
        if outcome.success:
            locked.stock_restored = True
            await locked.save(update_fields=["stock_restored"], using_db=conn)
        return outcome

    try:
        result = await _run_in_transaction("restore inventory stock", restore)
    except Exception as e:
        log.exception(f"Unexpected error restoring stock for order {order.order_number}")
        result = RestoreResult(success=False, error=str(e))

    if not result.success:
        log.error(
            f"Order {order.order_number} cancelled but inventory was NOT restored "
            f"({result.error}); manual reconciliation required"
        )
        await emit_event(
            aggregate_type="order",
            aggregate_id=order.id,
            event_type="inventory.restore_failed.v1",
            payload={"order_id": order.order_number, "error": result.error, "items": order.contents},
        )
    elif result.skipped:
        log.warning(
            f"Order {order.order_number} cancelled; stock for deleted item(s) {result.skipped} could not be restored"
        )
        await emit_event(
            aggregate_type="order",
            aggregate_id=order.id,
            event_type="inventory.restore_partial.v1",
            payload={"order_id": order.order_number, "skipped_item_ids": result.skipped},
        )
    else:
        log.info(f"Inventory restored for cancelled order {order.order_number}")
    return result


async def update_order_status(caller: Caller, order_number: int, new_status: OrderStatus) -> Order:
    """
    Moves an order through its lifecycle on behalf of `caller`.

    Entering `cancelled` from `pending` or `in-progress` restores stock exactly
    once: the status is re-read under a row lock, so of two racing cancellations
    only one performs the transition.
    """
    order = await Order.get_or_none(order_number=order_number)
    if order is None:
        raise OrderNotFound(f"Order {order_number} not found")
    if _check_transition(caller, order, new_status):
        log.info(f"Order {order_number} already {order.status.value}; cancellation is a no-op")
        return order

    async def transition(conn):
        locked = await Order.filter(id=order.id).using_db(conn).select_for_update().first()
        if locked is None:
            raise OrderNotFound(f"Order {order_number} not found")
        previous = locked.status
        if previous != order.status and _check_transition(caller, locked, new_status):
            return locked, previous, False
        locked.status = new_status
        await locked.save(update_fields=["status", "updated_at"], using_db=conn)
        return locked, previous, True

    order, previous, changed = await _run_in_transaction("update order status", transition)
    if not changed:
        return order

    log.info(f"Order {order_number} moved from {previous.value} to {new_status.value} by {caller.role.value} {caller.uid}")

    if releases_stock(previous, new_status):
        await _restore_cancelled_order(order, caller.uid)

    if new_status == OrderStatus.CANCELLED and caller.is_staff and order.user_id != caller.uid:
        await notify_user(
            order.user_id,
            "order-cancelled",
            f"Your order #{order.order_number} has been cancelled by the staff.",
        )

    await emit_event(
        aggregate_type="order",
        aggregate_id=order.id,
        event_type="order.status_changed.v1",
        payload={
            "order_id": order.order_number,
            "old_status": previous.value,
            "new_status": new_status.value,
            "user_id": order.user_id,
            "changed_by": caller.uid,
        },
    )
    return order


async def restore_outstanding_cancellations() -> int:
    """
    Retries stock restoration for cancelled orders whose restore never
    committed (process died after the status change, or the restore failed).
    Returns the number of orders whose stock is now back.
    """
    pending = await Order.filter(status__in=list(CANCELLED_STATES), stock_restored=False).order_by("order_number")
    restored = 0
    for order in pending:
        log.warning(f"Order {order.order_number} is {order.status.value} but its stock was never restored; retrying")
        result = await _restore_cancelled_order(order, "system")
        if result.success:
            restored += 1
    return restored


async def get_order(caller: Caller, order_number: int) -> Order:
    order = await Order.get_or_none(order_number=order_number)
    if order is None:
        raise OrderNotFound(f"Order {order_number} not found")
    if not caller.is_staff and order.user_id != caller.uid:
        raise OrderForbidden("Cannot view other users' orders")
    return order


async def list_orders(caller: Caller, user_id: Optional[str] = None) -> List[Order]:
    """Staff see every order (optionally one user's); customers only their own. Newest first."""
    if not caller.is_staff:
        if user_id is not None and user_id != caller.uid:
            raise OrderForbidden("Cannot view other users' orders")
        user_id = caller.uid

    query = Order.all()
    if user_id is not None:
        query = query.filter(user_id=user_id)
    return await query.order_by("-order_number")


async def delete_order(caller: Caller, order_number: int) -> None:
    """
    Hard-deletes an order record. Staff only; inventory is not touched, the
    order is expected to be closed (completed or cancelled) already.
    """
    if not caller.is_staff:
        raise OrderForbidden("Employee or Owner access required")
    deleted = await Order.filter(order_number=order_number).delete()
    if not deleted:
        raise OrderNotFound(f"Order {order_number} not found")
    log.info(f"Order {order_number} deleted by {caller.uid}")
