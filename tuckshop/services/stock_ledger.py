"""
Stock ledger: the only code that moves inventory quantities for orders.

Both operations read every referenced record in one locked batch, decide the
outcome for all lines, and only then write, inside a single transaction.
Expected business outcomes (missing item, not enough stock) come back as data;
store faults are either mapped to `processing_error` (when the ledger owns the
transaction) or left to the caller that owns it.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from tortoise.exceptions import BaseORMException, DBConnectionError, OperationalError, TransactionManagementError
from tortoise.transactions import in_transaction

from tuckshop.core.config import MAX_TRANSACTION_RETRIES
from tuckshop.models.inventory import InventoryItem
from tuckshop.schemas.stock import (
    DeductionResult,
    OrderLine,
    RestoreResult,
    StockError,
    StockErrorType,
)

log = logging.getLogger("stock_ledger")

# Store faults worth another attempt: lock timeouts, serialization failures, dropped connections.
RETRYABLE_STORE_ERRORS = (OperationalError, TransactionManagementError, DBConnectionError)
# Anything else the store or its driver can raise; not retried, reported as processing_error.
STORE_FAULTS = (BaseORMException, OSError)

CENTS = Decimal("0.01")


async def _load_records(items: Sequence[OrderLine], conn: Any) -> Dict[str, InventoryItem]:
    """Single round trip for all lines, row-locked until the transaction ends."""
    item_ids = list({line.item_id for line in items})
    records = await InventoryItem.filter(id__in=item_ids).using_db(conn).select_for_update()
    return {str(record.id): record for record in records}


def _insufficient(line: OrderLine, available: int) -> StockError:
    if available == 0:
        message = f'"{line.name}" is out of stock.'
    else:
        message = f'Only {available} "{line.name}" available, but you requested {line.quantity}.'
    return StockError(
        type=StockErrorType.INSUFFICIENT_STOCK,
        item_name=line.name,
        message=message,
        requested=line.quantity,
        available=available,
    )


def _processing_failure(message: str) -> DeductionResult:
    return DeductionResult(
        success=False,
        errors=[StockError(type=StockErrorType.PROCESSING_ERROR, item_name="Order", message=message)],
    )


async def _deduct_within(items: Sequence[OrderLine], updated_by: str, conn: Any) -> DeductionResult:
    inventory = await _load_records(items, conn)

    errors: List[StockError] = []
    remaining: Dict[str, int] = {}
    staged: Dict[str, InventoryItem] = {}
    lines: List[OrderLine] = []
    calculated_price = Decimal("0")

    for line in items:
        key = str(line.item_id)
        record = inventory.get(key)

        if record is None:
            errors.append(StockError(
                type=StockErrorType.ITEM_NOT_FOUND,
                item_name=line.name,
                message=f'"{line.name}" is no longer available in our inventory.',
            ))
            continue

        # Repeated lines for one item draw from the same remaining balance
        available = remaining.get(key, record.quantity)
        if line.quantity > available:
            errors.append(_insufficient(line, available))
            continue

        remaining[key] = available - line.quantity
        staged[key] = record
        unit_price = record.price.quantize(CENTS)
        calculated_price += unit_price * line.quantity
        lines.append(OrderLine(
            item_id=record.id,
            name=record.name,
            quantity=line.quantity,
            price_at_purchase=unit_price,
        ))

    if errors:
        log.info(f"Deduction rejected: {len(errors)} of {len(items)} line(s) failed; nothing written")
        return DeductionResult(success=False, errors=errors)

    for key, record in staged.items():
        record.apply_stock_level(remaining[key], updated_by)
        await record.save(update_fields=InventoryItem.STOCK_FIELDS, using_db=conn)

    return DeductionResult(success=True, calculated_price=calculated_price.quantize(CENTS), lines=lines)


async def _restore_within(items: Sequence[OrderLine], updated_by: str, conn: Any) -> RestoreResult:
    inventory = await _load_records(items, conn)

    skipped: List[str] = []
    touched: Dict[str, InventoryItem] = {}

    for line in items:
        key = str(line.item_id)
        record = inventory.get(key)
        if record is None:
            log.warning(
                f'Cannot restore {line.quantity} x "{line.name}" ({key}): item not found in inventory'
            )
            skipped.append(key)
            continue
        # No upper clamp: manual edits made while the order was open are kept as-is
        record.apply_stock_level(record.quantity + line.quantity, updated_by)
        touched[key] = record

    for record in touched.values():
        await record.save(update_fields=InventoryItem.STOCK_FIELDS, using_db=conn)

    return RestoreResult(success=True, skipped=skipped)


async def deduct_stock(
    items: Sequence[OrderLine],
    updated_by: str = "system",
    conn: Optional[Any] = None,
) -> DeductionResult:
    """
    Deducts every line or nothing, pricing each line from the inventory record.

    With `conn` the writes are staged on the caller's transaction and store
    exceptions propagate to the caller, which owns commit and retry. Without it
    the ledger runs its own transaction, retrying contention up to
    MAX_TRANSACTION_RETRIES before reporting a processing_error. Any other
    store or driver fault is reported as a processing_error straight away.
    """
    if not items:
        raise ValueError("deduct_stock requires at least one order line")

    if conn is not None:
        return await _deduct_within(items, updated_by, conn)

    for attempt in range(1, MAX_TRANSACTION_RETRIES + 1):
        try:
            async with in_transaction() as tx:
                return await _deduct_within(items, updated_by, tx)
        except RETRYABLE_STORE_ERRORS as e:
            log.warning(f"Stock deduction attempt {attempt}/{MAX_TRANSACTION_RETRIES} failed: {e}")
        except STORE_FAULTS:
            log.exception("Stock deduction failed on an unexpected store fault")
            return _processing_failure("Failed to update inventory. Please try again.")

    log.error("Stock deduction abandoned after exhausting retries")
    return _processing_failure("Failed to update inventory. Please try again.")


async def restore_stock(
    items: Sequence[OrderLine],
    updated_by: str = "system",
    conn: Optional[Any] = None,
) -> RestoreResult:
    """
    Puts the quantities of a cancelled order back.

    Lines whose inventory record has since been deleted are logged and listed
    in `skipped`; the rest are still restored and the result is a success.
    """
    if not items:
        return RestoreResult(success=True)

    if conn is not None:
        return await _restore_within(items, updated_by, conn)

    for attempt in range(1, MAX_TRANSACTION_RETRIES + 1):
        try:
            async with in_transaction() as tx:
                return await _restore_within(items, updated_by, tx)
        except RETRYABLE_STORE_ERRORS as e:
            log.warning(f"Stock restoration attempt {attempt}/{MAX_TRANSACTION_RETRIES} failed: {e}")
        except STORE_FAULTS:
            log.exception("Stock restoration failed on an unexpected store fault")
            return RestoreResult(success=False, error="Failed to restore inventory stock.")

    log.error("Stock restoration abandoned after exhausting retries")
    return RestoreResult(success=False, error="Failed to restore inventory stock.")


def format_stock_errors(errors: Sequence[StockError]) -> str:
    """Joins structured stock errors into one message for the customer."""
    stock_errors = [e for e in errors if e.type == StockErrorType.INSUFFICIENT_STOCK]
    missing = [e for e in errors if e.type == StockErrorType.ITEM_NOT_FOUND]
    other = [e for e in errors if e.type == StockErrorType.PROCESSING_ERROR]

    messages = []
    if stock_errors:
        messages.append(" ".join(e.message for e in stock_errors))
    if missing:
        names = ", ".join(f'"{e.item_name}"' for e in missing)
        messages.append(f"The following item(s) are no longer available: {names}.")
    if other:
        messages.append("Some items could not be processed. Please try again.")

    return " ".join(messages) or "Unable to process your order."
