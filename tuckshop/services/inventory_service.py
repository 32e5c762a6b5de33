import logging
from typing import List, Optional
from uuid import UUID

from tortoise.transactions import in_transaction

from tuckshop.core.errors import InventoryItemNotFound, InventoryValidationError, OrderForbidden
from tuckshop.models.inventory import InventoryItem, ItemCategory
from tuckshop.schemas.inventory import InventoryItemRequest, InventoryItemUpdate
from tuckshop.services.transitions import Caller

log = logging.getLogger("inventory_service")


def _require_staff(caller: Caller) -> None:
    if not caller.is_staff:
        raise OrderForbidden("Employee or Owner access required")


async def create_item(caller: Caller, data: InventoryItemRequest) -> InventoryItem:
    """Adds a stock-keeping record; its status is derived from the opening quantity."""
    _require_staff(caller)
    item = InventoryItem(
        name=data.name.strip(),
        description=data.description.strip(),
        category=data.category,
        price=data.price,
        cost_price=data.cost_price,
        min_stock_threshold=data.min_stock_threshold,
    )
    item.apply_stock_level(data.quantity, caller.uid)
    await item.save()
    log.info(f"Inventory item {item.id} ({item.name}) added by {caller.uid}: qty {item.quantity}, {item.status.value}")
    return item


async def get_item(caller: Caller, item_id: UUID) -> InventoryItem:
    _require_staff(caller)
    item = await InventoryItem.get_or_none(id=item_id)
    if item is None:
        raise InventoryItemNotFound(f"Inventory item {item_id} not found")
    return item


async def list_items(caller: Caller, category: Optional[ItemCategory] = None) -> List[InventoryItem]:
    _require_staff(caller)
    query = InventoryItem.all()
    if category is not None:
        query = query.filter(category=category)
    return await query.order_by("name")


def _validate_update(data: InventoryItemUpdate) -> None:
    if data.name is not None and not data.name.strip():
        raise InventoryValidationError("Name field cannot be empty")
    if data.quantity is not None and data.quantity < 0:
        raise InventoryValidationError("Quantity cannot be negative")
    if data.price is not None and data.price < 0:
        raise InventoryValidationError("Price cannot be negative")
    if data.cost_price is not None and data.cost_price < 0:
        raise InventoryValidationError("Cost cannot be negative")
    if data.min_stock_threshold is not None and data.min_stock_threshold < 0:
        raise InventoryValidationError("Minimum stock cannot be negative")


async def update_item(caller: Caller, item_id: UUID, data: InventoryItemUpdate) -> InventoryItem:
    """
    Manual edit of a stock-keeping record.

    Only provided fields change. A new quantity or threshold always re-derives
    the status through the same function the order ledger uses.
    """
    _require_staff(caller)
    _validate_update(data)

    # Same row lock as the ledger, so an edit never interleaves with an order's deduction
    async with in_transaction() as conn:
        item = await InventoryItem.filter(id=item_id).using_db(conn).select_for_update().first()
        if item is None:
            raise InventoryItemNotFound(f"Inventory item {item_id} not found")

        if data.name is not None:
            item.name = data.name.strip()
        if data.description is not None:
            item.description = data.description.strip()
        if data.category is not None:
            item.category = data.category
        if data.price is not None:
            item.price = data.price
        if data.cost_price is not None:
            item.cost_price = data.cost_price
        if data.min_stock_threshold is not None:
            item.min_stock_threshold = data.min_stock_threshold

        quantity = data.quantity if data.quantity is not None else item.quantity
        item.apply_stock_level(quantity, caller.uid)
        await item.save(using_db=conn)

    log.info(f"Inventory item {item_id} updated by {caller.uid}: qty {item.quantity}, {item.status.value}")
    return item


async def delete_item(caller: Caller, item_id: UUID) -> None:
    """
    Removes a record. Historical orders keep their snapshots; cancelling one
    later simply skips this item during restoration.
    """
    _require_staff(caller)
    deleted = await InventoryItem.filter(id=item_id).delete()
    if not deleted:
        raise InventoryItemNotFound(f"Inventory item {item_id} not found")
    log.info(f"Inventory item {item_id} deleted by {caller.uid}")
