import logging
from fastapi import APIRouter, Depends, status
from typing import Optional
from uuid import UUID

from tuckshop.api.deps import get_caller
from tuckshop.models.inventory import ItemCategory
from tuckshop.schemas.inventory import InventoryItemRequest, InventoryItemUpdate, InventoryResponse
from tuckshop.schemas.response import SuccessResponse
from tuckshop.services import inventory_service
from tuckshop.services.transitions import Caller

log = logging.getLogger("uvicorn")

router = APIRouter()


@router.get("/", response_model=SuccessResponse)
async def list_inventory(category: Optional[ItemCategory] = None, caller: Caller = Depends(get_caller)):
    """Lists all stock-keeping records, optionally for one category."""
    items = await inventory_service.list_items(caller, category=category)
    return SuccessResponse(data=[InventoryResponse.from_item(i).model_dump(mode="json") for i in items])


@router.get("/{item_id}", response_model=SuccessResponse)
async def get_inventory_item(item_id: UUID, caller: Caller = Depends(get_caller)):
    """Fetches the stock record for a specific item."""
    item = await inventory_service.get_item(caller, item_id)
    return SuccessResponse(data=InventoryResponse.from_item(item).model_dump(mode="json"))


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_inventory_item(item_data: InventoryItemRequest, caller: Caller = Depends(get_caller)):
    """
    Adds a new item with its opening stock. Status is derived, never supplied.
    """
    item = await inventory_service.create_item(caller, item_data)
    return SuccessResponse(data={
        "message": f"Successfully added '{item.name}'.",
        "item": InventoryResponse.from_item(item).model_dump(mode="json"),
    })


@router.patch("/{item_id}", response_model=SuccessResponse)
async def update_inventory_item(item_id: UUID, item_data: InventoryItemUpdate, caller: Caller = Depends(get_caller)):
    """Manual edit; only the provided fields change."""
    item = await inventory_service.update_item(caller, item_id, item_data)
    return SuccessResponse(data=InventoryResponse.from_item(item).model_dump(mode="json"))


@router.delete("/{item_id}", response_model=SuccessResponse)
async def delete_inventory_item(item_id: UUID, caller: Caller = Depends(get_caller)):
    await inventory_service.delete_item(caller, item_id)
    return SuccessResponse(data={"item_id": str(item_id)})
