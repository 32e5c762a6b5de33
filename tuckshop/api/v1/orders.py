import logging
from fastapi import APIRouter, Depends, status
from typing import Optional

from tuckshop.api.deps import get_caller
from tuckshop.core.errors import OrderProcessingError, TuckshopError
from tuckshop.schemas.response import SuccessResponse
from tuckshop.schemas.order import (
    OrderDetailResponse,
    OrderPlacementResponse,
    OrderRequest,
    OrderStatusResponse,
    OrderStatusUpdate,
)
from tuckshop.services.order_service import (
    delete_order,
    get_order,
    list_orders,
    place_order,
    update_order_status,
)
from tuckshop.services.transitions import Caller

router = APIRouter()
log = logging.getLogger("uvicorn")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(request_data: OrderRequest, caller: Caller = Depends(get_caller)):
    """
    Places a new order. Stock is deducted and the total priced server-side
    before the order exists; any client-supplied total is ignored.
    """
    try:
        order = await place_order(
            caller,
            user_id=request_data.user_id,
            display_name=request_data.display_name,
            items=request_data.items,
        )
        log.info(f"Order {order.order_number} placed successfully for user {order.user_id}.")
        data = OrderPlacementResponse(
            order_id=order.order_number,
            document_id=order.id,
            total_price=order.total_price,
            status=order.status,
        ).model_dump(mode="json")
        return SuccessResponse(data=data)
    except TuckshopError as e:
        log.warning(f"Order rejected for user {request_data.user_id}: {e}")
        raise
    except Exception as e:
        log.exception(f"Error placing order: {e}")
        raise OrderProcessingError("Failed to create order. Please try again.")


@router.get("/", response_model=SuccessResponse)
async def list_orders_endpoint(user_id: Optional[str] = None, caller: Caller = Depends(get_caller)):
    """Lists orders: all of them for staff, only the caller's own for customers."""
    orders = await list_orders(caller, user_id=user_id)
    data = [OrderDetailResponse.from_order(o).model_dump(mode="json") for o in orders]
    return SuccessResponse(data=data)


@router.get("/{order_number}", response_model=SuccessResponse)
async def get_order_endpoint(order_number: int, caller: Caller = Depends(get_caller)):
    """Fetches details for a specific order."""
    order = await get_order(caller, order_number)
    return SuccessResponse(data=OrderDetailResponse.from_order(order).model_dump(mode="json"))


@router.patch("/{order_number}/status", response_model=SuccessResponse)
async def update_status_endpoint(
    order_number: int,
    payload: OrderStatusUpdate,
    caller: Caller = Depends(get_caller),
):
    """
    Updates status (e.g. 'in-progress', 'completed', 'cancelled').
    Cancelling a pending or in-progress order puts its stock back.
    """
    try:
        order = await update_order_status(caller, order_number, payload.status)
        data = OrderStatusResponse(order_id=order.order_number, status=order.status).model_dump(mode="json")
        return SuccessResponse(data=data)
    except TuckshopError as e:
        log.warning(f"Status update on order {order_number} rejected: {e.code}: {e}")
        raise
    except Exception as e:
        log.exception(f"Error updating order status: {e}")
        raise OrderProcessingError("Failed to update order status. Please try again.")


@router.delete("/{order_number}", response_model=SuccessResponse)
async def delete_order_endpoint(order_number: int, caller: Caller = Depends(get_caller)):
    """Hard-deletes an order record (staff only). Does not touch inventory."""
    await delete_order(caller, order_number)
    return SuccessResponse(data={"order_id": order_number})
