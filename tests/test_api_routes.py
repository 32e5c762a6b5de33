import pytest
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from fastapi.testclient import TestClient
from unittest.mock import patch, AsyncMock
from uuid import uuid4

from tuckshop.core.errors import (
    InvalidTransition,
    OrderForbidden,
    OrderNotFound,
    OrderProcessingError,
    StockUnavailable,
)
from tuckshop.main import app
from tuckshop.models.inventory import ItemCategory, StockStatus
from tuckshop.models.order import OrderStatus
from tuckshop.schemas.stock import StockError, StockErrorType

CUSTOMER = {"X-User-Id": "cust-1", "X-User-Role": "customer"}
EMPLOYEE = {"X-User-Id": "emp-1", "X-User-Role": "employee"}


@pytest.fixture
def client():
    return TestClient(app)


def order_body(items=None):
    if items is None:
        items = [{"item_id": str(uuid4()), "name": "Orange Juice", "quantity": 2, "price_at_purchase": "0.01"}]
    return {"user_id": "cust-1", "display_name": "Sam", "items": items, "total_price": "0.02"}


def fake_order(status=OrderStatus.PENDING):
    return SimpleNamespace(
        id=uuid4(),
        order_number=7,
        user_id="cust-1",
        total_price=Decimal("5.00"),
        status=status,
    )


class TestOrderRoutes:
    def test_create_order_success(self, client):
        """Order creation returns 201 with the server-side total"""
        with patch('tuckshop.api.v1.orders.place_order', new=AsyncMock(return_value=fake_order())) as mock_place:
            response = client.post("/api/v1/orders/", json=order_body(), headers=CUSTOMER)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["order_id"] == 7
        assert data["status"] == "pending"
        assert Decimal(data["total_price"]) == Decimal("5.00")
        caller = mock_place.await_args.args[0]
        assert caller.uid == "cust-1"
        assert mock_place.await_args.kwargs["user_id"] == "cust-1"

    def test_create_order_empty_items(self, client):
        response = client.post("/api/v1/orders/", json=order_body(items=[]), headers=CUSTOMER)
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["error"]["code"] == "validation_error"

    def test_missing_identity_is_unauthorized(self, client):
        response = client.post("/api/v1/orders/", json=order_body())
        assert response.status_code == 401

    def test_unknown_role_is_forbidden(self, client):
        headers = {"X-User-Id": "cust-1", "X-User-Role": "admin"}
        response = client.post("/api/v1/orders/", json=order_body(), headers=headers)
        assert response.status_code == 403

    def test_non_positive_quantity_is_rejected(self, client):
        items = [{"item_id": str(uuid4()), "name": "Orange Juice", "quantity": 0}]
        response = client.post("/api/v1/orders/", json=order_body(items=items), headers=CUSTOMER)
        assert response.status_code == 422

    def test_stock_unavailable_carries_line_errors(self, client):
        errors = [StockError(
            type=StockErrorType.INSUFFICIENT_STOCK,
            item_name="B",
            message='Only 2 "B" available, but you requested 5.',
            requested=5,
            available=2,
        )]
        exc = StockUnavailable(errors[0].message, errors)
        with patch('tuckshop.api.v1.orders.place_order', new=AsyncMock(side_effect=exc)):
            response = client.post("/api/v1/orders/", json=order_body(), headers=CUSTOMER)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "stock_unavailable"
        assert error["message"] == 'Only 2 "B" available, but you requested 5.'
        assert error["details"] == [{
            "type": "insufficient_stock",
            "item_name": "B",
            "message": 'Only 2 "B" available, but you requested 5.',
            "requested": 5,
            "available": 2,
        }]

    def test_processing_error_is_503(self, client):
        exc = OrderProcessingError("Failed to create order. Please try again.")
        with patch('tuckshop.api.v1.orders.place_order', new=AsyncMock(side_effect=exc)):
            response = client.post("/api/v1/orders/", json=order_body(), headers=CUSTOMER)
        assert response.status_code == 503

    def test_unexpected_fault_on_create_is_retryable(self, client):
        with patch('tuckshop.api.v1.orders.place_order', new=AsyncMock(side_effect=ConnectionResetError("peer reset"))):
            response = client.post("/api/v1/orders/", json=order_body(), headers=CUSTOMER)

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "processing_error"

    def test_unexpected_fault_on_status_update_is_retryable(self, client):
        with patch('tuckshop.api.v1.orders.update_order_status', new=AsyncMock(side_effect=ConnectionResetError("peer reset"))):
            response = client.patch("/api/v1/orders/7/status", json={"status": "cancelled"}, headers=EMPLOYEE)

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "processing_error"

    def test_cancel_order(self, client):
        updated = fake_order(status=OrderStatus.CANCELLED)
        with patch('tuckshop.api.v1.orders.update_order_status', new=AsyncMock(return_value=updated)) as mock_update:
            response = client.patch("/api/v1/orders/7/status", json={"status": "cancelled"}, headers=CUSTOMER)

        assert response.status_code == 200
        assert response.json()["data"] == {"success": True, "order_id": 7, "status": "cancelled"}
        assert mock_update.await_args.args[1:] == (7, OrderStatus.CANCELLED)

    @pytest.mark.parametrize("exc,expected", [
        (OrderForbidden("Cannot modify other users' orders"), 403),
        (OrderNotFound("Order 7 not found"), 404),
        (InvalidTransition("Cannot move order 7 from completed to cancelled"), 409),
    ])
    def test_status_update_errors(self, client, exc, expected):
        with patch('tuckshop.api.v1.orders.update_order_status', new=AsyncMock(side_effect=exc)):
            response = client.patch("/api/v1/orders/7/status", json={"status": "cancelled"}, headers=EMPLOYEE)

        assert response.status_code == expected
        assert response.json()["error"]["code"] == exc.code

    def test_unknown_status_value_is_rejected(self, client):
        response = client.patch("/api/v1/orders/7/status", json={"status": "shipped"}, headers=EMPLOYEE)
        assert response.status_code == 422


class TestInventoryRoutes:
    def test_get_item(self, client):
        item = SimpleNamespace(
            id=uuid4(),
            name="Orange Juice",
            description="Freshly squeezed",
            category=ItemCategory.DRINK,
            price=Decimal("2.50"),
            cost_price=Decimal("1.00"),
            quantity=4,
            min_stock_threshold=10,
            status=StockStatus.LOW_STOCK,
            last_updated=datetime(2026, 1, 5, 9, 30),
            updated_by="emp-1",
        )
        with patch('tuckshop.services.inventory_service.get_item', new=AsyncMock(return_value=item)):
            response = client.get(f"/api/v1/inventory/{item.id}", headers=EMPLOYEE)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Orange Juice"
        assert data["status"] == "low-stock"
        assert data["quantity"] == 4
