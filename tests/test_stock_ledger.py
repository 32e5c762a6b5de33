import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4
from tortoise.exceptions import OperationalError

from conftest import line
from tuckshop.core.config import MAX_TRANSACTION_RETRIES
from tuckshop.models.inventory import InventoryItem, StockStatus
from tuckshop.schemas.stock import OrderLine, StockError, StockErrorType
from tuckshop.services.stock_ledger import deduct_stock, format_stock_errors, restore_stock


async def reload(item):
    return await InventoryItem.get(id=item.id)


class TestDeduct:

    @pytest.mark.asyncio
    async def test_deducts_and_prices_from_inventory(self, make_item):
        """Low-stock item stays low-stock after a partial sale; price comes from the record."""
        a = await make_item(name="A", price="2.50", quantity=5, threshold=10)
        assert a.status == StockStatus.LOW_STOCK

        result = await deduct_stock([line(a, 3)], updated_by="cust-1")

        assert result.success
        assert result.errors == []
        assert result.calculated_price == Decimal("7.50")
        stored = await reload(a)
        assert stored.quantity == 2
        assert stored.status == StockStatus.LOW_STOCK
        assert stored.updated_by == "cust-1"

    @pytest.mark.asyncio
    async def test_client_price_is_ignored(self, make_item):
        a = await make_item(name="A", price="4.00", quantity=10, threshold=1)

        result = await deduct_stock([line(a, 2, price=Decimal("0.01"))])

        assert result.calculated_price == Decimal("8.00")
        assert result.lines[0].price_at_purchase == Decimal("4.00")
        assert result.lines[0].name == "A"

    @pytest.mark.asyncio
    async def test_insufficient_stock_reports_requested_and_available(self, make_item):
        b = await make_item(name="B", quantity=2)

        result = await deduct_stock([line(b, 5)])

        assert not result.success
        [error] = result.errors
        assert error.type == StockErrorType.INSUFFICIENT_STOCK
        assert error.requested == 5
        assert error.available == 2
        assert error.message == 'Only 2 "B" available, but you requested 5.'
        assert (await reload(b)).quantity == 2

    @pytest.mark.asyncio
    async def test_zero_available_says_out_of_stock(self, make_item):
        b = await make_item(name="B", quantity=0)

        result = await deduct_stock([line(b, 1)])

        assert result.errors[0].message == '"B" is out of stock.'
        assert result.errors[0].available == 0

    @pytest.mark.asyncio
    async def test_missing_item_blocks_whole_order(self, make_item):
        a = await make_item(name="A", quantity=10)
        ghost = OrderLine(item_id=uuid4(), name="Ghost Bar", quantity=1)

        result = await deduct_stock([line(a, 3), ghost])

        assert not result.success
        assert [e.type for e in result.errors] == [StockErrorType.ITEM_NOT_FOUND]
        assert result.errors[0].item_name == "Ghost Bar"
        # All-or-nothing: the valid line was not deducted either
        assert (await reload(a)).quantity == 10

    @pytest.mark.asyncio
    async def test_every_failing_line_is_reported(self, make_item):
        a = await make_item(name="A", quantity=1)
        b = await make_item(name="B", quantity=0)
        ghost = OrderLine(item_id=uuid4(), name="Ghost", quantity=1)

        result = await deduct_stock([line(a, 2), ghost, line(b, 1)])

        assert [e.type for e in result.errors] == [
            StockErrorType.INSUFFICIENT_STOCK,
            StockErrorType.ITEM_NOT_FOUND,
            StockErrorType.INSUFFICIENT_STOCK,
        ]

    @pytest.mark.asyncio
    async def test_exact_quantity_empties_the_shelf(self, make_item):
        c = await make_item(name="C", quantity=4, threshold=2)

        result = await deduct_stock([line(c, 4)])

        assert result.success
        stored = await reload(c)
        assert stored.quantity == 0
        assert stored.status == StockStatus.OUT_OF_STOCK

    @pytest.mark.asyncio
    async def test_repeated_lines_share_the_balance(self, make_item):
        a = await make_item(name="A", quantity=5)

        result = await deduct_stock([line(a, 3), line(a, 3)])

        assert not result.success
        assert result.errors[0].available == 2
        assert (await reload(a)).quantity == 5

    @pytest.mark.asyncio
    async def test_store_failure_becomes_processing_error(self, make_item):
        a = await make_item(name="A", quantity=5)
        failing = MagicMock(side_effect=OperationalError("database is locked"))

        with patch("tuckshop.services.stock_ledger.in_transaction", failing):
            result = await deduct_stock([line(a, 1)])

        assert not result.success
        assert result.errors[0].type == StockErrorType.PROCESSING_ERROR
        assert failing.call_count == MAX_TRANSACTION_RETRIES
        assert (await reload(a)).quantity == 5

    @pytest.mark.asyncio
    async def test_unexpected_store_fault_becomes_processing_error(self, make_item):
        a = await make_item(name="A", quantity=5)

        with patch.object(InventoryItem, "save", AsyncMock(side_effect=ConnectionResetError("peer reset"))) as failing:
            result = await deduct_stock([line(a, 1)])

        assert not result.success
        assert result.errors[0].type == StockErrorType.PROCESSING_ERROR
        assert result.errors[0].message == "Failed to update inventory. Please try again."
        # Not a contention error, so no second attempt
        assert failing.await_count == 1
        assert (await reload(a)).quantity == 5

    @pytest.mark.asyncio
    async def test_prices_keep_two_decimal_places(self, make_item):
        a = await make_item(name="A", price="2.5", quantity=5)

        result = await deduct_stock([line(a, 2)])

        assert result.lines[0].model_dump(mode="json")["price_at_purchase"] == "2.50"
        assert str(result.calculated_price) == "5.00"

    @pytest.mark.asyncio
    async def test_empty_order_is_a_programming_error(self):
        with pytest.raises(ValueError):
            await deduct_stock([])


class TestRestore:

    @pytest.mark.asyncio
    async def test_restores_and_recomputes_status(self, make_item):
        a = await make_item(name="A", quantity=0, threshold=3)

        result = await restore_stock([line(a, 5)], updated_by="emp-1")

        assert result.success
        assert result.skipped == []
        stored = await reload(a)
        assert stored.quantity == 5
        assert stored.status == StockStatus.IN_STOCK
        assert stored.updated_by == "emp-1"

    @pytest.mark.asyncio
    async def test_deleted_item_is_skipped_not_fatal(self, make_item):
        a = await make_item(name="A", quantity=1)
        b = await make_item(name="B", quantity=1)
        await b.delete()

        result = await restore_stock([line(a, 2), line(b, 3)])

        assert result.success
        assert result.partial
        assert result.skipped == [str(b.id)]
        assert (await reload(a)).quantity == 3

    @pytest.mark.asyncio
    async def test_unexpected_store_fault_reports_error(self, make_item):
        a = await make_item(name="A", quantity=1)

        with patch.object(InventoryItem, "save", AsyncMock(side_effect=ConnectionResetError("peer reset"))):
            result = await restore_stock([line(a, 1)])

        assert not result.success
        assert result.error == "Failed to restore inventory stock."
        assert (await reload(a)).quantity == 1

    @pytest.mark.asyncio
    async def test_deduct_then_restore_conserves_quantities(self, make_item):
        a = await make_item(name="A", quantity=7)
        b = await make_item(name="B", quantity=3)
        lines = [line(a, 3), line(b, 2)]

        assert (await deduct_stock(lines)).success
        assert (await restore_stock(lines)).success

        assert (await reload(a)).quantity == 7
        assert (await reload(b)).quantity == 3

    @pytest.mark.asyncio
    async def test_store_failure_reports_error(self, make_item):
        a = await make_item(name="A", quantity=1)

        with patch("tuckshop.services.stock_ledger.in_transaction",
                   MagicMock(side_effect=OperationalError("connection reset"))):
            result = await restore_stock([line(a, 1)])

        assert not result.success
        assert result.error == "Failed to restore inventory stock."
        assert (await reload(a)).quantity == 1


def test_format_stock_errors_groups_by_type():
    errors = [
        StockError(type=StockErrorType.INSUFFICIENT_STOCK, item_name="A", message='"A" is out of stock.'),
        StockError(type=StockErrorType.ITEM_NOT_FOUND, item_name="Ghost", message="gone"),
        StockError(type=StockErrorType.ITEM_NOT_FOUND, item_name="Phantom", message="gone"),
    ]

    assert format_stock_errors(errors) == (
        '"A" is out of stock. The following item(s) are no longer available: "Ghost", "Phantom".'
    )
    assert format_stock_errors([]) == "Unable to process your order."
