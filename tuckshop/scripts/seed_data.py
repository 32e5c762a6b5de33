# tuckshop/scripts/seed_data.py
import asyncio
import logging
from decimal import Decimal
from typing import List
from tuckshop.core.config import LOG_FORMAT
from tuckshop.core.db import init_db, close_db
from tuckshop.models.inventory import InventoryItem, ItemCategory

log = logging.getLogger("seed")

DEMO_ITEMS = [
    # name, category, price, cost, quantity, threshold
    ("Cheese Toastie", ItemCategory.FOOD, "4.50", "1.80", 40, 10),
    ("Orange Juice", ItemCategory.DRINK, "2.50", "0.90", 60, 15),
    ("Salted Crisps", ItemCategory.SNACK, "1.20", "0.40", 8, 10),
    ("Hand Sanitiser", ItemCategory.HEALTH_AND_WELLNESS, "3.00", "1.10", 0, 5),
    ("Dish Sponge", ItemCategory.HOME_CARE, "1.50", "0.50", 25, 5),
]

async def seed() -> List[InventoryItem]:
    """Creates or resets the demo inventory (idempotent by name)."""
    items = []
    for name, category, price, cost, qty, threshold in DEMO_ITEMS:
        item, _ = await InventoryItem.get_or_create(
            name=name,
            defaults={
                "category": category,
                "price": Decimal(price),
                "cost_price": Decimal(cost),
                "min_stock_threshold": threshold,
            },
        )
        # If existing, reset the stock level (status follows)
        item.apply_stock_level(qty, "seed")
        await item.save()
        log.info(f"{item.name}: {item.id} qty={item.quantity} ({item.status.value})")
        items.append(item)
    return items

async def main():
    await init_db()
    await seed()
    await close_db()

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    asyncio.run(main())
