"""
Stock alert generation.

Out of stock is CRITICAL; at or below the item's own min_stock is LOW.
"""
from typing import Iterable, List

from bookledger.schemas.inventory import ItemRecord, StockAlert, StockStatus


def stock_status(item: ItemRecord) -> StockStatus:
    if item.stock_quantity == 0:
        return StockStatus.CRITICAL
    if item.stock_quantity <= item.min_stock:
        return StockStatus.LOW
    return StockStatus.NORMAL


def check_stock_alerts(items: Iterable[ItemRecord]) -> List[StockAlert]:
    """Alerts for every item that is out of stock or below its reorder level"""
    alerts = []
    for item in items:
        level = stock_status(item)
        if level == StockStatus.CRITICAL:
            message = f"{item.title} ({item.class_level}) is OUT OF STOCK"
        elif level == StockStatus.LOW:
            message = (
                f"{item.title} ({item.class_level}) stock is LOW: "
                f"{item.stock_quantity} copies (threshold: {item.min_stock})"
            )
        else:
            continue
        alerts.append(StockAlert(
            item_id=item.id,
            title=item.title,
            stock_quantity=item.stock_quantity,
            threshold=item.min_stock,
            level=level,
            message=message,
        ))
    # Critical first
    alerts.sort(key=lambda a: (a.level != StockStatus.CRITICAL, a.stock_quantity, a.item_id))
    return alerts
