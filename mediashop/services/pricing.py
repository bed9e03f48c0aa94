from typing import Iterable

from mediashop.db.models import Order, OrderItem, now_utc


def line_total(item: OrderItem) -> int:
    return int(item.unit_price_cents) * int(item.quantity)


def order_total(items: Iterable[OrderItem]) -> int:
    return sum(line_total(it) for it in items)


def recalculate(order: Order) -> int:
    order.total_cents = order_total(order.items)
    order.updated_at = now_utc()
    return order.total_cents
