from sqlalchemy.orm import Session

from mediashop.core.errors import InvalidState, NotFound, ValidationError
from mediashop.core.logging import get_logger
from mediashop.db.models import Order, OrderStatus, now_utc

log = get_logger("orders_admin")

# status flips an admin may make; refunds move no money
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.CANCELLED.value},
    OrderStatus.PAID.value: {OrderStatus.REFUNDED.value},
}

def set_status(db: Session, order_id: int, status: str, actor: str) -> Order:
    if status not in {s.value for s in OrderStatus}:
        raise ValidationError(f"Unknown order status {status!r}")
    order = db.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found")
    if status not in ALLOWED_TRANSITIONS.get(order.status, set()):
        raise InvalidState(f"Cannot move order {order.id} from {order.status} to {status}")
    previous = order.status
    order.status = status
    order.updated_at = now_utc()
    db.commit()
    db.refresh(order)
    log.info("order_status_changed", order_id=order.id, previous=previous, status=status, actor=actor)
    return order
