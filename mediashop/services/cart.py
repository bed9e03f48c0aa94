from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mediashop.core.config import settings
from mediashop.core.errors import InvalidState, NotFound, ProductNotFound, ValidationError
from mediashop.core.logging import get_logger
from mediashop.db.models import Order, OrderItem, OrderStatus, Product
from mediashop.services import pricing

log = get_logger("cart")

LOCK_RETRIES = 3


def get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if product is None or not product.active:
        raise ProductNotFound(f"Product {product_id} not found")
    return product


def _pending_order(db: Session, user_email: str) -> Optional[Order]:
    stmt = select(Order).where(Order.user_email == user_email, Order.status == OrderStatus.PENDING.value)
    return db.execute(stmt).scalars().first()


def lock_order(db: Session, order_id: int) -> Optional[Order]:
    """SELECT ... FOR UPDATE the order row, then reload it and its items."""
    if db.execute(select(Order.id).where(Order.id == order_id).with_for_update()).first() is None:
        return None
    # anything read before the lock may be stale
    db.expire_all()
    return db.get(Order, order_id)


def find_or_create_pending(db: Session, user_email: str, payment_method: Optional[str] = None) -> Order:
    order = _pending_order(db, user_email)
    if order is not None:
        return order
    try:
        with db.begin_nested():
            order = Order(
                user_email=user_email,
                status=OrderStatus.PENDING.value,
                total_cents=0,
                currency=settings.CURRENCY,
                payment_method=payment_method or settings.DEFAULT_PROVIDER,
            )
            db.add(order)
            db.flush()
    except IntegrityError:
        # uq_orders_user_pending: another request created the cart first
        log.info("pending_order_race", user=user_email)
        order = _pending_order(db, user_email)
        if order is None:
            raise
        return order
    log.info("cart_created", user=user_email, order_id=order.id)
    return order


def _locked_cart(db: Session, user_email: str, payment_method: Optional[str] = None) -> Order:
    for _ in range(LOCK_RETRIES):
        order = lock_order(db, find_or_create_pending(db, user_email, payment_method).id)
        # paid or emptied while we waited for the lock: look again
        if order is not None and order.status == OrderStatus.PENDING.value:
            return order
    raise InvalidState("Cart changed while updating, please retry", code="CART_CONFLICT")


def _owned_pending_item(db: Session, user_email: str, item_id: int) -> OrderItem:
    item = db.get(OrderItem, item_id)
    if item is None or item.order.user_email != user_email:
        raise NotFound("Item not found")
    order = lock_order(db, item.order_id)
    item = next((it for it in order.items if it.id == item_id), None) if order is not None else None
    if item is None:
        raise NotFound("Item not found")
    if order.status != OrderStatus.PENDING.value:
        raise InvalidState(f"Order {order.id} is {order.status}; its items can no longer change")
    return item


def add_item(
    db: Session, user_email: str, product_id: int, quantity: int = 1, payment_method: Optional[str] = None
) -> Order:
    if quantity < 1:
        raise ValidationError("quantity must be at least 1")
    product = get_product(db, product_id)
    order = _locked_cart(db, user_email, payment_method)
    if payment_method:
        order.payment_method = payment_method

    existing = next((it for it in order.items if it.product_id == product.id), None)
    if existing is not None:
        existing.quantity += quantity
    else:
        order.items.append(OrderItem(
            product_id=product.id,
            title_snapshot=product.title,
            quantity=quantity,
            unit_price_cents=product.price_cents,
        ))
    pricing.recalculate(order)
    db.commit()
    db.refresh(order)
    log.info("cart_item_added", user=user_email, order_id=order.id, product_id=product.id,
             quantity=quantity, total_cents=order.total_cents)
    return order


def update_item_quantity(db: Session, user_email: str, item_id: int, quantity: int) -> Optional[OrderItem]:
    if quantity < 0:
        raise ValidationError("quantity must not be negative")
    if quantity == 0:
        remove_item(db, user_email, item_id)
        return None
    item = _owned_pending_item(db, user_email, item_id)
    item.quantity = quantity
    pricing.recalculate(item.order)
    db.commit()
    db.refresh(item)
    log.info("cart_item_updated", user=user_email, item_id=item_id, quantity=quantity)
    return item


def remove_item(db: Session, user_email: str, item_id: int) -> Optional[Order]:
    """Returns None when the last item went and the cart with it."""
    item = _owned_pending_item(db, user_email, item_id)
    order = item.order
    order.items.remove(item)
    if not order.items:
        db.delete(order)
        db.commit()
        log.info("cart_deleted", user=user_email, order_id=order.id)
        return None
    pricing.recalculate(order)
    db.commit()
    db.refresh(order)
    log.info("cart_item_removed", user=user_email, item_id=item_id, total_cents=order.total_cents)
    return order


def get_cart(db: Session, user_email: str) -> Optional[Order]:
    return _pending_order(db, user_email)


def cart_count(db: Session, user_email: str) -> int:
    stmt = (
        select(func.coalesce(func.sum(OrderItem.quantity), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .where(Order.user_email == user_email, Order.status == OrderStatus.PENDING.value)
    )
    return int(db.execute(stmt).scalar_one())


def get_order(db: Session, user_email: str, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if order is None or order.user_email != user_email:
        raise NotFound("Order not found")
    return order


def list_orders(db: Session, user_email: str) -> list[Order]:
    stmt = select(Order).where(Order.user_email == user_email).order_by(Order.created_at.desc(), Order.id.desc())
    return list(db.execute(stmt).scalars().all())
