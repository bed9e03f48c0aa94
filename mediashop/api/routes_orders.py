from fastapi import APIRouter, Depends
from typing import List
from sqlalchemy.orm import Session

from mediashop.api.deps import get_db
from mediashop.api.schemas import (
    AddItem, CartCount, CartRead, CheckoutRequest, CheckoutResponse, ChallengeRead,
    ItemUpdated, OrderItemRead, OrderRead, UpdateItem,
)
from mediashop.core.auth import Identity, get_current_identity
from mediashop.core.config import settings
from mediashop.db.models import Order, OrderItem
from mediashop.services import cart, checkout as checkout_service, pricing

router = APIRouter()

def item_out(it: OrderItem) -> OrderItemRead:
    return OrderItemRead(
        id=it.id,
        product_id=it.product_id,
        title=it.title_snapshot,
        quantity=it.quantity,
        unit_price_cents=it.unit_price_cents,
        line_total_cents=pricing.line_total(it),
    )

def order_out(order: Order) -> OrderRead:
    return OrderRead(
        id=order.id,
        status=order.status,
        total_cents=order.total_cents,
        currency=order.currency,
        payment_method=order.payment_method,
        items=[item_out(it) for it in order.items],
        created_at=order.created_at,
        updated_at=order.updated_at,
    )

@router.get("/cart", response_model=CartRead)
def get_my_cart(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    order = cart.get_cart(db, identity.email)
    return CartRead(order=order_out(order) if order else None)

@router.get("/cart/count", response_model=CartCount)
def get_cart_count(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return CartCount(count=cart.cart_count(db, identity.email))

@router.post("/orders/items", response_model=OrderRead)
def add_item(payload: AddItem, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    order = cart.add_item(db, identity.email, payload.product_id, payload.quantity, payload.payment_method)
    return order_out(order)

@router.put("/orders/items/{item_id}", response_model=ItemUpdated)
def update_item(item_id: int, payload: UpdateItem, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    item = cart.update_item_quantity(db, identity.email, item_id, payload.quantity)
    order = item.order if item is not None else cart.get_cart(db, identity.email)
    return ItemUpdated(
        item=item_out(item) if item is not None else None,
        order=order_out(order) if order is not None else None,
    )

@router.delete("/orders/items/{item_id}", response_model=CartRead)
def remove_item(item_id: int, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    order = cart.remove_item(db, identity.email, item_id)
    return CartRead(order=order_out(order) if order else None)

@router.get("/orders", response_model=List[OrderRead])
def list_my_orders(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return [order_out(o) for o in cart.list_orders(db, identity.email)]

@router.get("/orders/{order_id}", response_model=OrderRead)
def get_order(order_id: int, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return order_out(cart.get_order(db, identity.email, order_id))

@router.post("/orders/checkout", response_model=CheckoutResponse)
def checkout(payload: CheckoutRequest, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    result = checkout_service.checkout(db, identity.email, payload.order_id, payload.provider)
    pay, ch = result.payment, result.challenge
    return CheckoutResponse(
        payment_id=pay.id,
        order_id=pay.order_id,
        amount=pay.amount_cents,
        currency=pay.currency,
        provider=pay.provider,
        challenge=ChallengeRead(
            reference=ch.reference,
            qr_url=ch.qr_url,
            expires_at=ch.expires_at,
            otp=ch.code if settings.OTP_ECHO_CODE else None,
        ),
    )
