import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from mediashop.core.config import settings
from mediashop.core.errors import Forbidden, InvalidState, NotFound, ValidationError
from mediashop.core.logging import get_logger
from mediashop.db.models import Order, OrderStatus, Payment, PaymentStatus
from mediashop.kafka.producer import emit_payment_event
from mediashop.services import otp

log = get_logger("checkout")


@dataclass(frozen=True)
class CheckoutResult:
    payment: Payment
    challenge: otp.Challenge


def checkout(db: Session, user_email: str, order_id: int, provider: Optional[str] = None) -> CheckoutResult:
    provider = (provider or settings.DEFAULT_PROVIDER).strip()
    if not provider:
        raise ValidationError("provider must not be empty")

    order = db.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found")
    if order.user_email != user_email:
        raise Forbidden("You do not have access to this order", code="ORDER_FORBIDDEN")
    if order.status != OrderStatus.PENDING.value:
        raise InvalidState(f"Order {order.id} is {order.status}, expected pending", code="ORDER_NOT_PENDING")

    payment = Payment(
        order_id=order.id,
        user_email=user_email,
        provider=provider,
        amount_cents=order.total_cents,
        currency=settings.CURRENCY,
        status=PaymentStatus.INITIATED.value,
        provider_payment_id=f"pay_{uuid.uuid4().hex}",
    )
    challenge = otp.issue(payment)
    db.add(payment)
    db.commit()
    db.refresh(payment)

    log.info("checkout_initiated", user=user_email, order_id=order.id, payment_id=payment.id,
             amount_cents=payment.amount_cents, provider=provider)
    # the notifications consumer delivers the code to the user
    emit_payment_event({
        "type": "payment.initiated",
        "payment_id": payment.id,
        "order_id": order.id,
        "user_email": user_email,
        "amount_cents": payment.amount_cents,
        "currency": payment.currency,
        "reference": challenge.reference,
        "otp": challenge.code,
        "expires_at": challenge.expires_at.isoformat(),
    })
    return CheckoutResult(payment=payment, challenge=challenge)
