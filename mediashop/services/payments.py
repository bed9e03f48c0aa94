"""Payment confirmation. ``initiated`` moves once, to ``success`` or ``failed``."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mediashop.core.errors import AlreadyProcessed, Forbidden, NotFound, PaymentProcessingError
from mediashop.core.logging import get_logger
from mediashop.db.models import Order, OrderStatus, Payment, PaymentStatus, now_utc
from mediashop.kafka.producer import emit_payment_event
from mediashop.services import cart, entitlements, otp, pricing

log = get_logger("payments")

REASON_INVALID_OTP = "invalid_otp"
REASON_EXPIRED = "otp_expired"
REASON_TOO_MANY_ATTEMPTS = "too_many_attempts"
REASON_ORDER_CHANGED = "order_changed"


@dataclass(frozen=True)
class ConfirmResult:
    payment: Payment
    reason: Optional[str] = None
    attempts_left: Optional[int] = None

    @property
    def status(self) -> str:
        return self.payment.status

    @property
    def succeeded(self) -> bool:
        return self.payment.status == PaymentStatus.SUCCESS.value


def _load_owned(db: Session, user_email: str, payment_id: int, for_update: bool = False) -> Payment:
    stmt = select(Payment).where(Payment.id == payment_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    payment = db.execute(stmt).scalars().first()
    if payment is None:
        raise NotFound("Payment not found")
    if payment.user_email != user_email:
        raise Forbidden("You do not have access to this payment", code="PAYMENT_FORBIDDEN")
    return payment


def order_snapshot(order: Order) -> dict:
    items = [
        {
            "product_id": it.product_id,
            "title": it.title_snapshot,
            "quantity": it.quantity,
            "unit_price_cents": it.unit_price_cents,
            "line_total_cents": pricing.line_total(it),
        }
        for it in order.items
    ]
    title = items[0]["title"] if items else ""
    if len(items) > 1:
        title = f"{title} +{len(items) - 1} more"
    return {
        "order_id": order.id,
        "title": title,
        "currency": order.currency,
        "total_cents": order.total_cents,
        "items": items,
    }


def _fail(db: Session, payment: Payment, reason: str) -> ConfirmResult:
    payment.status = PaymentStatus.FAILED.value
    payment.raw_response = {"result": "failed", "reason": reason, "at": now_utc().isoformat()}
    db.commit()
    log.info("payment_failed", payment_id=payment.id, reason=reason)
    emit_payment_event({
        "type": "payment.failed",
        "payment_id": payment.id,
        "order_id": payment.order_id,
        "user_email": payment.user_email,
        "reason": reason,
    })
    return ConfirmResult(payment=payment, reason=reason, attempts_left=0)


def _complete(db: Session, payment: Payment, order: Order) -> None:
    payment.order_snapshot = order_snapshot(order)
    payment.status = PaymentStatus.SUCCESS.value
    payment.confirmed_at = now_utc()
    payment.raw_response = {"result": "success", "reference": payment.provider_payment_id}
    order.status = OrderStatus.PAID.value
    order.updated_at = now_utc()
    db.flush()
    entitlements.grant(db, payment.user_email, {it.product_id for it in order.items}, order_id=order.id)


def confirm(db: Session, user_email: str, payment_id: int, code: str) -> ConfirmResult:
    payment = _load_owned(db, user_email, payment_id, for_update=True)
    if payment.status != PaymentStatus.INITIATED.value:
        db.rollback()
        raise AlreadyProcessed(f"Payment {payment_id} is already {payment.status}")

    if otp.is_expired(payment):
        return _fail(db, payment, REASON_EXPIRED)

    if not otp.verify(payment, code):
        payment.otp_attempts = (payment.otp_attempts or 0) + 1
        left = otp.attempts_left(payment)
        if left == 0:
            return _fail(db, payment, REASON_TOO_MANY_ATTEMPTS)
        db.commit()
        log.info("payment_otp_rejected", payment_id=payment.id, attempts_left=left)
        return ConfirmResult(payment=payment, reason=REASON_INVALID_OTP, attempts_left=left)

    # sibling payments of the same order queue here; the loser sees it paid
    order = cart.lock_order(db, payment.order_id) if payment.order_id is not None else None
    if (
        order is None
        or order.status != OrderStatus.PENDING.value
        or order.total_cents != payment.amount_cents
        or not order.items
    ):
        return _fail(db, payment, REASON_ORDER_CHANGED)

    try:
        _complete(db, payment, order)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        log.exception("payment_confirm_rolled_back", payment_id=payment_id)
        raise PaymentProcessingError("Payment could not be completed, please try again") from exc

    db.refresh(payment)
    log.info("payment_succeeded", payment_id=payment.id, order_id=order.id, amount_cents=payment.amount_cents)
    emit_payment_event({
        "type": "payment.succeeded",
        "payment_id": payment.id,
        "order_id": order.id,
        "user_email": payment.user_email,
        "amount_cents": payment.amount_cents,
        "currency": payment.currency,
        "product_ids": sorted({it["product_id"] for it in payment.order_snapshot["items"]}),
    })
    return ConfirmResult(payment=payment)


def get_payment(db: Session, user_email: str, payment_id: int) -> Payment:
    return _load_owned(db, user_email, payment_id)


def list_payments(db: Session, user_email: str, order_id: Optional[int] = None) -> list[Payment]:
    stmt = select(Payment).where(Payment.user_email == user_email)
    if order_id is not None:
        stmt = stmt.where(Payment.order_id == order_id)
    stmt = stmt.order_by(Payment.created_at.desc(), Payment.id.desc())
    return list(db.execute(stmt).scalars().all())
