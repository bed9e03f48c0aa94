from fastapi import APIRouter, Depends
from typing import List, Optional
from sqlalchemy.orm import Session

from mediashop.api.deps import get_db
from mediashop.api.schemas import ConfirmOtp, ConfirmResponse, PaymentRead
from mediashop.core.auth import Identity, get_current_identity
from mediashop.services import payments

router = APIRouter()

_MESSAGES = {
    None: "Payment successful",
    payments.REASON_INVALID_OTP: "Incorrect code, please try again",
    payments.REASON_EXPIRED: "The code has expired, please start checkout again",
    payments.REASON_TOO_MANY_ATTEMPTS: "Too many incorrect codes, please start checkout again",
    payments.REASON_ORDER_CHANGED: "Your cart changed after checkout, please start checkout again",
}

@router.post("/payments/{payment_id}/confirm-otp", response_model=ConfirmResponse)
def confirm_otp(payment_id: int, payload: ConfirmOtp, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    result = payments.confirm(db, identity.email, payment_id, payload.otp)
    return ConfirmResponse(
        # a rejected code that can still be retried reads as failed to the client
        status="success" if result.succeeded else "failed",
        payment_id=result.payment.id,
        order_id=result.payment.order_id,
        reason=result.reason,
        attempts_left=result.attempts_left,
        message=_MESSAGES.get(result.reason, "Payment failed"),
    )

@router.get("/payments/{payment_id}", response_model=PaymentRead)
def get_payment(payment_id: int, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return payments.get_payment(db, identity.email, payment_id)

@router.get("/payment-history", response_model=List[PaymentRead])
def payment_history(order_id: Optional[int] = None, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return payments.list_payments(db, identity.email, order_id)
