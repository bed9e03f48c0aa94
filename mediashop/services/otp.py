"""Payment confirmation codes. Only a sha256 of the code is stored."""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import urlencode

from mediashop.core.config import settings
from mediashop.db.models import Payment, now_utc


@dataclass(frozen=True)
class Challenge:
    reference: str
    qr_url: str
    expires_at: datetime
    code: str  # plaintext, never persisted


def code_sha256(payment_ref: str, code: str) -> str:
    return hashlib.sha256(f"{payment_ref}:{code.strip()}".encode("utf-8")).hexdigest()


def new_code() -> str:
    if settings.OTP_STATIC_CODE:
        return settings.OTP_STATIC_CODE
    return f"{secrets.randbelow(10**6):06d}"


def qr_url(order_id: int) -> str:
    return settings.OTP_QR_BASE + "?" + urlencode({"data": f"Payment for order #{order_id}", "size": "200x200"})


def issue(payment: Payment) -> Challenge:
    """Attach a fresh code to ``payment`` (which must have provider_payment_id)."""
    code = new_code()
    payment.otp_hash = code_sha256(payment.provider_payment_id, code)
    payment.otp_expires_at = now_utc() + timedelta(seconds=settings.OTP_TTL_SECONDS)
    payment.otp_attempts = 0
    return Challenge(
        reference=payment.provider_payment_id,
        qr_url=qr_url(payment.order_id),
        expires_at=payment.otp_expires_at,
        code=code,
    )


def is_expired(payment: Payment, now: datetime | None = None) -> bool:
    return payment.otp_expires_at is not None and (now or now_utc()) >= payment.otp_expires_at


def verify(payment: Payment, code: str) -> bool:
    if not payment.otp_hash:
        return False
    return hmac.compare_digest(payment.otp_hash, code_sha256(payment.provider_payment_id, code))


def attempts_left(payment: Payment) -> int:
    return max(0, settings.OTP_MAX_ATTEMPTS - (payment.otp_attempts or 0))
