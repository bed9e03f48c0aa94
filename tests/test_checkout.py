"""Tests for checkout: one new initiated payment per call, order left pending."""

import pytest
from sqlalchemy import func, select

from mediashop.core.config import settings
from mediashop.core.errors import Forbidden, InvalidState, NotFound
from mediashop.db.models import Order, OrderStatus, Payment
from mediashop.services import cart, checkout as checkout_service, otp
from tests.helpers import ALICE, BOB


@pytest.fixture
def events(monkeypatch):
    sent = []
    monkeypatch.setattr(checkout_service, "emit_payment_event", sent.append)
    return sent


@pytest.fixture
def alice_cart(db, products):
    cart.add_item(db, ALICE, 7, 1)
    return cart.add_item(db, ALICE, 9, 2)


class TestCheckout:

    def test_creates_initiated_payment_for_order_total(self, db, alice_cart, events):
        result = checkout_service.checkout(db, ALICE, alice_cart.id)
        pay = result.payment

        assert pay.id is not None
        assert pay.status == "initiated"
        assert pay.amount_cents == 6000
        assert pay.currency == settings.CURRENCY
        assert pay.provider == settings.DEFAULT_PROVIDER
        assert pay.user_email == ALICE
        assert pay.order_id == alice_cart.id
        assert pay.provider_payment_id.startswith("pay_")
        assert pay.confirmed_at is None

    def test_order_stays_pending(self, db, alice_cart, events):
        checkout_service.checkout(db, ALICE, alice_cart.id)
        db.refresh(alice_cart)
        assert alice_cart.status == OrderStatus.PENDING.value

    def test_explicit_provider_is_kept(self, db, alice_cart, events):
        result = checkout_service.checkout(db, ALICE, alice_cart.id, provider="momo")
        assert result.payment.provider == "momo"

    def test_each_call_creates_new_payment(self, db, alice_cart, events):
        first = checkout_service.checkout(db, ALICE, alice_cart.id).payment
        second = checkout_service.checkout(db, ALICE, alice_cart.id).payment

        assert first.id != second.id
        assert first.provider_payment_id != second.provider_payment_id
        count = db.execute(select(func.count()).select_from(Payment)).scalar_one()
        assert count == 2

    def test_amount_is_snapshot_of_total_at_checkout(self, db, alice_cart, events):
        pay = checkout_service.checkout(db, ALICE, alice_cart.id).payment
        cart.add_item(db, ALICE, 11, 1)

        db.refresh(pay)
        assert pay.amount_cents == 6000
        assert db.get(Order, alice_cart.id).total_cents == 6499

    def test_other_users_order_is_forbidden(self, db, alice_cart, events):
        with pytest.raises(Forbidden) as exc:
            checkout_service.checkout(db, BOB, alice_cart.id)
        assert exc.value.code == "ORDER_FORBIDDEN"
        assert events == []

    def test_missing_order_not_found(self, db, products, events):
        with pytest.raises(NotFound):
            checkout_service.checkout(db, ALICE, 999)

    def test_non_pending_order_rejected(self, db, alice_cart, events):
        alice_cart.status = OrderStatus.PAID.value
        db.commit()
        with pytest.raises(InvalidState) as exc:
            checkout_service.checkout(db, ALICE, alice_cart.id)
        assert exc.value.code == "ORDER_NOT_PENDING"


class TestChallenge:

    def test_challenge_describes_payment(self, db, alice_cart, events):
        result = checkout_service.checkout(db, ALICE, alice_cart.id)
        ch = result.challenge

        assert ch.reference == result.payment.provider_payment_id
        assert "Payment+for+order+%23" + str(alice_cart.id) in ch.qr_url
        assert ch.expires_at == result.payment.otp_expires_at
        assert ch.code == settings.OTP_STATIC_CODE

    def test_only_code_hash_is_stored(self, db, alice_cart, events):
        pay = checkout_service.checkout(db, ALICE, alice_cart.id).payment

        assert pay.otp_hash != settings.OTP_STATIC_CODE
        assert pay.otp_hash == otp.code_sha256(pay.provider_payment_id, settings.OTP_STATIC_CODE)
        assert pay.otp_attempts == 0

    def test_initiated_event_carries_code(self, db, alice_cart, events):
        result = checkout_service.checkout(db, ALICE, alice_cart.id)

        assert len(events) == 1
        event = events[0]
        assert event["type"] == "payment.initiated"
        assert event["payment_id"] == result.payment.id
        assert event["order_id"] == alice_cart.id
        assert event["amount_cents"] == 6000
        assert event["otp"] == result.challenge.code
