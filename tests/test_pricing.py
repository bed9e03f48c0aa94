"""Unit tests for order pricing, plus the total invariant across cart mutations."""

import pytest

from mediashop.db.models import Order, OrderItem
from mediashop.services import cart, pricing
from tests.helpers import ALICE


def _item(price, qty):
    return OrderItem(product_id=1, title_snapshot="x", unit_price_cents=price, quantity=qty)


class TestPricingFunctions:

    def test_line_total_is_price_times_quantity(self):
        assert pricing.line_total(_item(2500, 2)) == 5000

    def test_order_total_sums_lines(self):
        assert pricing.order_total([_item(1000, 1), _item(2500, 2)]) == 6000

    def test_empty_order_totals_zero(self):
        assert pricing.order_total([]) == 0

    def test_recalculate_assigns_total(self):
        order = Order(user_email=ALICE, items=[_item(499, 3), _item(1, 1)])
        assert pricing.recalculate(order) == 1498
        assert order.total_cents == 1498
        assert isinstance(order.total_cents, int)


class TestTotalInvariant:

    @staticmethod
    def _assert_consistent(db):
        order = cart.get_cart(db, ALICE)
        if order is None:
            return
        db.refresh(order)
        assert order.total_cents == sum(it.unit_price_cents * it.quantity for it in order.items)

    def test_total_matches_items_after_every_mutation(self, db, products):
        order = cart.add_item(db, ALICE, 7, 1)
        self._assert_consistent(db)
        cart.add_item(db, ALICE, 9, 2)
        self._assert_consistent(db)
        cart.add_item(db, ALICE, 7, 3)
        self._assert_consistent(db)

        by_product = {it.product_id: it.id for it in cart.get_cart(db, ALICE).items}
        cart.update_item_quantity(db, ALICE, by_product[9], 5)
        self._assert_consistent(db)
        cart.add_item(db, ALICE, 11, 1)
        self._assert_consistent(db)
        cart.remove_item(db, ALICE, by_product[7])
        self._assert_consistent(db)
        cart.update_item_quantity(db, ALICE, by_product[9], 0)
        self._assert_consistent(db)

        remaining = cart.get_cart(db, ALICE)
        assert remaining.id == order.id
        assert remaining.total_cents == 499

    def test_price_is_captured_at_add_time(self, db, products):
        cart.add_item(db, ALICE, 7, 1)
        products[7].price_cents = 9999
        db.commit()

        order = cart.add_item(db, ALICE, 7, 1)
        item = order.items[0]
        assert item.unit_price_cents == 1000
        assert order.total_cents == 2000

    @pytest.mark.parametrize("qty", [1, 3, 17])
    def test_single_line_total(self, db, products, qty):
        order = cart.add_item(db, ALICE, 9, qty)
        assert order.total_cents == 2500 * qty
