"""Tests for Cart events: versions and field completeness."""

from datetime import UTC, datetime

import pytest

from enrolcart.cart.events import (
    CartCanceled,
    CartCheckedOut,
    CartCouponApplied,
    CartCouponCanceled,
    CartDeleted,
    CartDelivered,
    CartItemAdded,
    CartItemRemoved,
    CartRefreshed,
)


@pytest.mark.parametrize(
    "event_cls",
    [
        CartItemAdded,
        CartItemRemoved,
        CartRefreshed,
        CartCheckedOut,
        CartCanceled,
        CartDelivered,
        CartCouponApplied,
        CartCouponCanceled,
        CartDeleted,
    ],
)
def test_version(event_cls):
    assert event_cls.__version__ == "v1"


class TestCartCheckedOutEvent:
    def test_construction(self):
        now = datetime.now(UTC)
        event = CartCheckedOut(cart_id="cart-001", owner_id="user-1", currency="USD", payable=900.0, checkout_at=now)
        assert event.currency == "USD"
        assert event.payable == 900.0
        assert event.checkout_at == now


class TestCartCouponAppliedEvent:
    def test_construction(self):
        event = CartCouponApplied(
            cart_id="cart-001",
            coupon_id="coupon-1",
            coupon_code="SAVE",
            coupon_usage_id="usage-1",
            discount_amount=200.0,
        )
        assert event.coupon_code == "SAVE"
        assert event.discount_amount == 200.0


class TestCartDeletedEvent:
    def test_construction(self):
        event = CartDeleted(
            cart_id="cart-001",
            owner_id="user-1",
            status="Canceled",
            snapshot='{"items": []}',
            deleted_at=datetime.now(UTC),
        )
        assert event.status == "Canceled"
        assert event.snapshot == '{"items": []}'
