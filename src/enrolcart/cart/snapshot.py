"""Read-only view of a cart handed to the coupon authority."""

from decimal import Decimal

from enrolcart.cart.cart import Cart
from enrolcart.coupon.port import CartItemSnapshot, CartSnapshot
from enrolcart.pricing import money


def build_snapshot(cart: Cart, final_price: Decimal, final_payable: Decimal) -> CartSnapshot:
    return CartSnapshot(
        cart_id=str(cart.id),
        user_id=str(cart.owner_id),
        coupon_id=str(cart.coupon_id) if cart.coupon_id else None,
        coupon_code=cart.coupon_code,
        coupon_usage_id=str(cart.coupon_usage_id) if cart.coupon_usage_id else None,
        coupon_discount_amount=(
            money(cart.coupon_discount_amount) if cart.coupon_discount_amount is not None else None
        ),
        final_price=final_price,
        final_payable=final_payable,
        items=tuple(
            CartItemSnapshot(
                item_id=str(item.id),
                offering_instance_id=str(item.offering_instance_id),
                course_id=str(item.course_id) if item.course_id else None,
                price=item.price_amount,
                payable=item.payable_amount,
                has_discount=item.has_discount,
            )
            for item in cart.items
        ),
    )
