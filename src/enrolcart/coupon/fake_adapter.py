"""Configurable in-memory coupon authority for development and testing.

Coupons are registered at runtime with a percentage or fixed amount and an
optional usage limit. Every call is recorded in ``calls`` so tests can
assert on what the cart asked for, and ``configure`` can force the next
operations to fail the way a remote authority would.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from enrolcart.coupon.port import INVALID_COUPON, CartSnapshot, CouponGateway, CouponResult
from enrolcart.pricing import ZERO, money


@dataclass
class FakeCoupon:
    coupon_id: str
    code: str
    percentage: int | None = None
    amount: Decimal | None = None
    max_uses: int | None = None
    active: bool = True


class FakeCouponGateway(CouponGateway):
    def __init__(self) -> None:
        self.coupons: dict[str, FakeCoupon] = {}
        self.usages: dict[str, tuple[str, str]] = {}  # usage id -> (coupon id, cart id)
        self.calls: list[dict] = []
        self.should_succeed: bool = True
        self.failure_reason: str = "Coupon authority unavailable"

    def configure(self, should_succeed: bool, failure_reason: str = "Coupon authority unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def add_coupon(
        self,
        code: str,
        *,
        percentage: int | None = None,
        amount=None,
        max_uses: int | None = None,
    ) -> FakeCoupon:
        coupon = FakeCoupon(
            coupon_id=f"coupon-{uuid4().hex[:8]}",
            code=code,
            percentage=percentage,
            amount=money(amount) if amount is not None else None,
            max_uses=max_uses,
        )
        self.coupons[code] = coupon
        return coupon

    def set_amount(self, code: str, amount) -> None:
        self.coupons[code].amount = money(amount)

    def deactivate(self, code: str) -> None:
        self.coupons[code].active = False

    def usage_count(self, coupon_id: str) -> int:
        return sum(1 for used_coupon, _ in self.usages.values() if used_coupon == coupon_id)

    def _by_id(self, coupon_id) -> FakeCoupon | None:
        return next((c for c in self.coupons.values() if c.coupon_id == str(coupon_id)), None)

    def _discount(self, coupon: FakeCoupon, cart: CartSnapshot) -> Decimal:
        basis = cart.items_payable
        if coupon.percentage is not None:
            discount = money(basis * Decimal(coupon.percentage) / Decimal(100))
        else:
            discount = coupon.amount or ZERO
        return min(discount, basis)

    def resolve_coupon_id(self, coupon_code: str) -> str | None:
        self.calls.append({"method": "resolve_coupon_id", "coupon_code": coupon_code})
        coupon = self.coupons.get(coupon_code)
        return coupon.coupon_id if coupon else None

    def validate(self, cart: CartSnapshot, coupon_id: str) -> CouponResult:
        self.calls.append({"method": "validate", "cart_id": cart.cart_id, "coupon_id": coupon_id})

        if not self.should_succeed:
            return CouponResult.failure("authority_error", self.failure_reason)

        coupon = self._by_id(coupon_id)
        if coupon is None or not coupon.active:
            return CouponResult.failure(INVALID_COUPON, "The coupon code is invalid")
        if not cart.items:
            return CouponResult.failure("empty_cart", "The cart has no items", coupon_id=coupon.coupon_id)

        already_used_here = cart.coupon_id == coupon.coupon_id and cart.coupon_usage_id in self.usages
        exhausted = coupon.max_uses is not None and self.usage_count(coupon.coupon_id) >= coupon.max_uses
        if exhausted and not already_used_here:
            return CouponResult.failure(
                "usage_limit_reached", "The coupon has been fully used", coupon_id=coupon.coupon_id
            )

        discount = self._discount(coupon, cart)
        return CouponResult(
            ok=True,
            coupon_id=coupon.coupon_id,
            coupon_code=coupon.code,
            coupon_usage_id=cart.coupon_usage_id if already_used_here else None,
            discount_amount=discount,
            payable_amount=cart.items_payable - discount,
            items=tuple(item.item_id for item in cart.items),
        )

    def apply(self, cart: CartSnapshot, coupon_id: str) -> CouponResult:
        result = self.validate(cart, coupon_id)
        self.calls.append({"method": "apply", "cart_id": cart.cart_id, "coupon_id": coupon_id})
        if not result.ok:
            return result

        usage_id = f"usage-{uuid4().hex[:8]}"
        self.usages[usage_id] = (result.coupon_id, cart.cart_id)
        return CouponResult(
            ok=True,
            coupon_id=result.coupon_id,
            coupon_code=result.coupon_code,
            coupon_usage_id=usage_id,
            discount_amount=result.discount_amount,
            payable_amount=result.payable_amount,
            items=result.items,
        )

    def cancel(self, cart: CartSnapshot) -> CouponResult:
        self.calls.append({"method": "cancel", "cart_id": cart.cart_id, "coupon_usage_id": cart.coupon_usage_id})

        if not self.should_succeed:
            return CouponResult.failure("authority_error", self.failure_reason)

        if cart.coupon_usage_id not in self.usages:
            return CouponResult.failure(INVALID_COUPON, "No coupon usage to cancel")

        del self.usages[cart.coupon_usage_id]
        return CouponResult(ok=True, coupon_id=cart.coupon_id, coupon_code=cart.coupon_code)
