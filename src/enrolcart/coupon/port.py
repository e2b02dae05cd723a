"""Coupon authority port (abstract interface).

Coupon rules (eligibility, limits, amounts) belong to an external authority.
The cart only hands it a read-only snapshot of itself and records what the
authority answers. Adapters are injected at start-up; there is no runtime
lookup by class name.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

INVALID_COUPON = "invalid_coupon"
COUPON_DISABLED = "coupon_disabled"
COUPON_ALREADY_APPLIED = "coupon_already_applied"
CART_NOT_EDITABLE = "cart_not_editable"


@dataclass(frozen=True)
class CartItemSnapshot:
    item_id: str
    offering_instance_id: str
    course_id: str | None
    price: Decimal
    payable: Decimal
    has_discount: bool


@dataclass(frozen=True)
class CartSnapshot:
    """What the authority may see of a cart."""

    cart_id: str
    user_id: str
    coupon_id: str | None
    coupon_code: str | None
    coupon_usage_id: str | None
    coupon_discount_amount: Decimal | None
    final_price: Decimal
    final_payable: Decimal
    items: tuple[CartItemSnapshot, ...] = ()

    @property
    def items_payable(self) -> Decimal:
        return sum((item.payable for item in self.items), Decimal("0.00"))


@dataclass(frozen=True)
class CouponResult:
    """Outcome of every coupon operation; failures are values, never exceptions."""

    ok: bool = False
    coupon_id: str | None = None
    coupon_code: str | None = None
    coupon_usage_id: str | None = None
    discount_amount: Decimal | None = None
    payable_amount: Decimal | None = None
    error_code: str | None = None
    error_message: str | None = None
    items: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def failure(cls, error_code: str, error_message: str, **kwargs) -> "CouponResult":
        return cls(ok=False, error_code=error_code, error_message=error_message, **kwargs)


class CouponGateway(ABC):
    @abstractmethod
    def resolve_coupon_id(self, coupon_code: str) -> str | None:
        """Map a user-entered code to the authority's coupon id."""
        ...

    @abstractmethod
    def validate(self, cart: CartSnapshot, coupon_id: str) -> CouponResult:
        """Check the coupon against the cart without redeeming it."""
        ...

    @abstractmethod
    def apply(self, cart: CartSnapshot, coupon_id: str) -> CouponResult:
        """Redeem the coupon for the cart, returning the usage id."""
        ...

    @abstractmethod
    def cancel(self, cart: CartSnapshot) -> CouponResult:
        """Release the usage recorded on the cart snapshot."""
        ...
