"""Collaborators wired once at application start-up.

``create_app`` stores a ``CartDependencies`` on ``app.state``; every request
builds its own ``CartContext`` from it. Tests replace the whole object to
inject fakes or a fixed clock.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from fastapi import Header, Request

from enrolcart.cart.expiry import ExpiryReaper
from enrolcart.config import CartSettings
from enrolcart.context import CartContext
from enrolcart.coupon.fake_adapter import FakeCouponGateway
from enrolcart.coupon.port import CouponGateway
from enrolcart.enrolment.port import EnrolmentDirectory, EnrolmentGrantor
from enrolcart.enrolment.stored_adapter import StoredEnrolments
from enrolcart.payment.authority import PaymentAuthority
from enrolcart.utils.time import utcnow


@dataclass
class CartDependencies:
    settings: CartSettings
    grantor: EnrolmentGrantor
    directory: EnrolmentDirectory
    coupons: CouponGateway | None = None
    payments: PaymentAuthority = field(default_factory=PaymentAuthority)
    clock: Callable[[], datetime] = utcnow

    @classmethod
    def from_settings(cls, settings: CartSettings | None = None) -> "CartDependencies":
        """Default wiring: stored enrolments, and the in-memory coupon authority when coupons are on."""
        settings = settings or CartSettings.from_env()
        enrolments = StoredEnrolments()
        return cls(
            settings=settings,
            grantor=enrolments,
            directory=enrolments,
            coupons=FakeCouponGateway() if settings.coupon_enable else None,
        )

    def context_for(self, actor_id: str | None) -> CartContext:
        return CartContext(
            actor_id=actor_id,
            settings=self.settings,
            grantor=self.grantor,
            directory=self.directory,
            coupons=self.coupons,
            clock=self.clock,
        )

    def reaper(self) -> ExpiryReaper:
        return ExpiryReaper(self.settings, coupons=self.coupons, clock=self.clock)


def get_dependencies(request: Request) -> CartDependencies:
    return request.app.state.cart_dependencies


def get_context(request: Request, x_user_id: str | None = Header(default=None)) -> CartContext:
    """Context for the caller; no ``X-User-Id`` header means an anonymous visitor."""
    return get_dependencies(request).context_for(x_user_id or None)
