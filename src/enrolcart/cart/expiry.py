"""Deletion of abandoned carts.

Run periodically by an external scheduler (cron, K8s CronJob) or through
the maintenance API endpoint. Two independent sweeps, each disabled when
its lifetime setting is 0:

- CANCELED carts not updated within ``canceled_cart_lifetime``.
- CHECKOUT carts whose checkout started before ``pending_payment_cart_lifetime``.

Each cart is deleted in its own unit of work, so one failure never stops
or undoes the deletion of another.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.utils.globals import current_domain

from enrolcart.cart.cart import Cart, CartStatus
from enrolcart.cart.snapshot import build_snapshot
from enrolcart.config import CartSettings
from enrolcart.coupon.port import CouponGateway
from enrolcart.payment.record import PaymentRecord
from enrolcart.pricing import money
from enrolcart.utils.time import as_utc, utcnow

logger = structlog.get_logger(__name__)


@dataclass
class ReapReport:
    deleted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"deleted": self.deleted, "skipped": self.skipped, "failed": self.failed}


class ExpiryReaper:
    def __init__(
        self,
        settings: CartSettings,
        coupons: CouponGateway | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.coupons = coupons
        self.clock = clock

    def expired_canceled(self, as_of: datetime) -> list[Cart]:
        lifetime = self.settings.canceled_cart_lifetime
        if not lifetime:
            return []
        cutoff = as_of - timedelta(seconds=lifetime)
        carts = current_domain.repository_for(Cart).find_by_status(CartStatus.CANCELED)
        return [cart for cart in carts if cart.updated_at and as_utc(cart.updated_at) < cutoff]

    def expired_pending_payment(self, as_of: datetime) -> list[Cart]:
        lifetime = self.settings.pending_payment_cart_lifetime
        if not lifetime:
            return []
        cutoff = as_of - timedelta(seconds=lifetime)
        carts = current_domain.repository_for(Cart).find_by_status(CartStatus.CHECKOUT)
        return [cart for cart in carts if cart.checkout_at and as_utc(cart.checkout_at) < cutoff]

    def run(self, as_of: datetime | None = None) -> ReapReport:
        as_of = as_utc(as_of) or self.clock()
        report = ReapReport()

        candidates = self.expired_canceled(as_of) + self.expired_pending_payment(as_of)
        logger.info("Checking for expired carts", as_of=as_of.isoformat(), candidates=len(candidates))

        for cart in candidates:
            cart_id = str(cart.id)
            if self._is_preserved(cart):
                report.skipped.append(cart_id)
                logger.info("Keeping expired cart with payment record", cart_id=cart_id)
                continue
            try:
                self.delete(cart, as_of)
            except Exception:
                report.failed.append(cart_id)
                logger.exception("Failed to delete expired cart", cart_id=cart_id, status=cart.status)
            else:
                report.deleted.append(cart_id)

        logger.info(
            "Expired cart deletion complete",
            deleted=len(report.deleted),
            skipped=len(report.skipped),
            failed=len(report.failed),
        )
        return report

    def _is_preserved(self, cart: Cart) -> bool:
        if not self.settings.not_delete_cart_with_payment_record:
            return False
        return current_domain.repository_for(PaymentRecord).exists_for_cart(cart.id)

    def delete(self, cart: Cart, now: datetime) -> None:
        """Release the coupon usage, then delete the cart and its items in one unit of work."""
        repo = current_domain.repository_for(Cart)
        with UnitOfWork():
            if cart.coupon_id and cart.coupon_usage_id and self.coupons is not None:
                result = self.coupons.cancel(build_snapshot(cart, money(cart.price), money(cart.payable)))
                if not result.ok:
                    logger.warning(
                        "Coupon usage not released",
                        cart_id=str(cart.id),
                        coupon_id=str(cart.coupon_id),
                        error=result.error_message,
                    )
            cart.mark_deleted(now)
            repo.add(cart)
            repo._dao.delete(cart)

        logger.info("Expired cart deleted", cart_id=str(cart.id), owner_id=str(cart.owner_id), status=cart.status)
