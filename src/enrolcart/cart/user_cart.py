"""Operations on a persisted cart.

``UserCart`` wraps a ``Cart`` aggregate together with the ``CartContext`` of
the current request. The aggregate owns state and transition rules; this
class decides whether the acting user may perform an operation, talks to
the coupon authority and the enrolment grantor, and persists the result.

Every operation reports failure as ``False`` (or a ``CouponResult``), never
as an exception. Operations spanning several writes (cancel, deliver) run
inside a single ``UnitOfWork``: on failure nothing is committed and the
aggregate is reloaded from the repository.
"""

from collections.abc import Callable
from decimal import Decimal

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from enrolcart.cart.cart import Cart, CartItem, CartStatus
from enrolcart.cart.snapshot import build_snapshot
from enrolcart.context import CartContext
from enrolcart.coupon.port import (
    CART_NOT_EDITABLE,
    COUPON_ALREADY_APPLIED,
    COUPON_DISABLED,
    INVALID_COUPON,
    CartSnapshot,
    CouponResult,
)
from enrolcart.formatting import format_cost
from enrolcart.pricing import ZERO, money

logger = structlog.get_logger(__name__)


class CouponOperationError(Exception):
    """The coupon authority refused an operation inside a transaction."""

    def __init__(self, result: CouponResult):
        super().__init__(result.error_message or result.error_code or "Coupon operation failed")
        self.result = result


class UserCart:
    def __init__(self, cart: Cart, context: CartContext):
        self.cart = cart
        self.context = context
        self.changed = False
        self.coupon_result: CouponResult | None = None

    def __repr__(self) -> str:
        return f"<UserCart {self.id} owner={self.owner_id} status={self.status}>"

    # -------------------------------------------------------------------
    # Identity and contents
    # -------------------------------------------------------------------
    @property
    def id(self) -> str:
        return str(self.cart.id)

    @property
    def owner_id(self) -> str:
        return str(self.cart.owner_id)

    @property
    def status(self) -> str:
        return self.cart.status

    @property
    def is_checkout(self) -> bool:
        return self.cart.is_checkout

    @property
    def items(self) -> list[CartItem]:
        return list(self.cart.items)

    @property
    def count(self) -> int:
        return len(self.cart.items)

    @property
    def is_empty(self) -> bool:
        return not self.cart.items

    def has_item(self, offering_instance_id) -> bool:
        return self.cart.has_item(offering_instance_id)

    # -------------------------------------------------------------------
    # Editability
    # -------------------------------------------------------------------
    @property
    def can_edit_items(self) -> bool:
        return self.cart.can_edit_items(
            self.context.actor_id,
            self.context.now(),
            self.context.settings.payment_completion_time,
        )

    @property
    def is_checkout_expired(self) -> bool:
        return self.cart.is_checkout_expired(self.context.now(), self.context.settings.payment_completion_time)

    # -------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------
    def _repository(self):
        return current_domain.repository_for(Cart)

    def _save(self) -> None:
        self._repository().add(self.cart)

    def _reload(self) -> None:
        self.cart = self._repository().get(self.cart.id)

    def _commit(self, operation: str, work: Callable[[], None]) -> bool:
        """Run ``work`` and persist the cart atomically; roll back on any failure."""
        try:
            with UnitOfWork():
                work()
                self._save()
        except Exception:
            logger.exception("Cart operation rolled back", operation=operation, cart_id=self.id)
            self._reload()
            return False
        return True

    def _is_enrolled(self, offering_instance_id) -> bool:
        return self.context.directory.is_enrolled(str(offering_instance_id), self.owner_id, any_instance=True)

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def add_item(self, offering_instance_id) -> bool:
        """Add an available instance the owner is not already enrolled through."""
        if not self.can_edit_items:
            logger.debug("Cart not editable", cart_id=self.id, actor_id=self.context.actor_id)
            return False
        if self.cart.has_item(offering_instance_id):
            return False

        instance = self.context.catalog.get(offering_instance_id)
        if instance is None:
            return False
        if self._is_enrolled(offering_instance_id):
            logger.info("Owner already enrolled", cart_id=self.id, instance_id=str(offering_instance_id))
            return False

        try:
            self.cart.add_item(
                instance.id,
                instance.course_id,
                instance.price,
                instance.payable,
                actor_id=self.context.actor_id,
                now=self.context.now(),
            )
            self._reconcile()
            self._save()
        except ValidationError as exc:
            logger.warning("Failed to add item", cart_id=self.id, instance_id=str(offering_instance_id), error=str(exc))
            self._reload()
            return False

        self.changed = True
        logger.info("Item added to cart", cart_id=self.id, instance_id=str(offering_instance_id))
        return True

    def remove_item(self, offering_instance_id) -> bool:
        if not self.can_edit_items or not self.cart.has_item(offering_instance_id):
            return False

        try:
            self.cart.remove_item(offering_instance_id, actor_id=self.context.actor_id, now=self.context.now())
            self._reconcile()
            self._save()
        except ValidationError as exc:
            logger.warning(
                "Failed to remove item", cart_id=self.id, instance_id=str(offering_instance_id), error=str(exc)
            )
            self._reload()
            return False

        self.changed = True
        logger.info("Item removed from cart", cart_id=self.id, instance_id=str(offering_instance_id))
        return True

    def add_course(self, course_id) -> bool:
        instance_id = self.context.catalog.first_for_course(course_id)
        if instance_id is None:
            return False
        return self.add_item(instance_id)

    def remove_course(self, course_id) -> bool:
        item = next((item for item in self.cart.items if str(item.course_id) == str(course_id)), None)
        if item is None:
            return False
        return self.remove_item(item.offering_instance_id)

    # -------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------
    def _reconcile(self) -> bool:
        """Drop invalid items, re-snapshot the rest and recompute the totals."""
        changed = False
        actor_id, now = self.context.actor_id, self.context.now()

        for item in list(self.cart.items):
            instance_id = str(item.offering_instance_id)
            instance = self.context.catalog.get(instance_id)
            if instance is None:
                self.cart.remove_item(instance_id, reason="unavailable", actor_id=actor_id, now=now)
                changed = True
            elif self._is_enrolled(instance_id):
                self.cart.remove_item(instance_id, reason="already_enrolled", actor_id=actor_id, now=now)
                changed = True
            elif self.cart.reprice_item(item, instance.price, instance.payable):
                changed = True

        if self.cart.record_totals(self.items_price, self._applied_payable(), actor_id=actor_id, now=now):
            changed = True
        return changed

    def refresh(self, force: bool = False) -> bool:
        """Reconcile the cart with the current offerings; returns ``changed``.

        Without ``force`` a cart the actor may not edit is left untouched.
        """
        if not force and not self.can_edit_items:
            return False

        try:
            changed = self._reconcile()
            if changed:
                self._save()
        except ValidationError as exc:
            logger.warning("Cart refresh failed", cart_id=self.id, error=str(exc))
            self._reload()
            return False

        if changed:
            logger.info("Cart changed on refresh", cart_id=self.id, price=self.cart.price, payable=self.cart.payable)
        self.changed = changed
        return changed

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    @property
    def items_price(self) -> Decimal:
        return self.cart.items_price

    @property
    def items_payable(self) -> Decimal:
        return self.cart.items_payable

    def _applied_payable(self) -> Decimal:
        return max(self.cart.items_payable - self.cart.applied_discount, ZERO)

    @property
    def final_price(self) -> Decimal:
        if self.cart.is_delivered:
            return money(self.cart.price)
        return self.items_price

    @property
    def final_payable(self) -> Decimal:
        if not self.can_edit_items:
            return money(self.cart.payable)
        return max(self.items_payable - self.coupon_discount_amount, ZERO)

    @property
    def final_total_payable(self) -> Decimal:
        if self.cart.is_delivered:
            return money(self.cart.payable)
        return self.final_payable

    @property
    def items_discount_amount(self) -> Decimal:
        return self.final_price - self.items_payable

    @property
    def final_discount_amount(self) -> Decimal:
        return self.final_price - self.final_payable

    @property
    def is_final_payable_zero(self) -> bool:
        return self.final_payable <= ZERO

    @property
    def final_currency(self) -> str:
        return self.cart.currency or self.context.settings.payment_currency

    def format_cost(self, amount) -> str:
        return format_cost(amount, self.final_currency, self.context.settings)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def checkout(self) -> bool:
        """Lock the cart for payment. Callers check ``is_checkout`` first."""
        actor_id, now = self.context.actor_id, self.context.now()
        payable = self._applied_payable()
        try:
            self.cart.record_totals(self.items_price, payable, actor_id=actor_id, now=now)
            self.cart.mark_checkout(self.final_currency, payable, actor_id=actor_id, now=now)
            self._save()
        except ValidationError as exc:
            logger.warning("Checkout rejected", cart_id=self.id, error=str(exc))
            self._reload()
            return False

        logger.info("Cart checked out", cart_id=self.id, payable=str(payable), currency=self.cart.currency)
        return True

    def cancel(self) -> bool:
        """Release any coupon usage and cancel the cart, atomically."""
        if not self.cart.is_owned_by(self.context.actor_id):
            return False
        if not self.cart.can_transition_to(CartStatus.CANCELED):
            logger.warning("Cart can no longer be canceled", cart_id=self.id, status=self.status)
            return False

        def work():
            if self.cart.has_applied_coupon:
                if self.context.coupons is None:
                    logger.warning("No coupon authority to release usage", cart_id=self.id)
                else:
                    result = self.context.coupons.cancel(self.snapshot())
                    if not result.ok:
                        raise CouponOperationError(result)
                    self.cart.clear_coupon(actor_id=self.context.actor_id, now=self.context.now())
            self.cart.mark_canceled(actor_id=self.context.actor_id, now=self.context.now())

        if not self._commit("cancel", work):
            return False
        logger.info("Cart canceled", cart_id=self.id, owner_id=self.owner_id)
        return True

    def deliver(self) -> bool:
        """Grant an enrolment for every item and mark the cart delivered, atomically."""
        if not self.cart.is_checkout:
            logger.warning("Only a checked-out cart can be delivered", cart_id=self.id, status=self.status)
            return False
        if not self.cart.is_owned_by(self.context.actor_id):
            return False

        def work():
            now = self.context.now()
            for item in self.cart.items:
                instance = self.context.catalog.find(item.offering_instance_id)
                if instance is None:
                    raise ValidationError(
                        {"offering_instance_id": [f"Unknown offering instance {item.offering_instance_id}"]}
                    )
                time_start, time_end = instance.enrolment_window(now)
                self.context.grantor.grant(
                    str(instance.id),
                    self.owner_id,
                    instance.role_id or self.context.settings.default_role_id,
                    time_start,
                    time_end,
                )
            self.cart.mark_delivered(actor_id=self.context.actor_id, now=now)

        if not self._commit("deliver", work):
            return False
        logger.info("Cart delivered", cart_id=self.id, owner_id=self.owner_id, item_count=self.count)
        return True

    def process_free_items(self) -> bool:
        """Check out and deliver straight away when nothing is owed."""
        if self.is_empty or not self.is_final_payable_zero:
            return False
        if not self.checkout():
            return False
        return self.deliver()

    # -------------------------------------------------------------------
    # Coupon
    # -------------------------------------------------------------------
    def snapshot(self) -> CartSnapshot:
        return build_snapshot(self.cart, self.final_price, self.final_payable)

    def can_use_coupon(self) -> bool:
        if not self.context.settings.coupon_enable or self.context.coupons is None:
            self.coupon_result = CouponResult.failure(COUPON_DISABLED, "Coupons are not available")
            return False
        if not self.can_edit_items:
            self.coupon_result = CouponResult.failure(CART_NOT_EDITABLE, "The cart can no longer be edited")
            return False
        return True

    def coupon_validate(self, coupon_code: str) -> bool:
        if not self.can_use_coupon():
            return False

        coupon_id = self.context.coupons.resolve_coupon_id(coupon_code)
        if not coupon_id:
            self.coupon_result = CouponResult.failure(
                INVALID_COUPON, "The coupon code is invalid", coupon_code=coupon_code
            )
            return False

        self.coupon_result = self.context.coupons.validate(self.snapshot(), coupon_id)
        return self.coupon_result.ok

    def coupon_apply(self, coupon_code: str) -> bool:
        """Redeem a coupon; a cart holds at most one, so cancel the current one first."""
        if self.cart.has_applied_coupon:
            self.coupon_result = CouponResult.failure(
                COUPON_ALREADY_APPLIED, "A coupon is already applied to this cart", coupon_code=self.cart.coupon_code
            )
            return False
        if not self.coupon_validate(coupon_code):
            return False

        result = self.context.coupons.apply(self.snapshot(), self.coupon_result.coupon_id)
        self.coupon_result = result
        if not result.ok:
            return False

        try:
            self.cart.record_coupon(
                result.coupon_id,
                result.coupon_code or coupon_code,
                result.coupon_usage_id,
                result.discount_amount or ZERO,
                actor_id=self.context.actor_id,
                now=self.context.now(),
            )
            self._reconcile()
            self._save()
        except ValidationError as exc:
            logger.error(
                "Coupon redeemed but not recorded",
                cart_id=self.id,
                coupon_id=result.coupon_id,
                coupon_usage_id=result.coupon_usage_id,
                error=str(exc),
            )
            self._reload()
            return False

        logger.info("Coupon applied", cart_id=self.id, coupon_code=self.cart.coupon_code, payable=self.cart.payable)
        return True

    def coupon_check_availability(self) -> bool:
        """Re-validate the applied coupon; False if it lapsed or its discount drifted."""
        if not self.cart.has_applied_coupon:
            return True
        if self.context.coupons is None:
            return False

        result = self.context.coupons.validate(self.snapshot(), str(self.cart.coupon_id))
        self.coupon_result = result
        if not result.ok:
            return False
        if money(result.discount_amount) != money(self.cart.coupon_discount_amount):
            logger.info(
                "Coupon discount drifted",
                cart_id=self.id,
                stored=self.cart.coupon_discount_amount,
                current=str(result.discount_amount),
            )
            return False
        return True

    def coupon_cancel(self) -> bool:
        if not self.can_edit_items or not self.cart.coupon_id or self.context.coupons is None:
            return False

        result = self.context.coupons.cancel(self.snapshot())
        if not result.ok:
            self.coupon_result = result
            return False

        self.coupon_result = None
        try:
            self.cart.clear_coupon(actor_id=self.context.actor_id, now=self.context.now())
            self._save()
        except ValidationError as exc:
            logger.warning("Failed to clear coupon", cart_id=self.id, error=str(exc))
            self._reload()
            return False

        self.refresh(force=True)
        logger.info("Coupon canceled", cart_id=self.id)
        return True

    @property
    def has_coupon(self) -> bool:
        if self.cart.has_applied_coupon:
            return True
        return bool(self.coupon_result and self.coupon_result.ok and self.coupon_result.discount_amount)

    @property
    def coupon_code(self) -> str | None:
        if self.cart.coupon_code:
            return self.cart.coupon_code
        return self.coupon_result.coupon_code if self.coupon_result else None

    @property
    def coupon_discount_amount(self) -> Decimal:
        """Applied discount, else the one previewed by the last successful validation."""
        if self.cart.has_applied_coupon:
            return self.cart.applied_discount
        if self.coupon_result and self.coupon_result.ok:
            return money(self.coupon_result.discount_amount)
        return ZERO

    @property
    def coupon_error_code(self) -> str | None:
        return self.coupon_result.error_code if self.coupon_result else None

    @property
    def coupon_error_message(self) -> str | None:
        return self.coupon_result.error_message if self.coupon_result else None
