"""Cart aggregate: the persisted basket of offering instances a user is buying.

State Machine:
    CURRENT → CHECKOUT → DELIVERED
    CURRENT/CHECKOUT → CANCELED

A cart in CHECKOUT whose payment window has lapsed is editable again, but
its status stays CHECKOUT until it is checked out anew, delivered or
canceled. Price and payable snapshots are kept on the items so that a
cart which is no longer editable reports exactly what was locked in.
"""

import json
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String

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
from enrolcart.domain import enrolcart
from enrolcart.pricing import ZERO, markdown_percent, money, total
from enrolcart.utils.time import as_utc, utcnow


class CartStatus(Enum):
    CURRENT = "Current"
    CHECKOUT = "Checkout"
    CANCELED = "Canceled"
    DELIVERED = "Delivered"


_VALID_TRANSITIONS = {
    CartStatus.CURRENT: {CartStatus.CHECKOUT, CartStatus.CANCELED},
    CartStatus.CHECKOUT: {CartStatus.CHECKOUT, CartStatus.DELIVERED, CartStatus.CANCELED},
    CartStatus.CANCELED: set(),  # Terminal
    CartStatus.DELIVERED: set(),  # Terminal
}


@enrolcart.entity(part_of="Cart")
class CartItem:
    """One offering instance in a cart, with the price it was last seen at."""

    offering_instance_id = Identifier(required=True)
    course_id = Identifier()
    price = Float(default=0.0, min_value=0.0)
    payable = Float(default=0.0, min_value=0.0)
    added_at = DateTime()

    @property
    def price_amount(self) -> Decimal:
        return money(self.price)

    @property
    def payable_amount(self) -> Decimal:
        return money(self.payable)

    @property
    def has_discount(self) -> bool:
        return self.payable_amount < self.price_amount

    @property
    def discount_percent(self) -> int | None:
        return markdown_percent(self.price, self.payable)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "offering_instance_id": str(self.offering_instance_id),
            "course_id": str(self.course_id) if self.course_id else None,
            "price": self.price,
            "payable": self.payable,
            "added_at": self.added_at.isoformat() if self.added_at else None,
        }


@enrolcart.aggregate
class Cart:
    owner_id = Identifier(required=True)
    status = String(choices=CartStatus, default=CartStatus.CURRENT.value)
    currency = String(max_length=3)
    price = Float(default=0.0, min_value=0.0)
    payable = Float(default=0.0, min_value=0.0)
    coupon_id = Identifier()
    coupon_code = String(max_length=100)
    coupon_usage_id = Identifier()
    coupon_discount_amount = Float()
    checkout_at = DateTime()
    items = HasMany(CartItem)
    created_at = DateTime()
    created_by = Identifier()
    updated_at = DateTime()
    updated_by = Identifier()

    @invariant.post
    def delivered_cart_must_have_items(self):
        if self.status == CartStatus.DELIVERED.value and not self.items:
            raise ValidationError({"cart": ["Cannot deliver an empty cart"]})

    @invariant.post
    def coupon_usage_requires_coupon(self):
        if self.coupon_usage_id and not self.coupon_id:
            raise ValidationError({"coupon_usage_id": ["A coupon usage needs a coupon"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, owner_id, actor_id=None, now: datetime | None = None):
        now = now or utcnow()
        actor = actor_id if actor_id is not None else owner_id
        return cls(
            owner_id=str(owner_id),
            status=CartStatus.CURRENT.value,
            price=0.0,
            payable=0.0,
            created_at=now,
            created_by=str(actor),
            updated_at=now,
            updated_by=str(actor),
        )

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    @property
    def is_current(self) -> bool:
        return self.status == CartStatus.CURRENT.value

    @property
    def is_checkout(self) -> bool:
        return self.status == CartStatus.CHECKOUT.value

    @property
    def is_canceled(self) -> bool:
        return self.status == CartStatus.CANCELED.value

    @property
    def is_delivered(self) -> bool:
        return self.status == CartStatus.DELIVERED.value

    def is_checkout_expired(self, now: datetime, completion_time: int) -> bool:
        """True once a checked-out cart has been waiting longer than the payment window."""
        if not self.is_checkout:
            return False
        checkout_at = as_utc(self.checkout_at)
        if checkout_at is None:
            return True
        return now - checkout_at > timedelta(seconds=completion_time)

    def is_owned_by(self, actor_id) -> bool:
        """The system actor (``None``) passes every ownership check."""
        return actor_id is None or str(actor_id) == str(self.owner_id)

    def can_edit_items(self, actor_id, now: datetime, completion_time: int) -> bool:
        if not self.is_owned_by(actor_id):
            return False
        return self.is_current or self.is_checkout_expired(now, completion_time)

    def can_transition_to(self, target: CartStatus) -> bool:
        return target in _VALID_TRANSITIONS[CartStatus(self.status)]

    def _transition(self, target: CartStatus) -> None:
        current = CartStatus(self.status)
        if not self.can_transition_to(target):
            raise ValidationError({"status": [f"Cannot move a cart from {current.value} to {target.value}"]})
        self.status = target.value

    def _touch(self, actor_id, now: datetime) -> None:
        self.updated_at = now
        self.updated_by = str(actor_id) if actor_id is not None else self.updated_by

    def _require_open(self, action: str) -> None:
        if CartStatus(self.status) not in (CartStatus.CURRENT, CartStatus.CHECKOUT):
            raise ValidationError({"status": [f"Cannot {action} a {self.status} cart"]})

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def item_for(self, offering_instance_id) -> CartItem | None:
        return next(
            (item for item in self.items if str(item.offering_instance_id) == str(offering_instance_id)),
            None,
        )

    def has_item(self, offering_instance_id) -> bool:
        return self.item_for(offering_instance_id) is not None

    def add_item(self, offering_instance_id, course_id, price, payable, actor_id=None, now=None) -> CartItem:
        """Add an instance with a fresh price snapshot."""
        self._require_open("add items to")
        if self.has_item(offering_instance_id):
            raise ValidationError({"offering_instance_id": ["Offering instance is already in the cart"]})

        now = now or utcnow()
        item = CartItem(
            offering_instance_id=str(offering_instance_id),
            course_id=str(course_id) if course_id else None,
            price=float(money(price)),
            payable=float(money(payable)),
            added_at=now,
        )
        self.add_items(item)
        self._touch(actor_id, now)

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                offering_instance_id=str(offering_instance_id),
                price=item.price,
                payable=item.payable,
            )
        )
        return item

    def remove_item(self, offering_instance_id, reason="removed", actor_id=None, now=None) -> CartItem:
        self._require_open("remove items from")
        item = self.item_for(offering_instance_id)
        if item is None:
            raise ValidationError({"offering_instance_id": ["Offering instance is not in the cart"]})

        self.remove_items(item)
        self._touch(actor_id, now or utcnow())

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                item_id=str(item.id),
                offering_instance_id=str(offering_instance_id),
                reason=reason,
            )
        )
        return item

    def reprice_item(self, item: CartItem, price, payable) -> bool:
        """Overwrite an item's snapshot; returns True when anything moved."""
        price, payable = float(money(price)), float(money(payable))
        if item.price == price and item.payable == payable:
            return False
        item.price = price
        item.payable = payable
        self.add_items(item)
        return True

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    @property
    def items_price(self) -> Decimal:
        return total(item.price for item in self.items)

    @property
    def items_payable(self) -> Decimal:
        return total(item.payable for item in self.items)

    @property
    def applied_discount(self) -> Decimal:
        if self.coupon_id and self.coupon_usage_id and self.coupon_discount_amount:
            return money(self.coupon_discount_amount)
        return ZERO

    def record_totals(self, price, payable, actor_id=None, now=None) -> bool:
        """Persist new price/payable snapshots; returns True when they changed."""
        price, payable = float(money(price)), float(money(payable))
        if self.price == price and self.payable == payable:
            return False

        with atomic_change(self):
            self.price = price
            self.payable = payable
            self._touch(actor_id, now or utcnow())

        self.raise_(
            CartRefreshed(
                cart_id=str(self.id),
                price=price,
                payable=payable,
                item_count=len(self.items),
            )
        )
        return True

    # -------------------------------------------------------------------
    # Coupon
    # -------------------------------------------------------------------
    @property
    def has_applied_coupon(self) -> bool:
        return bool(self.coupon_id and self.coupon_usage_id)

    def record_coupon(self, coupon_id, coupon_code, coupon_usage_id, discount_amount, actor_id=None, now=None):
        """Store a coupon redemption confirmed by the coupon authority."""
        self._require_open("apply a coupon to")
        if self.has_applied_coupon:
            raise ValidationError({"coupon_id": ["A coupon is already applied to this cart"]})

        with atomic_change(self):
            self.coupon_id = str(coupon_id)
            self.coupon_code = coupon_code
            self.coupon_usage_id = str(coupon_usage_id) if coupon_usage_id else None
            self.coupon_discount_amount = float(money(discount_amount))
            self._touch(actor_id, now or utcnow())

        self.raise_(
            CartCouponApplied(
                cart_id=str(self.id),
                coupon_id=str(coupon_id),
                coupon_code=coupon_code,
                coupon_usage_id=str(coupon_usage_id) if coupon_usage_id else None,
                discount_amount=self.coupon_discount_amount,
            )
        )

    def clear_coupon(self, actor_id=None, now=None) -> None:
        if not self.coupon_id:
            return

        coupon_id, coupon_code = self.coupon_id, self.coupon_code
        with atomic_change(self):
            self.coupon_id = None
            self.coupon_code = None
            self.coupon_usage_id = None
            self.coupon_discount_amount = None
            self._touch(actor_id, now or utcnow())

        self.raise_(
            CartCouponCanceled(
                cart_id=str(self.id),
                coupon_id=str(coupon_id),
                coupon_code=coupon_code,
            )
        )

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def mark_checkout(self, currency, payable, actor_id=None, now=None) -> None:
        """Lock the cart for payment and start the payment window."""
        now = now or utcnow()
        with atomic_change(self):
            self._transition(CartStatus.CHECKOUT)
            self.currency = currency
            self.checkout_at = now
            self._touch(actor_id, now)

        self.raise_(
            CartCheckedOut(
                cart_id=str(self.id),
                owner_id=str(self.owner_id),
                currency=currency,
                payable=float(money(payable)),
                checkout_at=now,
            )
        )

    def mark_canceled(self, actor_id=None, now=None) -> None:
        now = now or utcnow()
        with atomic_change(self):
            self._transition(CartStatus.CANCELED)
            self._touch(actor_id, now)

        self.raise_(
            CartCanceled(
                cart_id=str(self.id),
                owner_id=str(self.owner_id),
                canceled_at=now,
            )
        )

    def mark_delivered(self, actor_id=None, now=None) -> None:
        now = now or utcnow()
        with atomic_change(self):
            self._transition(CartStatus.DELIVERED)
            self._touch(actor_id, now)

        self.raise_(
            CartDelivered(
                cart_id=str(self.id),
                owner_id=str(self.owner_id),
                offering_instance_ids=json.dumps([str(item.offering_instance_id) for item in self.items]),
                payable=self.payable,
                delivered_at=now,
            )
        )

    def to_dict(self) -> dict:
        """Every attribute of the cart and its items, for audit snapshots."""

        def _iso(value):
            return value.isoformat() if value else None

        return {
            "id": str(self.id),
            "owner_id": str(self.owner_id),
            "status": self.status,
            "currency": self.currency,
            "price": self.price,
            "payable": self.payable,
            "coupon_id": str(self.coupon_id) if self.coupon_id else None,
            "coupon_code": self.coupon_code,
            "coupon_usage_id": str(self.coupon_usage_id) if self.coupon_usage_id else None,
            "coupon_discount_amount": self.coupon_discount_amount,
            "checkout_at": _iso(self.checkout_at),
            "created_at": _iso(self.created_at),
            "created_by": str(self.created_by) if self.created_by else None,
            "updated_at": _iso(self.updated_at),
            "updated_by": str(self.updated_by) if self.updated_by else None,
            "items": [item.to_dict() for item in self.items],
        }

    def mark_deleted(self, now=None) -> None:
        """Drop every item and record the deletion; the caller removes the row."""
        snapshot = json.dumps(self.to_dict())
        for item in list(self.items):
            self.remove_items(item)

        self.raise_(
            CartDeleted(
                cart_id=str(self.id),
                owner_id=str(self.owner_id),
                status=self.status,
                snapshot=snapshot,
                deleted_at=now or utcnow(),
            )
        )
