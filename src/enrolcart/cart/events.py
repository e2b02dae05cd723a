"""Domain events for the Cart aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from enrolcart.domain import enrolcart


@enrolcart.event(part_of="Cart")
class CartItemAdded:
    """An offering instance was added to the cart."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    offering_instance_id = Identifier(required=True)
    price = Float(required=True)
    payable = Float(required=True)


@enrolcart.event(part_of="Cart")
class CartItemRemoved:
    """An item left the cart, by request or because it became invalid."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    offering_instance_id = Identifier(required=True)
    reason = String(max_length=50)  # removed / unavailable / already_enrolled


@enrolcart.event(part_of="Cart")
class CartRefreshed:
    """A refresh changed the cart's items or totals."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    price = Float(required=True)
    payable = Float(required=True)
    item_count = Integer(required=True)


@enrolcart.event(part_of="Cart")
class CartCheckedOut:
    """The cart was locked for payment."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    currency = String(max_length=3)
    payable = Float()
    checkout_at = DateTime(required=True)


@enrolcart.event(part_of="Cart")
class CartCanceled:
    """The cart was canceled by its owner."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    canceled_at = DateTime(required=True)


@enrolcart.event(part_of="Cart")
class CartDelivered:
    """Every item of the cart was delivered as an enrolment."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    offering_instance_ids = Text(required=True)  # JSON list
    payable = Float()
    delivered_at = DateTime(required=True)


@enrolcart.event(part_of="Cart")
class CartCouponApplied:
    """A coupon was redeemed against the cart."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    coupon_code = String(required=True)
    coupon_usage_id = Identifier()
    discount_amount = Float(required=True)


@enrolcart.event(part_of="Cart")
class CartCouponCanceled:
    """The coupon usage on the cart was released."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    coupon_code = String()


@enrolcart.event(part_of="Cart")
class CartDeleted:
    """An abandoned cart was deleted by the expiry sweep."""

    __version__ = "v1"

    cart_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    status = String(required=True)
    snapshot = Text(required=True)  # JSON of every cart attribute and its items
    deleted_at = DateTime(required=True)
