"""Enrolment cart bounded context: carts, pricing, coupons and delivery.

Handles the cart lifecycle (CRUD aggregate, not event sourced), the pricing
and discount rules of purchasable offering instances, coupon redemption
through an external authority, payment hand-off and the delivery of paid
carts as course enrolments.
"""

from protean.domain import Domain

from enrolcart.utils.logging import configure_logging

configure_logging()

enrolcart = Domain(name="enrolcart")
