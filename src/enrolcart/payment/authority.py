"""Payment callbacks for carts.

The payment subsystem asks how much a cart owes before it charges, where
to send the user afterwards, and finally tells us the payment succeeded so
that the cart can be delivered. All three are keyed by a payment area
(always ``cart`` here) and the cart id.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog
from protean.utils.globals import current_domain

from enrolcart.cart.resolution import find_one
from enrolcart.context import CartContext
from enrolcart.payment.record import CART_AREA, PaymentRecord
from enrolcart.pricing import ZERO, money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Payable:
    amount: Decimal
    currency: str
    account_id: int

    @property
    def is_payable(self) -> bool:
        return self.amount > ZERO


NOT_PAYABLE = Payable(amount=Decimal(-1), currency="", account_id=-1)


class PaymentAuthority:
    def __init__(self, success_url_template: str = "/cart/{cart_id}"):
        self.success_url_template = success_url_template

    def get_payable(self, context: CartContext, area: str, cart_id) -> Payable:
        """What the owner must pay for a locked cart, or ``NOT_PAYABLE``."""
        if area != CART_AREA:
            return NOT_PAYABLE

        cart = find_one(context, cart_id)
        if (
            cart is None
            or context.actor_id is None
            or not cart.cart.is_owned_by(context.actor_id)
            or not (cart.cart.is_current or cart.cart.is_checkout)
            or cart.can_edit_items
            or cart.final_payable <= ZERO
        ):
            return NOT_PAYABLE

        return Payable(
            amount=cart.final_payable,
            currency=cart.final_currency,
            account_id=context.settings.payment_account_id,
        )

    def get_success_url(self, area: str, cart_id) -> str:
        return self.success_url_template.format(area=area, cart_id=cart_id)

    def deliver_order(self, context: CartContext, area: str, cart_id, payment_id, user_id) -> bool:
        """Deliver a paid cart; the payment must match the owner and, if configured, the amount."""
        if area != CART_AREA:
            return False

        cart = find_one(context, cart_id)
        if cart is None:
            logger.warning("Payment for unknown cart", cart_id=str(cart_id), payment_id=str(payment_id))
            return False

        verified = cart.owner_id == str(user_id) and cart.is_checkout
        if verified and context.settings.verify_payment_on_delivery:
            record = current_domain.repository_for(PaymentRecord).find_by_payment_id(payment_id)
            verified = (
                record is not None
                and str(record.cart_id) == cart.id
                and money(record.amount) == cart.final_payable
            )

        if not verified:
            logger.warning(
                "Payment verification failed",
                cart_id=cart.id,
                payment_id=str(payment_id),
                user_id=str(user_id),
            )
            return False

        if not cart.deliver():
            logger.error("Delivery failed after payment", cart_id=cart.id, payment_id=str(payment_id))
            return False
        return True
