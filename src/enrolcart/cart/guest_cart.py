"""Cart of an anonymous visitor, held entirely in a client cookie.

The cookie carries a URL-encoded JSON list of offering instance ids and
nothing else; prices are always read from the catalog. A guest cart can
never be paid: once the visitor signs in its items are moved into their
persisted cart.
"""

import json
from dataclasses import dataclass
from decimal import Decimal
from urllib.parse import quote, unquote

import structlog

from enrolcart.context import CartContext
from enrolcart.formatting import format_cost
from enrolcart.pricing import ZERO, markdown_percent, total

logger = structlog.get_logger(__name__)

COOKIE_NAME = "cart_items"


@dataclass(frozen=True)
class GuestItem:
    offering_instance_id: str
    course_id: str | None
    price: Decimal
    payable: Decimal

    @property
    def has_discount(self) -> bool:
        return self.payable < self.price

    @property
    def discount_percent(self) -> int | None:
        return markdown_percent(self.price, self.payable)


class GuestCart:
    def __init__(self, context: CartContext, instance_ids=()):
        self.context = context
        self._instance_ids: list[str] = list(dict.fromkeys(str(instance_id) for instance_id in instance_ids))

    @classmethod
    def from_cookie(cls, context: CartContext, payload: str | None) -> "GuestCart":
        """Rebuild from the cookie; anything unreadable starts an empty cart."""
        if not payload:
            return cls(context)
        try:
            instance_ids = json.loads(unquote(payload))
        except ValueError:
            logger.debug("Discarding malformed guest cart cookie")
            return cls(context)
        if not isinstance(instance_ids, list):
            return cls(context)
        return cls(context, [i for i in instance_ids if isinstance(i, (str, int)) and not isinstance(i, bool)])

    def cookie_value(self) -> str:
        return quote(json.dumps(self._instance_ids), safe="")

    @property
    def instance_ids(self) -> list[str]:
        return list(self._instance_ids)

    @property
    def items(self) -> list[GuestItem]:
        """Items still offered right now; the rest are silently skipped."""
        items = []
        for instance_id in self._instance_ids:
            instance = self.context.catalog.get(instance_id)
            if instance is None:
                continue
            items.append(
                GuestItem(
                    offering_instance_id=instance_id,
                    course_id=str(instance.course_id) if instance.course_id else None,
                    price=instance.price,
                    payable=instance.payable,
                )
            )
        return items

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def has_item(self, offering_instance_id) -> bool:
        return str(offering_instance_id) in self._instance_ids

    def add_item(self, offering_instance_id) -> bool:
        if self.has_item(offering_instance_id) or not self.context.catalog.has(offering_instance_id):
            return False
        self._instance_ids.append(str(offering_instance_id))
        return True

    def remove_item(self, offering_instance_id) -> bool:
        if not self.has_item(offering_instance_id):
            return False
        self._instance_ids.remove(str(offering_instance_id))
        return True

    def add_course(self, course_id) -> bool:
        instance_id = self.context.catalog.first_for_course(course_id)
        return instance_id is not None and self.add_item(instance_id)

    def remove_course(self, course_id) -> bool:
        item = next((item for item in self.items if item.course_id == str(course_id)), None)
        return item is not None and self.remove_item(item.offering_instance_id)

    @property
    def can_edit_items(self) -> bool:
        return True

    @property
    def final_price(self) -> Decimal:
        return total(item.price for item in self.items)

    @property
    def final_payable(self) -> Decimal:
        return total(item.payable for item in self.items)

    @property
    def items_discount_amount(self) -> Decimal:
        return self.final_price - self.final_payable

    @property
    def final_discount_amount(self) -> Decimal:
        return self.items_discount_amount

    @property
    def is_final_payable_zero(self) -> bool:
        return self.final_payable <= ZERO

    @property
    def final_currency(self) -> str:
        return self.context.settings.payment_currency

    def format_cost(self, amount) -> str:
        return format_cost(amount, self.final_currency, self.context.settings)

    def flush(self) -> None:
        self._instance_ids.clear()

    def checkout(self) -> bool:
        return False

    def deliver(self) -> bool:
        return False

    def cancel(self) -> bool:
        self.flush()
        return True
