"""OfferingInstance aggregate: a purchasable enrolment configuration for a course.

Read-mostly from the cart's point of view: administrators maintain price,
discount rule and availability window; carts snapshot price and payable.
"""

from datetime import datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String

from enrolcart.domain import enrolcart
from enrolcart.pricing import DiscountType, compute_payable, discount_for, discount_percentage, money
from enrolcart.utils.time import as_utc


class OfferingStatus(Enum):
    ENABLED = "Enabled"
    DISABLED = "Disabled"


@enrolcart.aggregate
class OfferingInstance:
    course_id = Identifier(required=True)
    name = String(max_length=255)
    status = String(choices=OfferingStatus, default=OfferingStatus.ENABLED.value)
    cost = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3)
    discount_type = String(choices=DiscountType, default=DiscountType.NONE.value)
    discount_amount = String(max_length=50)
    enrol_start_date = DateTime()
    enrol_end_date = DateTime()
    enrol_period = Integer(default=0, min_value=0)  # seconds, 0 = unlimited
    role_id = String(max_length=50)
    sort_order = Integer(default=0)

    @invariant.post
    def enrolment_window_must_be_ordered(self):
        start, end = as_utc(self.enrol_start_date), as_utc(self.enrol_end_date)
        if start and end and end <= start:
            raise ValidationError({"enrol_end_date": ["Enrolment end must be after enrolment start"]})

    @property
    def is_enabled(self) -> bool:
        return self.status == OfferingStatus.ENABLED.value

    def is_available_at(self, now: datetime) -> bool:
        """Enabled and inside the (open-ended where unset) enrolment window."""
        if not self.is_enabled:
            return False
        start, end = as_utc(self.enrol_start_date), as_utc(self.enrol_end_date)
        if start and start >= now:
            return False
        if end and end <= now:
            return False
        return True

    @property
    def price(self):
        return money(self.cost)

    @property
    def payable(self):
        return compute_payable(self.cost, self.discount_type, self.discount_amount)

    @property
    def discount(self):
        return discount_for(self.cost, self.discount_type, self.discount_amount)

    @property
    def has_discount(self) -> bool:
        return bool(self.discount)

    @property
    def discount_percentage(self) -> int | None:
        return discount_percentage(self.cost, self.discount_type, self.discount_amount)

    def enrolment_window(self, now: datetime) -> tuple[datetime | None, datetime | None]:
        """Window granted on delivery: unbounded for a zero period, else [now, now + period)."""
        if not self.enrol_period:
            return None, None
        return now, now + timedelta(seconds=self.enrol_period)
