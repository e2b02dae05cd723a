"""Discount policy and money arithmetic.

Amounts are persisted as floats but every calculation runs on ``Decimal``
quantized to two places.
"""

from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


class DiscountType(Enum):
    NONE = "NoDiscount"
    PERCENTAGE = "Percentage"
    FIXED = "Fixed"


def money(value) -> Decimal:
    """Coerce a float/int/str/Decimal (or None) to a 2dp Decimal."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    return Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def total(values) -> Decimal:
    return sum((money(v) for v in values), ZERO)


def parse_discount_type(discount_type) -> DiscountType:
    """Map a stored discount type to the enum; unknown values mean no discount."""
    if isinstance(discount_type, DiscountType):
        return discount_type
    try:
        return DiscountType(discount_type)
    except ValueError:
        return DiscountType.NONE


def _parse_amount(discount_amount) -> Decimal | None:
    if discount_amount is None or isinstance(discount_amount, bool):
        return None
    if isinstance(discount_amount, str):
        discount_amount = discount_amount.strip()
        if not discount_amount:
            return None
    try:
        amount = Decimal(str(discount_amount))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def _is_whole_percentage(discount_amount, amount: Decimal) -> bool:
    # Only plain digit strings count as percentages ("10", never "10.5" or "-5")
    if isinstance(discount_amount, str) and not discount_amount.strip().isdigit():
        return False
    return amount == amount.to_integral_value() and ZERO <= amount <= Decimal(100)


def discount_for(price, discount_type, discount_amount) -> Decimal:
    """Return the discount an offering's own rule takes off ``price``.

    Invalid rules yield a zero discount: a percentage outside 0..100 or with
    a fractional part, or a fixed amount larger than the price (the full
    price is charged, the discount is not clamped).
    """
    price = money(price)
    discount_type = parse_discount_type(discount_type)
    amount = _parse_amount(discount_amount)

    if discount_type == DiscountType.NONE or amount is None:
        return ZERO

    if discount_type == DiscountType.PERCENTAGE:
        if not _is_whole_percentage(discount_amount, amount):
            return ZERO
        return money(price * amount / Decimal(100))

    if discount_type == DiscountType.FIXED:
        if amount < ZERO or amount > price:
            return ZERO
        return money(amount)

    return ZERO


def compute_payable(price, discount_type, discount_amount) -> Decimal:
    """Payable price of an offering after its own discount rule."""
    return money(price) - discount_for(price, discount_type, discount_amount)


def discount_percentage(price, discount_type, discount_amount) -> int | None:
    """Whole-number percentage shown next to a discounted offering."""
    price = money(price)
    discount = discount_for(price, discount_type, discount_amount)
    if not discount or price <= ZERO:
        return None
    if parse_discount_type(discount_type) == DiscountType.PERCENTAGE:
        return int(_parse_amount(discount_amount).to_integral_value(rounding=ROUND_CEILING))
    return markdown_percent(price, price - discount)


def markdown_percent(price, payable) -> int | None:
    """Whole percent between a price and what is actually charged for it."""
    price, payable = money(price), money(payable)
    if price <= ZERO or payable >= price:
        return None
    return 100 - int((payable * 100 / price).to_integral_value(rounding=ROUND_FLOOR))
