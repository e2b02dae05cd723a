"""Display formatting for cart amounts.

A static presentation transform only: the optional IRR→IRT relabel divides
the displayed figure by ten, it never converts between currencies.
"""

from enrolcart.config import CartSettings
from enrolcart.pricing import ZERO, money

FREE_LABEL = "Free"

_PERSIAN_DIGITS = str.maketrans("0123456789%", "۰۱۲۳۴۵۶۷۸۹٪")
_ZERO_DECIMAL_CURRENCIES = frozenset({"IRR", "IRT", "JPY", "KRW"})


def to_persian_digits(text: str) -> str:
    return text.translate(_PERSIAN_DIGITS)


def format_cost(amount, currency: str, settings: CartSettings) -> str:
    """Render ``amount`` in ``currency`` the way the storefront shows it."""
    value = money(amount)
    if value <= ZERO:
        return FREE_LABEL

    if currency == "IRR" and settings.convert_irr_to_irt:
        value = value / 10
        currency = "IRT"

    if currency in _ZERO_DECIMAL_CURRENCIES:
        figure = f"{value:,.0f}"
    else:
        figure = f"{value:,.2f}"
    cost = f"{currency} {figure}"

    if settings.convert_numbers_to_persian:
        cost = to_persian_digits(cost)
    return cost


def format_percent(percent: int | None, settings: CartSettings) -> str | None:
    if not percent:
        return None
    text = f"{percent}%"
    if settings.convert_numbers_to_persian:
        return to_persian_digits(text)
    return text
