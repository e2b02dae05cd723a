"""Cart settings.

Durations are in seconds. A lifetime of ``0`` disables the corresponding
expiry sweep entirely.
"""

import os
from dataclasses import dataclass, replace

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


@dataclass(frozen=True)
class CartSettings:
    payment_currency: str = "USD"
    payment_account_id: int = 0
    payment_completion_time: int = 60 * 15
    canceled_cart_lifetime: int = 0
    pending_payment_cart_lifetime: int = 0
    not_delete_cart_with_payment_record: bool = True
    verify_payment_on_delivery: bool = True
    coupon_enable: bool = False
    convert_irr_to_irt: bool = False
    convert_numbers_to_persian: bool = False
    default_role_id: str = "student"

    def __post_init__(self):
        for name in ("payment_completion_time", "canceled_cart_lifetime", "pending_payment_cart_lifetime"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    @classmethod
    def from_env(cls, prefix: str = "ENROLCART_") -> "CartSettings":
        """Build settings from ``ENROLCART_*`` environment variables."""
        defaults = cls()
        return cls(
            payment_currency=os.environ.get(f"{prefix}PAYMENT_CURRENCY", defaults.payment_currency),
            payment_account_id=_env_int(f"{prefix}PAYMENT_ACCOUNT_ID", defaults.payment_account_id),
            payment_completion_time=_env_int(f"{prefix}PAYMENT_COMPLETION_TIME", defaults.payment_completion_time),
            canceled_cart_lifetime=_env_int(f"{prefix}CANCELED_CART_LIFETIME", defaults.canceled_cart_lifetime),
            pending_payment_cart_lifetime=_env_int(
                f"{prefix}PENDING_PAYMENT_CART_LIFETIME", defaults.pending_payment_cart_lifetime
            ),
            not_delete_cart_with_payment_record=_env_bool(
                f"{prefix}NOT_DELETE_CART_WITH_PAYMENT_RECORD", defaults.not_delete_cart_with_payment_record
            ),
            verify_payment_on_delivery=_env_bool(
                f"{prefix}VERIFY_PAYMENT_ON_DELIVERY", defaults.verify_payment_on_delivery
            ),
            coupon_enable=_env_bool(f"{prefix}COUPON_ENABLE", defaults.coupon_enable),
            convert_irr_to_irt=_env_bool(f"{prefix}CONVERT_IRR_TO_IRT", defaults.convert_irr_to_irt),
            convert_numbers_to_persian=_env_bool(
                f"{prefix}CONVERT_NUMBERS_TO_PERSIAN", defaults.convert_numbers_to_persian
            ),
            default_role_id=os.environ.get(f"{prefix}DEFAULT_ROLE_ID", defaults.default_role_id),
        )

    def with_overrides(self, **changes) -> "CartSettings":
        return replace(self, **changes)
