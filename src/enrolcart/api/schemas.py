"""Pydantic request/response schemas for the cart API.

These are external contracts, separate from the domain objects they are
built from.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class AddItemRequest(BaseModel):
    offering_instance_id: str | None = None
    course_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"offering_instance_id": "inst-001"},
                {"course_id": "course-001"},
            ]
        }
    }


class CouponRequest(BaseModel):
    coupon_code: str = Field(min_length=1, max_length=100)


class CheckoutRequest(BaseModel):
    coupon_code: str | None = None


class PayRequest(BaseModel):
    coupon_code: str | None = None


class DeliveryRequest(BaseModel):
    payment_id: str
    user_id: str


class ReapRequest(BaseModel):
    as_of: datetime | None = None


class ConfigureCouponsRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Coupon authority unavailable"


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class CartItemResponse(BaseModel):
    offering_instance_id: str
    course_id: str | None = None
    price: float
    payable: float
    has_discount: bool
    discount_percent: int | None = None


class CartResponse(BaseModel):
    id: str | None = None
    owner_id: str | None = None
    status: str | None = None
    is_guest: bool = False
    can_edit_items: bool
    count: int
    items: list[CartItemResponse]
    currency: str
    final_price: float
    final_payable: float
    items_discount_amount: float
    final_discount_amount: float
    formatted_payable: str
    coupon_code: str | None = None
    coupon_discount_amount: float = 0.0
    coupon_error_code: str | None = None
    coupon_error_message: str | None = None
    changed: bool = False


class CheckoutResponse(BaseModel):
    cart: CartResponse
    delivered: bool = False


class PayableResponse(BaseModel):
    cart_id: str
    amount: float
    currency: str
    account_id: int
    success_url: str
    delivered: bool = False


class CartListResponse(BaseModel):
    carts: list[CartResponse]
    total: int


class ReapResponse(BaseModel):
    deleted: list[str]
    skipped: list[str]
    failed: list[str]


class CouponConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
