"""FastAPI routes for the enrolment cart.

Anonymous visitors (no ``X-User-Id`` header) work on a guest cart carried
in the ``cart_items`` cookie; every other endpoint needs a signed-in user.
Domain operations report failure as ``False``, which is mapped to a 4xx
response here.
"""

import os

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response

from enrolcart.api.dependencies import CartDependencies, get_context, get_dependencies
from enrolcart.api.schemas import (
    AddItemRequest,
    CartItemResponse,
    CartListResponse,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
    ConfigureCouponsRequest,
    CouponConfigResponse,
    CouponRequest,
    DeliveryRequest,
    PayableResponse,
    PayRequest,
    ReapRequest,
    ReapResponse,
    StatusResponse,
)
from enrolcart.cart.guest_cart import COOKIE_NAME, GuestCart
from enrolcart.cart.resolution import (
    count_by_owner,
    find_all_by_owner,
    find_current,
    find_one,
    move_guest_cart_to_user,
    resolve_cart,
)
from enrolcart.cart.user_cart import UserCart
from enrolcart.context import CartContext
from enrolcart.coupon.fake_adapter import FakeCouponGateway
from enrolcart.payment.record import CART_AREA

router = APIRouter(prefix="/cart", tags=["cart"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _cart_response(cart: UserCart | GuestCart) -> CartResponse:
    is_guest = isinstance(cart, GuestCart)
    items = [
        CartItemResponse(
            offering_instance_id=str(item.offering_instance_id),
            course_id=str(item.course_id) if item.course_id else None,
            price=float(item.price),
            payable=float(item.payable),
            has_discount=item.has_discount,
            discount_percent=item.discount_percent,
        )
        for item in cart.items
    ]
    response = CartResponse(
        is_guest=is_guest,
        can_edit_items=cart.can_edit_items,
        count=len(items),
        items=items,
        currency=cart.final_currency,
        final_price=float(cart.final_price),
        final_payable=float(cart.final_payable),
        items_discount_amount=float(cart.items_discount_amount),
        final_discount_amount=float(cart.final_discount_amount),
        formatted_payable=cart.format_cost(cart.final_payable),
    )
    if not is_guest:
        response.id = cart.id
        response.owner_id = cart.owner_id
        response.status = cart.status
        response.coupon_code = cart.coupon_code
        response.coupon_discount_amount = float(cart.coupon_discount_amount)
        response.coupon_error_code = cart.coupon_error_code
        response.coupon_error_message = cart.coupon_error_message
        response.changed = cart.changed
    return response


def _require_user(context: CartContext) -> None:
    if not context.is_authenticated:
        raise HTTPException(status_code=401, detail="Sign in to continue")


def _owned_cart(context: CartContext, cart_id: str | None) -> UserCart:
    """The caller's cart by id (``?cart_id=``), or their current cart when no id is given."""
    _require_user(context)
    cart = find_one(context, cart_id) if cart_id else find_current(context)
    if cart is None or cart.owner_id != context.actor_id:
        raise HTTPException(status_code=404, detail="Cart not found")
    return cart


def _set_guest_cookie(response: Response, cart: GuestCart) -> None:
    response.set_cookie(COOKIE_NAME, cart.cookie_value(), httponly=True, samesite="lax")


# ---------------------------------------------------------------------------
# Viewing and editing
# ---------------------------------------------------------------------------
@router.get("", response_model=CartResponse)
async def view_current_cart(
    response: Response,
    context: CartContext = Depends(get_context),
    cart_items: str | None = Cookie(default=None),
) -> CartResponse:
    cart = resolve_cart(context, cart_items)
    if isinstance(cart, GuestCart):
        _set_guest_cookie(response, cart)
    else:
        cart.refresh()
    return _cart_response(cart)


@router.post("/items", response_model=CartResponse)
async def add_item(
    body: AddItemRequest,
    response: Response,
    context: CartContext = Depends(get_context),
    cart_items: str | None = Cookie(default=None),
) -> CartResponse:
    if not body.offering_instance_id and not body.course_id:
        raise HTTPException(status_code=422, detail="offering_instance_id or course_id is required")

    cart = resolve_cart(context, cart_items)
    if body.offering_instance_id:
        added = cart.add_item(body.offering_instance_id)
    else:
        added = cart.add_course(body.course_id)
    if not added:
        raise HTTPException(status_code=409, detail="Item cannot be added to the cart")

    if isinstance(cart, GuestCart):
        _set_guest_cookie(response, cart)
    return _cart_response(cart)


@router.delete("/items/{offering_instance_id}", response_model=CartResponse)
async def remove_item(
    offering_instance_id: str,
    response: Response,
    context: CartContext = Depends(get_context),
    cart_items: str | None = Cookie(default=None),
) -> CartResponse:
    cart = resolve_cart(context, cart_items)
    if not cart.remove_item(offering_instance_id):
        raise HTTPException(status_code=409, detail="Item cannot be removed from the cart")

    if isinstance(cart, GuestCart):
        _set_guest_cookie(response, cart)
    return _cart_response(cart)


@router.post("/merge", response_model=CartResponse)
async def merge_guest_cart(
    response: Response,
    context: CartContext = Depends(get_context),
    cart_items: str | None = Cookie(default=None),
) -> CartResponse:
    """Login hook: move the guest cart into the user's current cart."""
    _require_user(context)
    guest = GuestCart.from_cookie(context, cart_items)
    move_guest_cart_to_user(context, guest)
    response.delete_cookie(COOKIE_NAME)
    return _cart_response(find_current(context, force_new=True))


@router.get("/mine", response_model=CartListResponse)
async def list_my_carts(
    page: int = 0,
    limit: int = 20,
    context: CartContext = Depends(get_context),
) -> CartListResponse:
    _require_user(context)
    carts = find_all_by_owner(context, context.actor_id, page=page, limit=limit)
    return CartListResponse(
        carts=[_cart_response(cart) for cart in carts],
        total=count_by_owner(context.actor_id),
    )


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
@router.post("/coupon", response_model=CartResponse)
async def apply_coupon(
    body: CouponRequest,
    cart_id: str | None = None,
    context: CartContext = Depends(get_context),
) -> CartResponse:
    cart = _owned_cart(context, cart_id)
    if not cart.coupon_apply(body.coupon_code):
        raise HTTPException(
            status_code=400,
            detail={"code": cart.coupon_error_code, "message": cart.coupon_error_message},
        )
    return _cart_response(cart)


@router.delete("/coupon", response_model=CartResponse)
async def cancel_coupon(cart_id: str | None = None, context: CartContext = Depends(get_context)) -> CartResponse:
    cart = _owned_cart(context, cart_id)
    if not cart.coupon_cancel():
        raise HTTPException(status_code=409, detail="Coupon cannot be canceled")
    return _cart_response(cart)


@router.post("/coupons/configure", response_model=CouponConfigResponse)
async def configure_coupons(
    body: ConfigureCouponsRequest,
    dependencies: CartDependencies = Depends(get_dependencies),
) -> CouponConfigResponse:
    """Configure the in-memory coupon authority (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Coupon configuration not available in production")

    coupons = dependencies.coupons
    if not isinstance(coupons, FakeCouponGateway):
        raise HTTPException(status_code=400, detail="Coupon configuration only available for FakeCouponGateway")

    coupons.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return CouponConfigResponse(
        gateway=type(coupons).__name__,
        should_succeed=coupons.should_succeed,
        failure_reason=coupons.failure_reason,
    )


# ---------------------------------------------------------------------------
# Checkout and payment
# ---------------------------------------------------------------------------
@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequest | None = None,
    cart_id: str | None = None,
    context: CartContext = Depends(get_context),
) -> CheckoutResponse:
    """Review step before payment.

    1. Refresh the cart and stop if anything changed
    2. Deliver straight away when nothing is owed
    3. Preview a coupon, replacing a different applied one
    """
    cart = _owned_cart(context, cart_id)
    if cart.is_empty or cart.cart.is_delivered:
        raise HTTPException(status_code=400, detail="Cart is empty")

    if cart.refresh():
        raise HTTPException(status_code=409, detail="Cart changed, please review it again")

    if cart.is_final_payable_zero:
        delivered = cart.process_free_items()
        return CheckoutResponse(cart=_cart_response(cart), delivered=delivered)

    coupon_code = body.coupon_code if body else None
    if coupon_code and cart.can_use_coupon():
        if cart.coupon_code and cart.cart.coupon_id and cart.coupon_code != coupon_code:
            cart.coupon_cancel()
        cart.coupon_validate(coupon_code)

    return CheckoutResponse(cart=_cart_response(cart))


@router.post("/pay", response_model=PayableResponse)
async def pay(
    body: PayRequest | None = None,
    cart_id: str | None = None,
    context: CartContext = Depends(get_context),
    dependencies: CartDependencies = Depends(get_dependencies),
) -> PayableResponse:
    """Lock the cart and report what the payment gateway should charge."""
    cart = _owned_cart(context, cart_id)
    if cart.is_empty or not (cart.cart.is_current or cart.cart.is_checkout):
        raise HTTPException(status_code=400, detail="Cart cannot be paid")

    cart.refresh()

    if not cart.coupon_check_availability() and not cart.coupon_cancel():
        raise HTTPException(status_code=409, detail=cart.coupon_error_message or "The coupon is no longer valid")

    if cart.changed:
        raise HTTPException(status_code=409, detail="Cart changed, please review it again")

    coupon_code = body.coupon_code if body else None
    if not cart.cart.coupon_id and coupon_code and not cart.coupon_apply(coupon_code):
        raise HTTPException(
            status_code=400,
            detail={"code": cart.coupon_error_code, "message": cart.coupon_error_message},
        )

    if cart.is_final_payable_zero:
        delivered = cart.process_free_items()
        return PayableResponse(
            cart_id=cart.id,
            amount=0.0,
            currency=cart.final_currency,
            account_id=dependencies.settings.payment_account_id,
            success_url=dependencies.payments.get_success_url(CART_AREA, cart.id),
            delivered=delivered,
        )

    if cart.can_edit_items and not cart.checkout():
        raise HTTPException(status_code=409, detail="Cart cannot be checked out")

    payable = dependencies.payments.get_payable(context, CART_AREA, cart.id)
    if not payable.is_payable:
        raise HTTPException(status_code=409, detail="Cart is not payable")

    return PayableResponse(
        cart_id=cart.id,
        amount=float(payable.amount),
        currency=payable.currency,
        account_id=payable.account_id,
        success_url=dependencies.payments.get_success_url(CART_AREA, cart.id),
    )


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
@router.post("/maintenance/reap", response_model=ReapResponse)
async def reap_expired_carts(
    body: ReapRequest | None = None,
    dependencies: CartDependencies = Depends(get_dependencies),
) -> ReapResponse:
    """Delete abandoned carts; meant to be called by an external scheduler."""
    report = dependencies.reaper().run(as_of=body.as_of if body else None)
    return ReapResponse(**report.as_dict())


# ---------------------------------------------------------------------------
# Single cart
# ---------------------------------------------------------------------------
@router.get("/{cart_id}", response_model=CartResponse)
async def view_cart(cart_id: str, context: CartContext = Depends(get_context)) -> CartResponse:
    cart = _owned_cart(context, cart_id)
    cart.refresh()
    return _cart_response(cart)


@router.post("/{cart_id}/cancel", response_model=StatusResponse)
async def cancel_cart(cart_id: str, context: CartContext = Depends(get_context)) -> StatusResponse:
    cart = _owned_cart(context, cart_id)
    if not cart.cancel():
        raise HTTPException(status_code=409, detail="Cart cannot be canceled")
    return StatusResponse(status="canceled")


@router.post("/{cart_id}/deliver", response_model=StatusResponse)
async def deliver_cart(
    cart_id: str,
    body: DeliveryRequest,
    dependencies: CartDependencies = Depends(get_dependencies),
) -> StatusResponse:
    """Payment success callback."""
    context = dependencies.context_for(None)
    if not dependencies.payments.deliver_order(context, CART_AREA, cart_id, body.payment_id, body.user_id):
        raise HTTPException(status_code=409, detail="Cart could not be delivered")
    return StatusResponse(status="delivered")
