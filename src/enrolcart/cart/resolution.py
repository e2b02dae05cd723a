"""Resolving which cart a request works on."""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from enrolcart.cart.cart import Cart
from enrolcart.cart.guest_cart import GuestCart
from enrolcart.cart.protocol import CartLike
from enrolcart.cart.user_cart import UserCart
from enrolcart.context import CartContext

logger = structlog.get_logger(__name__)


def find_current(context: CartContext, owner_id=None, force_new: bool = False) -> UserCart | None:
    """The owner's CURRENT cart, created on demand when ``force_new`` is set."""
    owner_id = owner_id if owner_id is not None else context.actor_id
    if owner_id is None:
        return None

    repo = current_domain.repository_for(Cart)
    cart = repo.find_current(owner_id)
    if cart is None:
        if not force_new:
            return None
        cart = Cart.create(owner_id=owner_id, actor_id=context.actor_id, now=context.now())
        repo.add(cart)
        logger.info("Current cart created", cart_id=str(cart.id), owner_id=str(owner_id))
    return UserCart(cart, context)


def find_one(context: CartContext, cart_id) -> UserCart | None:
    try:
        cart = current_domain.repository_for(Cart).get(cart_id)
    except ObjectNotFoundError:
        return None
    return UserCart(cart, context)


def find_all_by_owner(context: CartContext, owner_id, page: int = 0, limit: int = 0) -> list[UserCart]:
    carts = current_domain.repository_for(Cart).find_all_by_owner(owner_id, page=page, limit=limit)
    return [UserCart(cart, context) for cart in carts]


def count_by_owner(owner_id) -> int:
    return current_domain.repository_for(Cart).count_by_owner(owner_id)


def resolve_cart(context: CartContext, guest_cookie: str | None = None) -> CartLike:
    """Guest cart for anonymous visitors, the persisted current cart otherwise."""
    if not context.is_authenticated:
        return GuestCart.from_cookie(context, guest_cookie)
    return find_current(context, force_new=True)


def move_guest_cart_to_user(context: CartContext, guest: GuestCart) -> int:
    """Merge a guest cart into the signed-in user's cart and empty it.

    Each item goes through ``UserCart.add_item`` so availability and
    enrolment checks apply again. Returns the number of items moved.
    """
    if not context.is_authenticated or not guest.instance_ids:
        return 0

    cart = find_current(context, force_new=True)
    moved = sum(1 for instance_id in guest.instance_ids if cart.add_item(instance_id))
    guest.flush()
    logger.info("Guest cart merged", cart_id=cart.id, owner_id=cart.owner_id, moved=moved)
    return moved
