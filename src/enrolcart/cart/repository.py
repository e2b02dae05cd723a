"""Repository for the Cart aggregate."""

import structlog

from enrolcart.cart.cart import Cart, CartStatus
from enrolcart.domain import enrolcart
from enrolcart.utils.time import as_utc

logger = structlog.get_logger(__name__)


def _by_creation(cart: Cart):
    return (as_utc(cart.created_at) is None, as_utc(cart.created_at) or 0, str(cart.id))


@enrolcart.repository(part_of=Cart)
class CartRepository:
    def find_by_owner(self, owner_id, status: CartStatus | None = None) -> list[Cart]:
        filters = {"owner_id": str(owner_id)}
        if status is not None:
            filters["status"] = status.value
        return sorted(self._dao.query.filter(**filters).all().items, key=_by_creation)

    def find_current(self, owner_id) -> Cart | None:
        """The owner's CURRENT cart; the earliest one if several slipped through."""
        carts = self.find_by_owner(owner_id, CartStatus.CURRENT)
        if len(carts) > 1:
            logger.warning(
                "Owner has more than one current cart",
                owner_id=str(owner_id),
                cart_ids=[str(cart.id) for cart in carts],
            )
        return carts[0] if carts else None

    def find_by_status(self, status: CartStatus) -> list[Cart]:
        return sorted(self._dao.query.filter(status=status.value).all().items, key=_by_creation)

    def find_all_by_owner(self, owner_id, page: int = 0, limit: int = 0) -> list[Cart]:
        """Owner's carts, newest first; ``limit=0`` returns them all."""
        carts = list(reversed(self.find_by_owner(owner_id)))
        if limit <= 0:
            return carts
        start = max(page, 0) * limit
        return carts[start : start + limit]

    def count_by_owner(self, owner_id) -> int:
        return len(self._dao.query.filter(owner_id=str(owner_id)).all().items)
