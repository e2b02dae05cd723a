"""Per-request collaborators for cart operations.

A ``CartContext`` is built for one request or one scheduler run and passed
into every cart operation. Nothing on it is process-wide: the offering
catalog it owns memoizes lookups only for as long as the context lives.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from enrolcart.config import CartSettings
from enrolcart.coupon.port import CouponGateway
from enrolcart.enrolment.port import EnrolmentDirectory, EnrolmentGrantor
from enrolcart.offering.catalog import OfferingCatalog
from enrolcart.utils.time import utcnow


@dataclass
class CartContext:
    actor_id: str | None
    settings: CartSettings
    grantor: EnrolmentGrantor
    directory: EnrolmentDirectory
    coupons: CouponGateway | None = None
    clock: Callable[[], datetime] = utcnow
    catalog: OfferingCatalog = field(init=False)

    def __post_init__(self):
        if self.actor_id is not None:
            self.actor_id = str(self.actor_id)
        self.catalog = OfferingCatalog(self.clock)

    @property
    def is_system(self) -> bool:
        """Scheduler and payment callbacks act without a user."""
        return self.actor_id is None

    @property
    def is_authenticated(self) -> bool:
        return self.actor_id is not None

    def now(self) -> datetime:
        return self.clock()

    def as_system(self) -> "CartContext":
        """A context sharing these collaborators but acting as the system."""
        return CartContext(
            actor_id=None,
            settings=self.settings,
            grantor=self.grantor,
            directory=self.directory,
            coupons=self.coupons,
            clock=self.clock,
        )
