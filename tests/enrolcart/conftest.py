from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(scope="session")
def enrolcart_bed():
    from enrolcart.domain import enrolcart

    bed = DomainFixture(enrolcart)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(enrolcart_bed):
    with enrolcart_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture()
def clock():
    return FixedClock(datetime(2025, 3, 1, 9, 0, tzinfo=UTC))


@pytest.fixture()
def settings():
    from enrolcart.config import CartSettings

    return CartSettings(payment_currency="USD", payment_account_id=7, coupon_enable=True)


@pytest.fixture()
def coupons():
    from enrolcart.coupon.fake_adapter import FakeCouponGateway

    return FakeCouponGateway()


@pytest.fixture()
def enrolments():
    from enrolcart.enrolment.stored_adapter import StoredEnrolments

    return StoredEnrolments()


@pytest.fixture()
def make_context(settings, coupons, enrolments, clock):
    """Build a CartContext for an actor; ``None`` acts as the system."""
    from enrolcart.context import CartContext

    def _make(actor_id="user-1", **overrides):
        options = {
            "settings": settings,
            "grantor": enrolments,
            "directory": enrolments,
            "coupons": coupons,
            "clock": clock,
        }
        options.update(overrides)
        return CartContext(actor_id=actor_id, **options)

    return _make


@pytest.fixture()
def make_offering():
    """Persist an enabled offering instance and return it."""
    from enrolcart.offering.instance import OfferingInstance
    from enrolcart.pricing import DiscountType

    counter = {"n": 0}

    def _make(cost=1000.0, discount_type=DiscountType.NONE, discount_amount=None, course_id=None, **fields):
        counter["n"] += 1
        instance = OfferingInstance(
            course_id=course_id or f"course-{counter['n']}",
            name=f"Offering {counter['n']}",
            cost=cost,
            currency="USD",
            discount_type=discount_type.value,
            discount_amount=None if discount_amount is None else str(discount_amount),
            **fields,
        )
        current_domain.repository_for(OfferingInstance).add(instance)
        return instance

    return _make
