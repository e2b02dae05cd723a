"""Shared BDD fixtures and step definitions for the enrolment cart."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then, when

from enrolcart.cart.cart import Cart
from enrolcart.cart.resolution import find_current
from enrolcart.offering.catalog import OfferingCatalog
from enrolcart.offering.instance import OfferingInstance, OfferingStatus
from enrolcart.pricing import DiscountType, money


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def offerings():
    """Offering instances by the name used in the scenario."""
    return {}


@pytest.fixture()
def error():
    """Container for captured failures."""
    return {"exc": None}


def _save_offering(cart, instance, **changes):
    for name, value in changes.items():
        setattr(instance, name, value)
    current_domain.repository_for(OfferingInstance).add(instance)
    # The next request sees the new state
    cart.context.catalog = OfferingCatalog(cart.context.clock)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('an offering "{name}" priced {price:g} with no discount'))
def offering_without_discount(offerings, make_offering, name, price):
    offerings[name] = make_offering(cost=price)


@given(parsers.cfparse('an offering "{name}" priced {price:g} with a {kind} discount of "{amount}"'))
def offering_with_discount(offerings, make_offering, name, price, kind, amount):
    offerings[name] = make_offering(cost=price, discount_type=DiscountType[kind.upper()], discount_amount=amount)


@given("the user has a current cart", target_fixture="cart")
def current_cart(make_context):
    return find_current(make_context(), force_new=True)


@given(parsers.cfparse('"{name}" is in the cart'))
def item_in_cart(cart, offerings, name):
    assert cart.add_item(offerings[name].id)


@given("the cart is checked out")
def cart_checked_out(cart):
    assert cart.checkout()


@given("the cart is canceled")
def cart_canceled(cart):
    assert cart.cancel()


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the user adds "{name}" to the cart'))
def add_to_cart(cart, offerings, name):
    cart.add_item(offerings[name].id)


@when(parsers.cfparse('the user removes "{name}" from the cart'))
def remove_from_cart(cart, offerings, name):
    cart.remove_item(offerings[name].id)


@when(parsers.cfparse('"{name}" is repriced to {price:g}'))
def reprice_offering(cart, offerings, name, price):
    _save_offering(cart, offerings[name], cost=price)


@when(parsers.cfparse('"{name}" is disabled'))
def disable_offering(cart, offerings, name):
    _save_offering(cart, offerings[name], status=OfferingStatus.DISABLED.value)


@when("the cart is refreshed")
def refresh_cart(cart):
    cart.refresh()


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.re(r"the cart has (?P<count>\d+) items?"))
def cart_item_count(cart, count):
    assert cart.count == int(count)
    assert len(current_domain.repository_for(Cart).get(cart.id).items) == int(count)


@then(parsers.cfparse("the final payable is {amount:g}"))
def final_payable(cart, amount):
    assert cart.final_payable == money(amount)


@then("the cart payable never exceeds its price")
def payable_within_price(cart):
    assert cart.final_payable <= cart.final_price
    stored = current_domain.repository_for(Cart).get(cart.id)
    assert stored.payable <= stored.price


@then(parsers.cfparse('the cart status is "{status}"'))
def cart_status(cart, status):
    assert current_domain.repository_for(Cart).get(cart.id).status == status


@then("the cart reports a change")
def cart_changed(cart):
    assert cart.changed is True
