"""Integration tests for the cart API via TestClient."""

import json
from urllib.parse import unquote

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain

from enrolcart.api.dependencies import CartDependencies
from enrolcart.api.routes import router
from enrolcart.cart.cart import Cart, CartStatus
from enrolcart.payment.record import PaymentRecord
from enrolcart.pricing import DiscountType

USER = {"X-User-Id": "user-1"}


@pytest.fixture()
def dependencies(settings, enrolments, coupons, clock):
    return CartDependencies(settings=settings, grantor=enrolments, directory=enrolments, coupons=coupons, clock=clock)


@pytest.fixture()
def client(dependencies):
    app = FastAPI()
    app.state.cart_dependencies = dependencies
    app.include_router(router)
    return TestClient(app)


@pytest.fixture()
def offering(make_offering):
    return make_offering(cost=1000.0, discount_type=DiscountType.PERCENTAGE, discount_amount=10)


def _add(client, offering_id, headers=USER):
    return client.post("/cart/items", json={"offering_instance_id": str(offering_id)}, headers=headers)


def _stored_status(cart_id):
    return current_domain.repository_for(Cart).get(cart_id).status


class TestGuestCart:
    def test_view_empty(self, client):
        response = client.get("/cart")
        assert response.status_code == 200
        data = response.json()
        assert data["is_guest"] is True
        assert data["count"] == 0
        assert data["formatted_payable"] == "Free"

    def test_add_sets_cookie(self, client, offering):
        response = _add(client, offering.id, headers={})

        assert response.status_code == 200
        assert response.json()["final_payable"] == 900.0
        assert json.loads(unquote(client.cookies.get("cart_items"))) == [str(offering.id)]

    def test_cookie_carries_the_cart(self, client, offering):
        _add(client, offering.id, headers={})
        data = client.get("/cart").json()
        assert data["count"] == 1
        assert data["items"][0]["discount_percent"] == 10

    def test_remove(self, client, offering):
        _add(client, offering.id, headers={})
        response = client.delete(f"/cart/items/{offering.id}")
        assert response.status_code == 200
        assert response.json()["count"] == 0

    def test_merge_on_sign_in(self, client, offering):
        _add(client, offering.id, headers={})

        response = client.post("/cart/merge", headers=USER)

        assert response.status_code == 200
        data = response.json()
        assert data["is_guest"] is False
        assert data["count"] == 1
        assert not client.cookies.get("cart_items")

    def test_persisted_endpoints_need_a_user(self, client):
        assert client.get("/cart/mine").status_code == 401
        assert client.post("/cart/pay").status_code == 401


class TestUserCart:
    def test_view_creates_current_cart(self, client):
        data = client.get("/cart", headers=USER).json()
        assert data["is_guest"] is False
        assert data["owner_id"] == "user-1"
        assert data["status"] == CartStatus.CURRENT.value

    def test_add_item(self, client, offering):
        response = _add(client, offering.id)
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["final_price"] == 1000.0
        assert data["items_discount_amount"] == 100.0

    def test_add_by_course(self, client, offering):
        response = client.post("/cart/items", json={"course_id": str(offering.course_id)}, headers=USER)
        assert response.status_code == 200
        assert response.json()["count"] == 1

    def test_add_requires_an_id(self, client):
        assert client.post("/cart/items", json={}, headers=USER).status_code == 422

    def test_duplicate_conflicts(self, client, offering):
        _add(client, offering.id)
        assert _add(client, offering.id).status_code == 409

    def test_list_mine(self, client, offering):
        _add(client, offering.id)
        data = client.get("/cart/mine", headers=USER).json()
        assert data["total"] == 1
        assert data["carts"][0]["count"] == 1

    def test_someone_elses_cart_is_hidden(self, client, offering):
        cart_id = _add(client, offering.id).json()["id"]
        assert client.get(f"/cart/{cart_id}", headers={"X-User-Id": "user-2"}).status_code == 404

    def test_cancel(self, client, offering):
        cart_id = _add(client, offering.id).json()["id"]

        response = client.post(f"/cart/{cart_id}/cancel", headers=USER)

        assert response.status_code == 200
        assert _stored_status(cart_id) == CartStatus.CANCELED.value


class TestCouponEndpoints:
    def test_apply(self, client, offering, coupons):
        coupons.add_coupon("SAVE200", amount=200)
        _add(client, offering.id)

        response = client.post("/cart/coupon", json={"coupon_code": "SAVE200"}, headers=USER)

        assert response.status_code == 200
        data = response.json()
        assert data["coupon_code"] == "SAVE200"
        assert data["final_payable"] == 700.0

    def test_invalid_code(self, client, offering):
        _add(client, offering.id)
        response = client.post("/cart/coupon", json={"coupon_code": "NOPE"}, headers=USER)
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_coupon"

    def test_cancel(self, client, offering, coupons):
        coupons.add_coupon("SAVE200", amount=200)
        _add(client, offering.id)
        client.post("/cart/coupon", json={"coupon_code": "SAVE200"}, headers=USER)

        response = client.delete("/cart/coupon", headers=USER)

        assert response.status_code == 200
        assert response.json()["final_payable"] == 900.0

    def test_configure_fake_authority(self, client, coupons):
        response = client.post("/cart/coupons/configure", json={"should_succeed": False, "failure_reason": "down"})
        assert response.status_code == 200
        assert response.json()["gateway"] == "FakeCouponGateway"
        assert coupons.should_succeed is False


class TestCheckoutAndPayment:
    def test_checkout_empty_cart(self, client):
        client.get("/cart", headers=USER)
        assert client.post("/cart/checkout", headers=USER).status_code == 400

    def test_checkout_previews_coupon(self, client, offering, coupons):
        coupons.add_coupon("SAVE200", amount=200)
        _add(client, offering.id)

        response = client.post("/cart/checkout", json={"coupon_code": "SAVE200"}, headers=USER)

        assert response.status_code == 200
        data = response.json()
        assert data["delivered"] is False
        assert data["cart"]["final_payable"] == 700.0
        assert coupons.usages == {}

    def test_free_cart_delivered_at_checkout(self, client, make_offering, enrolments):
        _add(client, make_offering(cost=0.0).id)

        response = client.post("/cart/checkout", headers=USER)

        assert response.status_code == 200
        assert response.json()["delivered"] is True
        assert len(enrolments.enrolments_for("user-1")) == 1

    def test_pay_locks_the_cart(self, client, offering):
        cart_id = _add(client, offering.id).json()["id"]

        response = client.post("/cart/pay", headers=USER)

        assert response.status_code == 200
        data = response.json()
        assert data["amount"] == 900.0
        assert data["currency"] == "USD"
        assert data["account_id"] == 7
        assert data["success_url"] == f"/cart/{cart_id}"
        assert _stored_status(cart_id) == CartStatus.CHECKOUT.value

    def test_pay_again_within_window(self, client, offering):
        cart_id = _add(client, offering.id).json()["id"]
        client.post("/cart/pay", headers=USER)

        response = client.post(f"/cart/pay?cart_id={cart_id}", headers=USER)

        assert response.status_code == 200
        assert response.json()["amount"] == 900.0

    def test_pay_with_coupon(self, client, offering, coupons):
        coupons.add_coupon("SAVE200", amount=200)
        _add(client, offering.id)

        response = client.post("/cart/pay", json={"coupon_code": "SAVE200"}, headers=USER)

        assert response.status_code == 200
        assert response.json()["amount"] == 700.0

    def test_delivery_callback(self, client, offering, enrolments):
        cart_id = _add(client, offering.id).json()["id"]
        client.post("/cart/pay", headers=USER)
        current_domain.repository_for(PaymentRecord).add(
            PaymentRecord(payment_id="pay-001", cart_id=cart_id, user_id="user-1", amount=900.0)
        )

        response = client.post(f"/cart/{cart_id}/deliver", json={"payment_id": "pay-001", "user_id": "user-1"})

        assert response.status_code == 200
        assert _stored_status(cart_id) == CartStatus.DELIVERED.value
        assert len(enrolments.enrolments_for("user-1")) == 1

    def test_unverified_delivery_rejected(self, client, offering):
        cart_id = _add(client, offering.id).json()["id"]
        client.post("/cart/pay", headers=USER)

        response = client.post(f"/cart/{cart_id}/deliver", json={"payment_id": "pay-404", "user_id": "user-1"})

        assert response.status_code == 409
        assert _stored_status(cart_id) == CartStatus.CHECKOUT.value


class TestMaintenance:
    def test_reap_reports(self, client, offering, dependencies, settings):
        dependencies.settings = settings.with_overrides(canceled_cart_lifetime=60)
        cart_id = _add(client, offering.id).json()["id"]
        client.post(f"/cart/{cart_id}/cancel", headers=USER)

        response = client.post("/cart/maintenance/reap", json={"as_of": "2030-01-01T00:00:00+00:00"})

        assert response.status_code == 200
        assert response.json()["deleted"] == [cart_id]
