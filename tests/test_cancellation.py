"""Tests for order cancellation: refund, status change and stock restore."""

import json

import pytest
from sqlalchemy import update

from storefront.extensions import db
from storefront.model import Order, Product

from conftest import reload, sign


@pytest.fixture
def stocked(factory, buyer):
    user, address = buyer
    product = factory.product(name="Silk Scarf", price="1500", stock=5)
    factory.cart(user, (product, 2))
    return product


def place_cod(client, headers, address):
    r = client.post("/checkout/cod", json={"addressId": address.id}, headers=headers)
    assert r.status_code == 201, r.get_json()
    return r.get_json()["data"]["order"]["id"]


def place_paid(client, headers, address, amount=1599, payment_id="pay_1"):
    r = client.post("/checkout/gateway-order", json={"addressId": address.id, "amount": amount}, headers=headers)
    assert r.status_code == 200, r.get_json()
    provider_order_id = r.get_json()["data"]["providerOrderId"]

    body = {
        "providerOrderId": provider_order_id,
        "providerPaymentId": payment_id,
        "providerSignature": sign(provider_order_id, payment_id),
        "addressId": address.id,
    }
    r = client.post("/checkout/gateway-confirm", json=body, headers=headers)
    assert r.status_code == 201, r.get_json()
    return r.get_json()["data"]["order"]["id"]


def set_status(order_id, status):
    order = reload(Order, order_id)
    order.order_status = status
    db.session.commit()


class TestCodCancellation:
    def test_owner_cancel_restores_stock(self, client, buyer, stocked, auth_headers):
        user, address = buyer
        order_id = place_cod(client, auth_headers(user), address)
        assert reload(Product, stocked.id).stock == 3

        r = client.post(f"/orders/{order_id}/cancel", json={"reason": "ordered by mistake"},
                        headers=auth_headers(user))
        assert r.status_code == 200, r.get_json()
        order = r.get_json()["data"]["order"]
        assert order["order_status"] == "Cancelled"
        assert order["cancellation_details"]["cancelled_by"] == "User"
        assert order["cancellation_details"]["reason"] == "ordered by mistake"
        assert order["refund_details"] is None
        assert reload(Product, stocked.id).stock == 5

    def test_default_reason(self, client, buyer, stocked, auth_headers):
        user, address = buyer
        order_id = place_cod(client, auth_headers(user), address)
        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(user))
        assert r.get_json()["data"]["order"]["cancellation_details"]["reason"] == "Cancelled by request"

    def test_admin_can_cancel_any_order(self, client, factory, buyer, stocked, auth_headers):
        user, address = buyer
        admin = factory.user(email="admin@example.com", role="admin")
        order_id = place_cod(client, auth_headers(user), address)

        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(admin))
        assert r.status_code == 200
        details = r.get_json()["data"]["order"]["cancellation_details"]
        assert details["cancelled_by"] == "Admin"
        assert details["actor_id"] == admin.id

    def test_stranger_cannot_cancel(self, client, factory, buyer, stocked, auth_headers):
        user, address = buyer
        stranger = factory.user(email="stranger@example.com")
        order_id = place_cod(client, auth_headers(user), address)

        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(stranger))
        assert r.status_code == 403
        assert reload(Order, order_id).order_status == "Processing"
        assert reload(Product, stocked.id).stock == 3

    @pytest.mark.parametrize("status", ["Shipped", "Delivered"])
    def test_fulfilled_orders_cannot_be_cancelled(self, client, buyer, stocked, auth_headers, status):
        user, address = buyer
        order_id = place_cod(client, auth_headers(user), address)
        set_status(order_id, status)

        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(user))
        assert r.status_code == 400
        assert r.get_json()["message"] == f"Order is already {status.lower()} and cannot be cancelled."
        assert reload(Product, stocked.id).stock == 3

    def test_pending_order_can_be_cancelled(self, client, buyer, stocked, auth_headers):
        user, address = buyer
        order_id = place_cod(client, auth_headers(user), address)
        set_status(order_id, "Pending")
        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(user))
        assert r.status_code == 200

    def test_unknown_order(self, client, buyer, auth_headers):
        user, _ = buyer
        r = client.post("/orders/999/cancel", headers=auth_headers(user))
        assert r.status_code == 404

    def test_cancel_twice_restores_once(self, client, buyer, stocked, auth_headers):
        user, address = buyer
        order_id = place_cod(client, auth_headers(user), address)
        assert client.post(f"/orders/{order_id}/cancel", headers=auth_headers(user)).status_code == 200

        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(user))
        assert r.status_code == 400
        assert r.get_json()["message"] == "Order is already cancelled and cannot be cancelled."
        assert reload(Product, stocked.id).stock == 5

    def test_deleted_product_is_skipped_on_restore(self, client, factory, buyer, auth_headers):
        user, address = buyer
        keep = factory.product(name="Keep", stock=5)
        gone = factory.product(name="Gone", stock=5)
        factory.cart(user, (keep, 1), (gone, 1))
        order_id = place_cod(client, auth_headers(user), address)

        db.session.delete(reload(Product, gone.id))
        db.session.commit()

        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(user))
        assert r.status_code == 200
        assert reload(Product, keep.id).stock == 5


class TestPaidCancellation:
    def test_refunds_full_total_once(self, client, factory, buyer, auth_headers, provider):
        user, address = buyer
        p = factory.product(price="1500", stock=5)
        factory.cart(user, (p, 1))
        order_id = place_paid(client, auth_headers(user), address)

        r = client.post(f"/orders/{order_id}/cancel", json={"reason": "late"}, headers=auth_headers(user))
        assert r.status_code == 200, r.get_json()
        refund = r.get_json()["data"]["order"]["refund_details"]
        assert refund["refund_id"] == "rfnd_pay_1"
        assert refund["amount"] == 1599.0
        assert refund["status"] == "processed"

        [req] = provider.calls("/refund")
        assert req.url.path.endswith("/payments/pay_1/refund")
        assert json.loads(req.content)["amount"] == 159900
        assert reload(Product, p.id).stock == 5

        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(user))
        assert r.status_code == 400
        assert len(provider.calls("/refund")) == 1
        assert reload(Product, p.id).stock == 5

    def test_refund_failure_leaves_order_untouched(self, client, factory, buyer, auth_headers, provider):
        user, address = buyer
        p = factory.product(price="1500", stock=5)
        factory.cart(user, (p, 1))
        order_id = place_paid(client, auth_headers(user), address)
        provider.refund_error = (500, "provider exploded")

        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(user))
        assert r.status_code == 500
        assert "provider exploded" in r.get_json()["message"]

        order = reload(Order, order_id)
        assert order.order_status == "Processing"
        assert order.cancellation_details is None
        assert order.refund_details is None
        assert reload(Product, p.id).stock == 4

    def test_already_refunded_counts_as_success(self, client, factory, buyer, auth_headers, provider):
        user, address = buyer
        p = factory.product(price="1500", stock=5)
        factory.cart(user, (p, 1))
        order_id = place_paid(client, auth_headers(user), address)
        provider.refund_error = (400, "The payment has been fully refunded already")

        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(user))
        assert r.status_code == 200
        order = r.get_json()["data"]["order"]
        assert order["order_status"] == "Cancelled"
        assert order["refund_details"]["refund_id"] == "already_refunded"
        assert reload(Product, p.id).stock == 5

    def test_losing_the_status_race_restores_nothing(self, client, factory, buyer, auth_headers, app, monkeypatch):
        """Another cancellation lands between the read and the status write."""
        user, address = buyer
        p = factory.product(price="1500", stock=5)
        factory.cart(user, (p, 1))
        order_id = place_paid(client, auth_headers(user), address)

        gateway = app.extensions["payment_gateway"]
        real_refund = gateway.refund
        calls = []

        def refund_then_race(payment_id, amount_minor, reason=None):
            calls.append(payment_id)
            db.session.execute(
                update(Order).where(Order.id == order_id).values(order_status="Cancelled")
                .execution_options(synchronize_session=False)
            )
            return real_refund(payment_id, amount_minor, reason)

        monkeypatch.setattr(gateway, "refund", refund_then_race)

        r = client.post(f"/orders/{order_id}/cancel", headers=auth_headers(user))
        assert r.status_code == 400
        assert calls == ["pay_1"]
        assert reload(Product, p.id).stock == 4
