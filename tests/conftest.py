"""Pytest fixtures for storefront tests."""

import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pytest
from flask_jwt_extended import create_access_token

from storefront import create_app
from storefront.extensions import db
from storefront.model import Address, CartItem, Coupon, Product, User

PAYMENT_SECRET = "test-payment-secret"
PAYMENT_KEY_ID = "key_test_123"


def sign(provider_order_id, provider_payment_id, secret=PAYMENT_SECRET):
    payload = f"{provider_order_id}|{provider_payment_id}".encode()
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class ProviderStub:
    """Plays the payment provider behind an httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.orders_created = 0
        self.orders = {}  # provider order id -> amount (minor units)
        self.refund_error = None  # (status_code, description)
        self.order_error = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content or b"{}")
        path = request.url.path

        if request.method == "GET" and "/orders/" in path:
            order_id = path.rsplit("/", 1)[-1]
            if order_id not in self.orders:
                return httpx.Response(404, json={"error": {"code": "BAD_REQUEST_ERROR", "description": "order not found"}})
            return httpx.Response(200, json={"id": order_id, "amount": self.orders[order_id], "status": "paid"})

        if path.endswith("/orders"):
            if self.order_error:
                status, desc = self.order_error
                return httpx.Response(status, json={"error": {"code": "SERVER_ERROR", "description": desc}})
            self.orders_created += 1
            order_id = f"order_{self.orders_created}"
            self.orders[order_id] = body["amount"]
            return httpx.Response(200, json={
                "id": order_id,
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            })

        if path.endswith("/refund"):
            if self.refund_error:
                status, desc = self.refund_error
                return httpx.Response(status, json={"error": {"code": "BAD_REQUEST_ERROR", "description": desc}})
            payment_id = path.split("/")[-2]
            return httpx.Response(200, json={
                "id": f"rfnd_{payment_id}",
                "payment_id": payment_id,
                "amount": body["amount"],
                "status": "processed",
            })

        return httpx.Response(404, json={"error": {"description": "not found"}})

    def calls(self, suffix):
        return [r for r in self.requests if r.url.path.endswith(suffix)]


@pytest.fixture
def provider():
    return ProviderStub()


@pytest.fixture
def app(provider):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "JWT_SECRET_KEY": "test-jwt-secret-key-that-is-long-enough",
            "PAYMENT_KEY_ID": PAYMENT_KEY_ID,
            "PAYMENT_KEY_SECRET": PAYMENT_SECRET,
            "PAYMENT_API_BASE": "https://provider.test/v1",
            "MAIL_HOST": None,
            "MAIL_DISPATCH": "inline",
            "LOG_LEVEL": "DEBUG",
        },
        payment_transport=httpx.MockTransport(provider.handler),
    )
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class Factory:
    """Creates committed rows for a test."""

    def user(self, email="buyer@example.com", role="user", name="Buyer"):
        u = User(email=email, name=name, role=role, password_hash="x")
        db.session.add(u)
        db.session.commit()
        return u

    def address(self, user, **kw):
        a = Address(
            user_id=user.id,
            full_name=kw.get("full_name", user.name or "Buyer"),
            phone=kw.get("phone", "9999999999"),
            line1=kw.get("line1", "12 MG Road"),
            city=kw.get("city", "Bengaluru"),
            state=kw.get("state", "KA"),
            postal_code=kw.get("postal_code", "560001"),
            country="India",
        )
        db.session.add(a)
        db.session.commit()
        return a

    def product(self, name="Silk Scarf", price="1500", stock=5, status=True):
        p = Product(name=name, price=Decimal(price), stock=stock, status=status)
        db.session.add(p)
        db.session.commit()
        return p

    def cart(self, user, *lines):
        for product, qty in lines:
            db.session.add(CartItem(user_id=user.id, product_id=product.id, quantity=qty))
        db.session.commit()

    def coupon(self, code="SAVE10", percent="10", status="active"):
        c = Coupon(code=code, discount_percentage=Decimal(percent), status=status)
        db.session.add(c)
        db.session.commit()
        return c


@pytest.fixture
def factory(app):
    return Factory()


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def buyer(factory):
    """A user with one address."""
    user = factory.user()
    address = factory.address(user)
    return user, address


def reload(model, ident):
    db.session.expire_all()
    return db.session.get(model, ident)


def cart_lines(user_id):
    db.session.expire_all()
    return CartItem.query.filter_by(user_id=user_id).count()
