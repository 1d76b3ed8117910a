# storefront/checkout/routes.py
from flask import g, jsonify, request

from ..services import checkout_coordinator
from ..services.checkout import PaymentConfirmation
from ..utils.api import api_ok
from ..utils.decorators import login_required
from . import bp


def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r


def _field(data: dict, *names):
    # camelCase first, snake_case alias second
    for n in names:
        v = data.get(n)
        if v not in (None, ""):
            return v
    return None


@bp.post("/gateway-order")
@login_required
def create_gateway_order():
    """
    Body: { "addressId": int, "amount": number, "couponCode"?: str }
    Quotes the cart server-side, rejects a client total that disagrees and
    creates the provider order the client will pay.
    """
    data = request.get_json(silent=True) or {}
    result = checkout_coordinator().create_gateway_order(
        g.user,
        address_id=_field(data, "addressId", "address_id"),
        declared_amount=_field(data, "amount"),
        coupon_code=_field(data, "couponCode", "coupon_code"),
    )
    return ok("Payment order created.", result)


@bp.post("/gateway-confirm")
@login_required
def confirm_gateway_payment():
    """
    Body: { "providerOrderId", "providerPaymentId", "providerSignature",
            "addressId", "couponCode"? }
    """
    data = request.get_json(silent=True) or {}
    confirmation = PaymentConfirmation(
        provider_order_id=_field(data, "providerOrderId", "provider_order_id"),
        provider_payment_id=_field(data, "providerPaymentId", "provider_payment_id"),
        provider_signature=_field(data, "providerSignature", "provider_signature"),
    )
    order = checkout_coordinator().confirm_gateway_payment(
        g.user,
        confirmation,
        address_id=_field(data, "addressId", "address_id"),
        coupon_code=_field(data, "couponCode", "coupon_code"),
    )
    resp = ok("Payment verified & order placed successfully.", {"order": order.as_api()}, status=201)
    resp.headers["X-Order-Id"] = str(order.id)
    return resp


@bp.post("/cod")
@login_required
def place_cod_order():
    """Body: { "addressId": int, "couponCode"?: str }"""
    data = request.get_json(silent=True) or {}
    order = checkout_coordinator().place_cod_order(
        g.user,
        address_id=_field(data, "addressId", "address_id"),
        coupon_code=_field(data, "couponCode", "coupon_code"),
    )
    resp = ok("COD order placed successfully.", {"order": order.as_api()}, status=201)
    resp.headers["X-Order-Id"] = str(order.id)
    return resp
