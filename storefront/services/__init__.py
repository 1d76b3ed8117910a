from flask import current_app

from ..extensions import db


def payment_gateway():
    return current_app.extensions["payment_gateway"]


def checkout_coordinator():
    from .checkout import CheckoutCoordinator
    return CheckoutCoordinator(current_app._get_current_object(), db.session, payment_gateway())


def order_service():
    from .order_service import OrderService
    return OrderService(db.session, payment_gateway())
