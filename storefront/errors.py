# storefront/errors.py
"""
Error taxonomy for checkout, cancellation and order administration.

Every error carries an HTTP status and a stable, client-safe message; the
handlers registered by ``register_error_handlers`` turn them into the usual
``api_error`` envelope.
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from .utils.api import api_error

log = logging.getLogger(__name__)


class StorefrontError(Exception):
    status_code = 500
    message = "Something went wrong"

    def __init__(self, message: str | None = None, status_code: int | None = None, data: dict | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code
        self.data = data


# ---- taxonomy ---------------------------------------------------------------

class ValidationError(StorefrontError):
    status_code = 400
    message = "Invalid request"


class NotFound(StorefrontError):
    status_code = 404
    message = "Not found"


class StateViolation(StorefrontError):
    status_code = 400
    message = "Operation not allowed in the current state"


class SecurityViolation(StorefrontError):
    status_code = 400
    message = "Security check failed"


class InsufficientResource(StorefrontError):
    status_code = 400
    message = "Not enough resources"


class Forbidden(StorefrontError):
    status_code = 403
    message = "Forbidden"


# ---- checkout ---------------------------------------------------------------

class EmptyCart(ValidationError):
    message = "Your cart is empty."


class AddressNotFound(NotFound):
    message = "Selected shipping address not found."


class ProductUnavailable(NotFound):
    message = "A product in your cart is no longer available. Please remove it and try again."


class InsufficientStock(InsufficientResource):
    def __init__(self, product_name: str | None, available: int | None = None):
        self.product_name = product_name
        self.available = available
        msg = f'Not enough stock for "{product_name}".'
        if available is not None:
            msg += f" Only {available} left."
        super().__init__(msg, data={"product": product_name})


class InvalidCoupon(StateViolation):
    message = "Invalid or inactive coupon code."


class PriceMismatch(StateViolation):
    message = "Price mismatch. Please refresh and try again."


class PaymentSignatureInvalid(SecurityViolation):
    message = "Invalid payment signature. Transaction failed."


class PaymentAlreadyProcessed(StateViolation):
    status_code = 409
    message = "This payment has already been used for an order."


class PaymentProviderError(StorefrontError):
    message = "Payment provider request failed."


# ---- orders -----------------------------------------------------------------

class OrderNotFound(NotFound):
    message = "Order not found."


class NotAuthorized(Forbidden):
    message = "Not authorized to modify this order."


class OrderNotCancellable(StateViolation):
    def __init__(self, status: str):
        self.order_status = status
        super().__init__(f"Order is already {status.lower()} and cannot be cancelled.")


def register_error_handlers(app):
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(e: StorefrontError):
        if e.status_code >= 500:
            log.error("request failed: %s", e.message, exc_info=e)
        r = jsonify(api_error(e.message, e.data))
        r.status_code = e.status_code
        return r

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        r = jsonify(api_error(e.description or e.name))
        r.status_code = e.code or 500
        return r

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        log.exception("unhandled error: %s", e)
        r = jsonify(api_error("Something went wrong"))
        r.status_code = 500
        return r
