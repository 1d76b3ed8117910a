# storefront/services/checkout.py
"""
Checkout transaction coordinator.

Both payment variants run the same sequence inside one UnitOfWork:

    stock check -> coupon check -> [price reconcile -> signature verify]
    -> order write -> stock decrement -> cart clear -> commit

Stock is always checked before the coupon. The gateway variant additionally
creates a provider order up front (no local writes). At confirmation the
re-priced cart must still match the amount of that provider order, and the
provider's signature must verify, before the order is written. The
confirmation mail goes out only after commit.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from ..errors import (
    AddressNotFound,
    EmptyCart,
    PaymentAlreadyProcessed,
    PaymentProviderError,
    ValidationError,
)
from ..model import Order, User
from ..model.order import PAYMENT_COD, PAYMENT_GATEWAY
from ..utils.money import from_minor_units, to_minor_units
from . import email_service
from .coupon_service import CouponValidator
from .inventory import InventoryLedger
from .order_builder import OrderAssembler
from .payment import PaymentGateway
from .unit_of_work import CheckoutState, UnitOfWork

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentConfirmation:
    provider_order_id: str
    provider_payment_id: str
    provider_signature: str


def _idempotency_key(user_id: int, lines, total) -> str:
    # same user + same cart + same total -> same provider order
    material = f"{user_id}|" + ",".join(f"{l.product_id}x{l.quantity}@{l.price}" for l in lines) + f"|{total}"
    return "rcpt_" + hashlib.sha256(material.encode()).hexdigest()[:35]


class CheckoutCoordinator:
    def __init__(self, app, session, gateway: PaymentGateway):
        self.app = app
        self.session = session
        self.gateway = gateway
        self.ledger = InventoryLedger(session)
        self.coupons = CouponValidator(session)
        self.assembler = OrderAssembler.from_config(app.config)
        self.currency = app.config.get("CURRENCY", "INR")

    # ---- shared steps ---------------------------------------------------

    def _quote(self, uow: UnitOfWork, user: User, address_id, coupon_code):
        if not user.cart:
            raise EmptyCart()
        address = user.address_by_id(address_id)
        if address is None:
            raise AddressNotFound()

        lines = self.ledger.snapshot(user.cart)
        uow.advance(CheckoutState.STOCK_CHECKED)

        coupon = self.coupons.validate(coupon_code)
        if coupon is not None:
            uow.advance(CheckoutState.COUPON_CHECKED)

        breakdown = self.assembler.price(lines, coupon)
        return address, lines, breakdown

    def _place(self, uow: UnitOfWork, user: User, address_id, coupon_code,
               payment_method: str, confirmation: PaymentConfirmation | None = None) -> Order:
        address, lines, breakdown = self._quote(uow, user, address_id, coupon_code)

        if confirmation is not None:
            self._reconcile_paid_amount(confirmation.provider_order_id, breakdown)
            uow.advance(CheckoutState.PRICE_RECONCILED)

            self.gateway.require_valid_signature(
                confirmation.provider_order_id,
                confirmation.provider_payment_id,
                confirmation.provider_signature,
            )
            uow.advance(CheckoutState.SIGNATURE_VERIFIED)

        order = self.assembler.build(
            user_id=user.id,
            lines=lines,
            address_snapshot=address.snapshot(),
            breakdown=breakdown,
            payment_method=payment_method,
            payment_id=confirmation.provider_payment_id if confirmation else None,
            provider_order_id=confirmation.provider_order_id if confirmation else None,
        )
        self.session.add(order)
        try:
            self.session.flush()
        except IntegrityError as e:
            # a concurrent confirmation wrote the same payment id first
            if confirmation is None:
                raise
            raise PaymentAlreadyProcessed() from e
        uow.advance(CheckoutState.ORDER_WRITTEN)

        self.ledger.reserve_all(lines)
        uow.advance(CheckoutState.STOCK_DECREMENTED)

        # delete-orphan cascade removes the rows
        user.cart.clear()
        self.session.flush()
        uow.advance(CheckoutState.CART_CLEARED)
        return order

    def _reconcile_paid_amount(self, provider_order_id: str, breakdown):
        paid = self.gateway.fetch_order(provider_order_id).get("amount")
        if paid is None:
            raise PaymentProviderError("Payment order has no amount.")
        self.assembler.reconcile(from_minor_units(paid), breakdown)

    def _notify(self, user: User, order: Order):
        try:
            email_service.dispatch_order_confirmation(self.app, user.email, order.as_api())
        except Exception:
            log.exception("could not dispatch confirmation for order %s", order.id)

    # ---- entry points ---------------------------------------------------

    def create_gateway_order(self, user: User, address_id, declared_amount, coupon_code=None) -> dict:
        if not address_id or declared_amount in (None, ""):
            raise ValidationError("Address ID and amount are required.")

        with UnitOfWork(self.session, f"gateway-order:user={user.id}", read_only=True) as uow:
            address, lines, breakdown = self._quote(uow, user, address_id, coupon_code)
            self.assembler.reconcile(declared_amount, breakdown)
            uow.advance(CheckoutState.PRICE_RECONCILED)
            resolved_address_id = address.id

        amount_minor = to_minor_units(breakdown.total_price)
        provider_order = self.gateway.create_order(
            amount_minor, self.currency, _idempotency_key(user.id, lines, breakdown.total_price)
        )
        log.info("[User: %s] provider order %s created for %s %s",
                 user.id, provider_order.get("id"), amount_minor, self.currency)
        return {
            "providerOrderId": provider_order["id"],
            "amount": provider_order.get("amount", amount_minor),
            "currency": provider_order.get("currency", self.currency),
            "key": self.gateway.key_id,
            "addressId": resolved_address_id,
            "totals": breakdown.as_api(),
        }

    def confirm_gateway_payment(self, user: User, confirmation: PaymentConfirmation,
                                address_id, coupon_code=None) -> Order:
        if not (confirmation.provider_order_id and confirmation.provider_payment_id
                and confirmation.provider_signature and address_id):
            raise ValidationError("Missing required payment or address details.")

        with UnitOfWork(self.session, f"checkout:gateway:user={user.id}") as uow:
            used = (
                self.session.query(Order.id)
                .filter(Order.payment_id == confirmation.provider_payment_id)
                .first()
            )
            if used is not None:
                raise PaymentAlreadyProcessed()
            order = self._place(uow, user, address_id, coupon_code, PAYMENT_GATEWAY, confirmation)

        self._notify(user, order)
        return order

    def place_cod_order(self, user: User, address_id, coupon_code=None) -> Order:
        if not address_id:
            raise ValidationError("Shipping address ID is required.")

        with UnitOfWork(self.session, f"checkout:cod:user={user.id}") as uow:
            order = self._place(uow, user, address_id, coupon_code, PAYMENT_COD)

        self._notify(user, order)
        return order
