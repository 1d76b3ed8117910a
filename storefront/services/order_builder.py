# storefront/services/order_builder.py
from __future__ import annotations

import copy
import secrets
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..errors import PriceMismatch
from ..model import Order, OrderItem
from ..model.order import STATUS_PROCESSING
from ..utils.money import D, round_money, ZERO
from .coupon_service import AppliedCoupon
from .inventory import SnapshotLine


@dataclass(frozen=True)
class PriceBreakdown:
    items_price: Decimal
    shipping_price: Decimal
    discount_amount: Decimal
    total_price: Decimal
    coupon_code: str | None = None

    def as_api(self):
        return {
            "items_price": float(self.items_price),
            "shipping_price": float(self.shipping_price),
            "discount_amount": float(self.discount_amount),
            "total_price": float(self.total_price),
            "coupon_code": self.coupon_code,
        }


def _gen_order_code():
    return "ORD-" + datetime.utcnow().strftime("%Y%m%d") + "-" + secrets.token_hex(4).upper()


class OrderAssembler:
    def __init__(self, free_shipping_threshold, flat_shipping_fee, price_tolerance=Decimal("1")):
        self.free_shipping_threshold = D(free_shipping_threshold)
        self.flat_shipping_fee = round_money(flat_shipping_fee)
        self.price_tolerance = D(price_tolerance)

    @classmethod
    def from_config(cls, config) -> "OrderAssembler":
        return cls(
            free_shipping_threshold=config["FREE_SHIPPING_THRESHOLD"],
            flat_shipping_fee=config["FLAT_SHIPPING_FEE"],
            price_tolerance=config["PRICE_TOLERANCE"],
        )

    def shipping_for(self, items_price: Decimal) -> Decimal:
        return ZERO if items_price > self.free_shipping_threshold else self.flat_shipping_fee

    def price(self, lines: list[SnapshotLine], coupon: AppliedCoupon | None = None) -> PriceBreakdown:
        items_price = round_money(sum((line.line_total for line in lines), Decimal("0")))
        shipping_price = self.shipping_for(items_price)
        discount_amount = coupon.discount_for(items_price) if coupon else ZERO
        total_price = items_price + shipping_price - discount_amount
        return PriceBreakdown(
            items_price=items_price,
            shipping_price=shipping_price,
            discount_amount=discount_amount,
            total_price=total_price,
            coupon_code=coupon.code if coupon else None,
        )

    def reconcile(self, declared_total, breakdown: PriceBreakdown):
        """Absorbs float rounding on the client only; anything larger is a mismatch."""
        try:
            declared = D(declared_total)
        except ArithmeticError:
            raise PriceMismatch()
        if not declared.is_finite():
            raise PriceMismatch()
        if abs(declared - breakdown.total_price) > self.price_tolerance:
            raise PriceMismatch(data={"expected_total": float(breakdown.total_price)})

    def build(self, user_id: int, lines: list[SnapshotLine], address_snapshot: dict,
              breakdown: PriceBreakdown, payment_method: str,
              payment_id: str | None = None, provider_order_id: str | None = None) -> Order:
        order = Order(
            code=_gen_order_code(),
            user_id=user_id,
            order_status=STATUS_PROCESSING,
            shipping_address=copy.deepcopy(address_snapshot),
            items_price=breakdown.items_price,
            shipping_price=breakdown.shipping_price,
            tax_price=ZERO,
            discount_amount=breakdown.discount_amount,
            coupon_code=breakdown.coupon_code,
            total_price=breakdown.total_price,
            payment_method=payment_method,
            payment_id=payment_id,
            provider_order_id=provider_order_id,
        )
        order.items = [
            OrderItem(product_id=line.product_id, name=line.name, quantity=line.quantity, price=line.price)
            for line in lines
        ]
        return order
