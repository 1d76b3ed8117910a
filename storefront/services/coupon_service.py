# storefront/services/coupon_service.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func

from ..errors import InvalidCoupon
from ..model import Coupon
from ..model.coupon import COUPON_ACTIVE
from ..utils.money import D, round_money, ZERO


def normalize_code(code) -> str | None:
    code = (code or "").strip()
    return code.upper() or None


@dataclass(frozen=True)
class AppliedCoupon:
    code: str
    discount_percentage: Decimal

    def discount_for(self, subtotal: Decimal) -> Decimal:
        # rounded once; this exact value is stored and used in the total
        if subtotal <= 0:
            return ZERO
        return round_money(D(subtotal) * self.discount_percentage / Decimal(100))


class CouponValidator:
    def __init__(self, session):
        self.session = session

    def validate(self, code) -> AppliedCoupon | None:
        """Returns None for a blank code; raises InvalidCoupon for unknown or inactive ones."""
        wanted = normalize_code(code)
        if wanted is None:
            return None
        coupon = (
            self.session.query(Coupon)
            .filter(func.upper(Coupon.code) == wanted, Coupon.status == COUPON_ACTIVE)
            .first()
        )
        if coupon is None:
            raise InvalidCoupon()
        return AppliedCoupon(code=coupon.code, discount_percentage=D(coupon.discount_percentage))


def create_coupon(session, code: str, percent, status: str = COUPON_ACTIVE) -> Coupon:
    code = normalize_code(code)
    if not code:
        raise ValueError("code is required")
    pct = D(percent)
    if pct < 0 or pct > 100:
        raise ValueError("discount percentage must be between 0 and 100")
    existing = session.query(Coupon).filter(func.upper(Coupon.code) == code).first()
    if existing:
        raise ValueError("Coupon code already exists")
    c = Coupon(code=code, discount_percentage=pct, status=status)
    session.add(c)
    return c
