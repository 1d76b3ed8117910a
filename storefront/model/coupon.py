# --- storefront/model/coupon.py ---

from ..extensions import db
from sqlalchemy.sql import func

COUPON_ACTIVE = "active"
COUPON_INACTIVE = "inactive"


class Coupon(db.Model):
    __tablename__ = "coupon"
    __table_args__ = (
        db.CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_coupon_percentage_range",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    # stored upper-case; lookups are case-insensitive
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=COUPON_ACTIVE, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())
