# --- storefront/model/user.py ---

from sqlalchemy.sql import func
from ..extensions import db


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False, default="")
    role = db.Column(db.String(50), nullable=False, default="user", index=True)  # user | admin

    cart = db.relationship(
        "CartItem",
        backref="user",
        cascade="all, delete-orphan",
        order_by="CartItem.id.asc()",
    )
    addresses = db.relationship(
        "Address",
        backref="user",
        cascade="all, delete-orphan",
        order_by="Address.id.asc()",
    )

    def address_by_id(self, address_id):
        try:
            address_id = int(address_id)
        except (TypeError, ValueError):
            return None
        return next((a for a in self.addresses if a.id == address_id), None)


class Address(db.Model):
    __tablename__ = "address"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    full_name = db.Column(db.String(180), nullable=False)
    phone = db.Column(db.String(50))
    line1 = db.Column(db.String(255), nullable=False)
    line2 = db.Column(db.String(255))
    city = db.Column(db.String(120), nullable=False)
    state = db.Column(db.String(120))
    postal_code = db.Column(db.String(20), nullable=False)
    country = db.Column(db.String(80), default="India")
    is_default = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, server_default=func.now())

    def snapshot(self) -> dict:
        # copied into the order; later edits to the address must not leak in
        return {
            "full_name": self.full_name,
            "phone": self.phone,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }
