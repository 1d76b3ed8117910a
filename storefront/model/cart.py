# storefront/model/cart.py
from __future__ import annotations
from sqlalchemy.sql import func
from ..extensions import db


class CartItem(db.Model):
    """One line of a user's cart. Consumed and cleared by a successful checkout."""
    __tablename__ = "cart_item"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_cart_item_quantity_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    # may dangle once the product is deleted; checkout must notice
    product_id = db.Column(db.Integer, db.ForeignKey("product.id", ondelete="SET NULL"), nullable=True, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product = db.relationship("Product", lazy="joined")
