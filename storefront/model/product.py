# storefront/model/product.py
from ..extensions import db
from sqlalchemy.sql import func


class Product(db.Model):
    __tablename__ = "product"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # only InventoryLedger writes this during checkout / cancellation
    stock = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())
