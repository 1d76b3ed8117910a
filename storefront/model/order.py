from datetime import datetime
from ..extensions import db

PAYMENT_COD = "COD"
PAYMENT_GATEWAY = "Gateway"

STATUS_PENDING = "Pending"
STATUS_PROCESSING = "Processing"
STATUS_SHIPPED = "Shipped"
STATUS_DELIVERED = "Delivered"
STATUS_CANCELLED = "Cancelled"

# forward-only fulfilment path; Cancelled is reached only through cancellation
STATUS_FLOW = (STATUS_PENDING, STATUS_PROCESSING, STATUS_SHIPPED, STATUS_DELIVERED)
ORDER_STATUSES = STATUS_FLOW + (STATUS_CANCELLED,)
NON_CANCELLABLE = (STATUS_SHIPPED, STATUS_DELIVERED, STATUS_CANCELLED)


def _money(x):
    return float(x) if x is not None else 0.0


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, index=True)  # e.g., "ORD-20251022-0001"
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    order_status = db.Column(db.String(20), nullable=False, default=STATUS_PROCESSING, index=True)

    # Address snapshot, never a reference
    shipping_address = db.Column(db.JSON, nullable=False)

    # Money snapshot
    items_price = db.Column(db.Numeric(12, 2), nullable=False)
    shipping_price = db.Column(db.Numeric(12, 2), nullable=False)
    tax_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    coupon_code = db.Column(db.String(64), nullable=True)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)  # COD | Gateway
    payment_id = db.Column(db.String(64), unique=True, nullable=True)
    provider_order_id = db.Column(db.String(64), nullable=True, index=True)

    cancellation_details = db.Column(db.JSON, nullable=True)
    refund_details = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", lazy="joined")
    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="joined",
        order_by="OrderItem.id.asc()",
    )

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "user_id": self.user_id,
            "order_status": self.order_status,
            "shipping_address": self.shipping_address,
            "money": {
                "items_price": _money(self.items_price),
                "shipping_price": _money(self.shipping_price),
                "tax_price": _money(self.tax_price),
                "discount_amount": _money(self.discount_amount),
                "total_price": _money(self.total_price),
            },
            "coupon_code": self.coupon_code,
            "payment": {
                "method": self.payment_method,
                "payment_id": self.payment_id,
                "provider_order_id": self.provider_order_id,
            },
            "items": [i.as_api() for i in self.items],
            "cancellation_details": self.cancellation_details,
            "refund_details": self.refund_details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # Link back for stock restore (not a FK constraint)
    product_id = db.Column(db.Integer, index=True)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)

    def as_api(self):
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": _money(self.price),
            "line_total": _money(self.price * self.quantity) if self.price is not None else 0.0,
        }
