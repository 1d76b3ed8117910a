# ------ storefront/model/__init__.py ------

from .user import User, Address
from .product import Product
from .cart import CartItem
from .coupon import Coupon
from .order import Order, OrderItem

__all__ = [
    "User",
    "Address",
    "Product",
    "CartItem",
    "Coupon",
    "Order",
    "OrderItem",
]
