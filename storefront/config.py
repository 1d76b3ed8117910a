import os
from datetime import timedelta
from decimal import Decimal


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)

    # Payment provider
    PAYMENT_KEY_ID = os.getenv("PAYMENT_KEY_ID", "")
    PAYMENT_KEY_SECRET = os.getenv("PAYMENT_KEY_SECRET", "")
    PAYMENT_API_BASE = os.getenv("PAYMENT_API_BASE", "https://api.razorpay.com/v1")
    PAYMENT_TIMEOUT = float(os.getenv("PAYMENT_TIMEOUT", "8"))
    CURRENCY = os.getenv("CURRENCY", "INR")

    # Pricing rules
    FREE_SHIPPING_THRESHOLD = Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "2000"))
    FLAT_SHIPPING_FEE = Decimal(os.getenv("FLAT_SHIPPING_FEE", "99"))
    PRICE_TOLERANCE = Decimal(os.getenv("PRICE_TOLERANCE", "1"))

    # Outbound mail; MAIL_DISPATCH is "thread" or "inline"
    MAIL_HOST = os.getenv("MAIL_HOST")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USER = os.getenv("MAIL_USER")
    MAIL_PASS = os.getenv("MAIL_PASS")
    MAIL_FROM = os.getenv("MAIL_FROM") or os.getenv("MAIL_USER")
    MAIL_DISPATCH = os.getenv("MAIL_DISPATCH", "thread")
    MAIL_WORKERS = int(os.getenv("MAIL_WORKERS", "2"))
    APP_NAME = os.getenv("APP_NAME", "Storefront")

    @staticmethod
    def init_app(app):
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'app.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")
