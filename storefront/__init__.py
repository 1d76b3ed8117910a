# --- storefront/__init__.py ---
import logging

from flask import Flask, jsonify

from .config import Config
from .extensions import db, jwt, cors, migrate
from .logging_config import setup_logging

log = logging.getLogger(__name__)


def create_app(overrides=None, payment_transport=None):
    """
    Application factory.

    ``overrides`` is applied on top of ``Config`` (tests use it for an
    in-memory database); ``payment_transport`` is handed to the payment
    provider's httpx client.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    Config.init_app(app)
    if overrides:
        app.config.update(overrides)

    setup_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": "*"}})
    migrate.init_app(app, db)

    from .services.payment import PaymentGateway
    app.extensions["payment_gateway"] = PaymentGateway.from_config(app.config, transport=payment_transport)
    from .services.email_service import make_mail_executor
    app.extensions["mail_executor"] = make_mail_executor(app.config)

    if not app.config.get("PAYMENT_KEY_SECRET"):
        log.warning("PAYMENT_KEY_SECRET is not set; gateway payments will be rejected")

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from .checkout import bp as checkout_bp; app.register_blueprint(checkout_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        from . import model  # noqa: F401
        db.create_all()

    log.info("storefront started with %d blueprint(s)", len(app.blueprints))
    return app
