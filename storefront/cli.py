# storefront/cli.py
import click
from flask.cli import with_appcontext
from werkzeug.security import generate_password_hash
from .extensions import db
from .model import User
from .model.coupon import COUPON_ACTIVE, COUPON_INACTIVE
from .services.coupon_service import create_coupon as _create_coupon


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
@with_appcontext
def create_admin(email, password, name):
    """Create a user with the admin role (order status updates, any-order cancel)."""
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    admin = User(email=email, name=name.strip(), password_hash=generate_password_hash(password), role="admin")
    db.session.add(admin); db.session.commit()
    click.echo(f"Admin created: {admin.id} {admin.email}")


@click.command("create-coupon")
@click.option("--code", required=True)
@click.option("--percent", required=True, type=float)
@click.option("--inactive", is_flag=True, default=False)
@with_appcontext
def create_coupon(code, percent, inactive):
    try:
        c = _create_coupon(db.session, code, str(percent), COUPON_INACTIVE if inactive else COUPON_ACTIVE)
    except ValueError as e:
        click.echo(f"Error: {e}"); return
    db.session.commit()
    click.echo(f"Coupon created: {c.code} {c.discount_percentage}% ({c.status})")


def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(create_coupon)
