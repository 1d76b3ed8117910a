# storefront/order/routes.py
from datetime import datetime, timedelta

from flask import g, jsonify, request

from ..errors import ValidationError
from ..model import Order
from ..model.order import ORDER_STATUSES
from ..services import order_service
from ..utils.api import api_ok
from ..utils.decorators import is_admin, login_required, role_required
from . import bp


def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


@bp.get("")
@login_required
def list_orders():
    """
    Query params:
      - page, per_page
      - status=Pending|Processing|Shipped|Delivered|Cancelled
      - start=YYYY-MM-DD
      - end=YYYY-MM-DD (inclusive)
    Admins see every order, everyone else only their own.
    """
    q = Order.query
    if not is_admin(g.user):
        q = q.filter(Order.user_id == g.user.id)

    status = request.args.get("status")
    start = request.args.get("start")
    end = request.args.get("end")

    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}")
        q = q.filter(Order.order_status == status)
    try:
        if start:
            q = q.filter(Order.created_at >= datetime.fromisoformat(start))
        if end:
            # make end inclusive for the whole day
            q = q.filter(Order.created_at < datetime.fromisoformat(end) + timedelta(days=1))
    except ValueError:
        raise ValidationError("start/end must be YYYY-MM-DD")

    page = max(_int_arg("page", 1), 1)
    per = min(max(_int_arg("per_page", 5), 1), 100)

    q = q.order_by(Order.created_at.desc(), Order.id.desc())
    paged = q.paginate(page=page, per_page=per, error_out=False)

    return ok("orders", {
        "page": page,
        "per_page": per,
        "total": paged.total,
        "items": [o.as_api() for o in paged.items],
    })


@bp.get("/<int:order_id>")
@login_required
def get_order(order_id: int):
    order = order_service().get_for(g.user, order_id)
    return ok("order", {"order": order.as_api()})


@bp.post("/<int:order_id>/cancel")
@login_required
def cancel_order(order_id: int):
    """Body: { "reason"?: str }"""
    data = request.get_json(silent=True) or {}
    order = order_service().cancel(g.user, order_id, reason=data.get("reason"))
    return ok("Order has been cancelled successfully.", {"order": order.as_api()})


@bp.patch("/<int:order_id>/status")
@role_required("admin", message="Only admins can update order status")
def update_order_status(order_id: int):
    """Body: { "status": "Processing" | "Shipped" | "Delivered" }"""
    data = request.get_json(silent=True) or {}
    status = (data.get("status") or "").strip()
    if not status:
        raise ValidationError("status is required")
    order = order_service().update_status(order_id, status)
    return ok("Order status updated successfully", {"order": order.as_api()})
