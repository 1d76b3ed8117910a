# storefront/services/order_service.py
"""Order reads, admin status transitions and cancellation (the reverse flow)."""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import lazyload

from ..errors import (
    NotAuthorized,
    OrderNotCancellable,
    OrderNotFound,
    StateViolation,
    ValidationError,
)
from ..model import Order, User
from ..model.order import (
    NON_CANCELLABLE,
    ORDER_STATUSES,
    STATUS_CANCELLED,
    STATUS_FLOW,
)
from ..utils.decorators import is_admin
from ..utils.money import from_minor_units, to_minor_units
from .inventory import InventoryLedger
from .payment import PaymentGateway
from .unit_of_work import UnitOfWork

log = logging.getLogger(__name__)


class OrderService:
    def __init__(self, session, gateway: PaymentGateway):
        self.session = session
        self.gateway = gateway
        self.ledger = InventoryLedger(session)

    def get_for(self, actor: User, order_id: int) -> Order:
        order = self.session.get(Order, order_id)
        if order is None:
            raise OrderNotFound()
        if order.user_id != actor.id and not is_admin(actor):
            raise NotAuthorized("Not authorized to view this order.")
        return order

    def cancel(self, actor: User, order_id: int, reason: str | None = None) -> Order:
        """
        Cancels an order: refund (when paid) -> status CAS -> stock restore.

        The refund is an external call and happens before any local write, so
        a failed refund leaves the order untouched. The status write only
        applies while the order is still cancellable, so a racing second
        cancellation can neither restore stock twice nor record twice.
        """
        admin = is_admin(actor)
        with UnitOfWork(self.session, f"cancel:order={order_id}"):
            order = self.session.execute(
                select(Order)
                .where(Order.id == order_id)
                .options(lazyload(Order.items), lazyload(Order.user))
                .with_for_update()
            ).scalars().first()
            if order is None:
                raise OrderNotFound()
            if order.user_id != actor.id and not admin:
                raise NotAuthorized("Not authorized to cancel this order.")
            if order.order_status in NON_CANCELLABLE:
                raise OrderNotCancellable(order.order_status)

            refund_details = None
            if order.payment_id:
                refund = self.gateway.refund(order.payment_id, to_minor_units(order.total_price), reason)
                refund_details = {
                    "refund_id": refund.get("id"),
                    "amount": float(from_minor_units(refund.get("amount") or 0)),
                    "status": refund.get("status"),
                    "created_at": datetime.utcnow().isoformat(),
                }

            now = datetime.utcnow()
            result = self.session.execute(
                update(Order)
                .where(Order.id == order.id, Order.order_status.notin_(NON_CANCELLABLE))
                .values(order_status=STATUS_CANCELLED, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.session.expire(order, ["order_status"])
                raise OrderNotCancellable(order.order_status)

            restored = self.ledger.restore_all(order.items)
            log.info("[Order: %s] cancelled by %s; restored stock for %s line(s)",
                     order.id, actor.id, restored)

            order.order_status = STATUS_CANCELLED
            order.cancellation_details = {
                "cancelled_by": "Admin" if admin else "User",
                "actor_id": actor.id,
                "reason": (reason or "").strip() or "Cancelled by request",
                "cancelled_at": now.isoformat(),
            }
            if refund_details is not None:
                order.refund_details = refund_details
        return order

    def update_status(self, order_id: int, status: str) -> Order:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}")
        if status == STATUS_CANCELLED:
            raise StateViolation("Use the cancel endpoint to cancel an order.")

        with UnitOfWork(self.session, f"status:order={order_id}"):
            order = self.session.get(Order, order_id)
            if order is None:
                raise OrderNotFound()
            current = order.order_status
            if current not in STATUS_FLOW or STATUS_FLOW.index(status) <= STATUS_FLOW.index(current):
                raise StateViolation(f"Cannot move order from {current} to {status}.")
            order.order_status = status
            log.info("[Order: %s] status %s -> %s", order.id, current, status)
        return order
