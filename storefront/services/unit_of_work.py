# storefront/services/unit_of_work.py
from __future__ import annotations

import enum
import logging

log = logging.getLogger(__name__)


class CheckoutState(str, enum.Enum):
    START = "START"
    STOCK_CHECKED = "STOCK_CHECKED"
    COUPON_CHECKED = "COUPON_CHECKED"
    PRICE_RECONCILED = "PRICE_RECONCILED"
    SIGNATURE_VERIFIED = "SIGNATURE_VERIFIED"
    ORDER_WRITTEN = "ORDER_WRITTEN"
    STOCK_DECREMENTED = "STOCK_DECREMENTED"
    CART_CLEARED = "CART_CLEARED"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


class UnitOfWork:
    """
    One all-or-nothing boundary around a session transaction.

    Leaving the block normally commits (or rolls back when ``read_only``);
    leaving it through an exception rolls back every write and re-raises.
    ``advance`` records the step reached so an abort can be logged with it.
    """

    def __init__(self, session, label: str, read_only: bool = False):
        self.session = session
        self.label = label
        self.read_only = read_only
        self.state = CheckoutState.START

    def advance(self, state: CheckoutState):
        log.debug("[%s] %s -> %s", self.label, self.state.value, state.value)
        self.state = state

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None and not self.read_only:
            try:
                self.session.commit()
            except Exception:
                self.session.rollback()
                self._abort("commit failed")
                raise
            self.advance(CheckoutState.COMMITTED)
            log.info("[%s] committed", self.label)
            return False

        self.session.rollback()
        if exc_type is not None:
            self._abort(f"{exc_type.__name__}: {exc}")
        return False

    def _abort(self, reason: str):
        failed_at = self.state.value
        self.advance(CheckoutState.ABORTED)
        log.warning("[%s] rolled back after %s (%s)", self.label, failed_at, reason)
