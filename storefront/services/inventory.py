# storefront/services/inventory.py
"""
Inventory ledger: the only code that mutates ``Product.stock``.

Every decrement is a single conditional UPDATE guarded by ``stock >= qty``
so two concurrent checkouts can never jointly oversell, whatever they read
earlier in their transactions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import update

from ..errors import InsufficientStock, ProductUnavailable
from ..model import CartItem, Product
from ..utils.money import D

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotLine:
    """A cart line with price and name frozen at checkout time."""
    product_id: int
    name: str
    price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class InventoryLedger:
    def __init__(self, session):
        self.session = session

    def snapshot(self, cart_items: list[CartItem]) -> list[SnapshotLine]:
        lines = []
        for item in cart_items:
            product = item.product
            # deleted (dangling reference) or deactivated
            if product is None or product.status is False:
                log.info("cart line %s references unavailable product %s", item.id, item.product_id)
                raise ProductUnavailable()
            if product.stock < item.quantity:
                raise InsufficientStock(product.name, available=product.stock)
            lines.append(SnapshotLine(
                product_id=product.id,
                name=product.name,
                price=D(product.price),
                quantity=int(item.quantity),
            ))
        return lines

    def reserve(self, product_id: int, quantity: int, name: str | None = None):
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductUnavailable()
        name = name or product.name
        if product.stock < quantity:
            raise InsufficientStock(name, available=product.stock)

        # the guard is re-evaluated by the store at write time
        result = self.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        self.session.expire(product, ["stock"])
        if result.rowcount != 1:
            log.warning("conditional decrement lost the race for product %s (qty %s)", product_id, quantity)
            raise InsufficientStock(name)
        log.debug("reserved %s x product %s", quantity, product_id)

    def reserve_all(self, lines: list[SnapshotLine]):
        for line in lines:
            self.reserve(line.product_id, line.quantity, name=line.name)

    def restore(self, product_id: int, quantity: int) -> bool:
        result = self.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        product = self.session.identity_map.get(self.session.identity_key(Product, product_id))
        if product is not None:
            self.session.expire(product, ["stock"])
        if result.rowcount != 1:
            log.warning("cannot restore %s units: product %s no longer exists", quantity, product_id)
            return False
        return True

    def restore_all(self, items) -> int:
        restored = 0
        for item in items:
            if item.product_id is None:
                continue
            if self.restore(item.product_id, item.quantity):
                restored += 1
        return restored
