"""
Stock reservation with compensation (Saga) for order line items.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable

from django.db import DatabaseError

from orders.conf import build_component
from orders.domain.exceptions import InsufficientStock, PersistenceError
from orders.domain.order import OrderItem
from orders.infra.catalog import ProductCatalog


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    """Units taken from one product's stock for one line item."""
    product_id: str
    quantity: int


class InventoryReservation:
    """All-or-nothing stock decrement across an order's line items."""

    def __init__(self, catalog: ProductCatalog | None = None):
        self.catalog = catalog or build_component("PRODUCT_CATALOG")

    def check(self, items: Iterable[OrderItem]) -> None:
        """Read-only pre-check; the conditional decrement remains authoritative."""
        requested: OrderedDict[str, int] = OrderedDict()
        for item in items:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

        for product_id, quantity in requested.items():
            product = self.catalog.get(product_id)
            available = product.stock if product else 0
            if available < quantity:
                raise InsufficientStock(product=product_id, available=available, requested=quantity)

    def reserve_all(self, items: Iterable[OrderItem]) -> list[Reservation]:
        """
        Decrement stock for every item or for none of them.

        Each decrement is a single conditional operation on one product. When a
        line cannot be reserved, every decrement already applied for this call
        is compensated before the error is raised.
        """
        applied: list[Reservation] = []
        try:
            for item in items:
                if not self.catalog.conditional_decrement(item.product_id, item.quantity):
                    self.release_all(applied)
                    applied = []
                    product = self.catalog.get(item.product_id)
                    available = product.stock if product else 0
                    logger.info(
                        "stock_reservation_failed",
                        extra={
                            "product_id": item.product_id,
                            "quantity": item.quantity,
                            "status": "insufficient",
                        },
                    )
                    raise InsufficientStock(
                        product=item.product_id,
                        available=available,
                        requested=item.quantity,
                    )
                applied.append(Reservation(product_id=item.product_id, quantity=item.quantity))
        except DatabaseError as e:
            logger.error(
                "stock_reservation_failed",
                extra={"status": "storage_error", "error": str(e)},
                exc_info=True,
            )
            self.release_all(applied)
            raise PersistenceError("Stock reservation failed due to a storage error") from e

        return applied

    def release_all(self, reservations: Iterable[Reservation]) -> None:
        """Compensate reservations in reverse order."""
        failures = []
        for reservation in reversed(list(reservations)):
            try:
                self.catalog.increment(reservation.product_id, reservation.quantity)
            except DatabaseError as e:
                failures.append(reservation)
                logger.error(
                    "stock_compensation_failed",
                    extra={
                        "product_id": reservation.product_id,
                        "quantity": reservation.quantity,
                        "error": str(e),
                    },
                    exc_info=True,
                )
        if failures:
            raise PersistenceError(
                "Stock compensation incomplete",
                details={"products": [r.product_id for r in failures]},
            )
