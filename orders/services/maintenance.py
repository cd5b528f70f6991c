"""
Offline maintenance: orphan line purge and the stale reservation sweep.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from orders.conf import build_component, get_setting
from orders.domain.exceptions import PersistenceError
from orders.domain.order import OrderStatus
from orders.domain.pricing import PricingEngine
from orders.domain.principal import SYSTEM_ACTOR
from orders.infra.catalog import ProductCatalog
from orders.infra.repositories import OrderRepository
from orders.services.reservation import InventoryReservation, Reservation


logger = logging.getLogger(__name__)

ORPHAN_CANCEL_NOTE = "All items removed: products no longer available"


@dataclass
class PurgeReport:
    orphan_product_ids: set[str] = field(default_factory=set)
    orders_updated: int = 0
    orders_cancelled: int = 0
    items_removed: int = 0
    dry_run: bool = False


@dataclass
class SweepReport:
    orders_failed: int = 0
    orders_restocked: int = 0
    dry_run: bool = False


class OrderMaintenance:
    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        catalog: ProductCatalog | None = None,
        pricing: PricingEngine | None = None,
    ):
        self.order_repo = order_repo or OrderRepository()
        self.catalog = catalog or build_component("PRODUCT_CATALOG")
        self.pricing = pricing or PricingEngine.from_settings()
        self.reservation = InventoryReservation(self.catalog)

    def purge_orphan_items(self, dry_run: bool = False) -> PurgeReport:
        """
        Remove line items referencing deleted products.

        Remaining lines are repriced from their snapshotted unit prices and the
        discount is clamped to the new subtotal. An order left without lines is
        cancelled by the system actor instead of being deleted.
        """
        referenced = self.order_repo.referenced_product_ids()
        orphans = referenced - self.catalog.existing_ids(referenced)
        report = PurgeReport(orphan_product_ids=orphans, dry_run=dry_run)
        if not orphans:
            return report

        for order in self.order_repo.get_by_product_ids(orphans):
            with transaction.atomic():
                removed = order.remove_items(orphans, self.pricing)
                report.items_removed += len(removed)
                if not order.items:
                    if order.status != OrderStatus.CANCELLED:
                        order.change_status(
                            OrderStatus.CANCELLED,
                            actor=SYSTEM_ACTOR,
                            notes=ORPHAN_CANCEL_NOTE,
                            now=timezone.now(),
                        )
                    report.orders_cancelled += 1
                else:
                    report.orders_updated += 1
                if not dry_run:
                    self.order_repo.save(order)

        logger.info(
            "orphan_items_purged",
            extra={
                "operation": "purge_orphan_items",
                "status": "dry_run" if dry_run else "applied",
            },
        )
        return report

    def release_stale_reservations(self, older_than: timedelta | None = None, dry_run: bool = False) -> SweepReport:
        """
        Fail orders left in ``reserving`` by an interrupted creation.

        Stock goes back only for orders flagged as holding it. An order that
        was interrupted before the flag was written is failed without a restock.
        """
        if older_than is None:
            older_than = timedelta(minutes=get_setting("STALE_RESERVATION_MINUTES"))
        report = SweepReport(dry_run=dry_run)

        for order, stock_reserved in self.order_repo.get_stale_reservations(timezone.now() - older_than):
            if dry_run:
                report.orders_failed += 1
                report.orders_restocked += int(stock_reserved)
                continue
            try:
                with transaction.atomic():
                    locked = self.order_repo.get_for_update(order.id)
                    if locked is None or locked.status != OrderStatus.RESERVING:
                        continue
                    if stock_reserved:
                        self.reservation.release_all(
                            Reservation(product_id=item.product_id, quantity=item.quantity)
                            for item in locked.items
                        )
                    locked.mark_failed()
                    self.order_repo.save(locked)
            except PersistenceError as e:
                logger.error(
                    "stale_reservation_release_failed",
                    extra={"order_id": str(order.id), "error": e.message},
                )
                continue
            report.orders_failed += 1
            report.orders_restocked += int(stock_reserved)

        logger.info(
            "stale_reservations_released",
            extra={
                "operation": "release_stale_reservations",
                "status": "dry_run" if dry_run else "applied",
            },
        )
        return report
