"""
Tests for offline maintenance: orphan purge and stale reservation sweep.
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.db import DatabaseError
from django.db.models import F
from django.test import TestCase
from django.utils import timezone

from orders.domain.order import Order, OrderItem, OrderStatus
from orders.domain.pricing import PricingEngine
from orders.infra.catalog import OrmProductCatalog
from orders.infra.models import OrderORM, ProductORM
from orders.infra.repositories import OrderRepository
from orders.services.maintenance import ORPHAN_CANCEL_NOTE, OrderMaintenance
from orders.services.ordering import OrderService
from orders.test.factories import CUSTOMER, make_product, order_payload


class PurgeOrphanItemsTest(TestCase):
    def setUp(self):
        self.apple = make_product(name="Apple", price="100.00", stock=10)
        self.banana = make_product(name="Banana", price="250.00", stock=10)
        service = OrderService()
        self.mixed = service.place_order(CUSTOMER, order_payload([(self.apple, 2), (self.banana, 1)], "985.00"))
        self.banana_only = service.place_order(CUSTOMER, order_payload([(self.banana, 1)], "769.00"))
        self.repo = service.order_repo

    def test_nothing_to_purge(self):
        report = OrderMaintenance().purge_orphan_items()
        self.assertEqual(report.orphan_product_ids, set())
        self.assertEqual(report.items_removed, 0)

    def test_orphan_lines_are_removed_and_orders_repriced(self):
        banana_id = str(self.banana.id)
        self.banana.delete()

        report = OrderMaintenance().purge_orphan_items()

        self.assertEqual(report.orphan_product_ids, {banana_id})
        self.assertEqual(report.items_removed, 2)
        self.assertEqual(report.orders_updated, 1)
        self.assertEqual(report.orders_cancelled, 1)

        mixed = self.repo.get_by_id(self.mixed.id)
        self.assertEqual([item.product_id for item in mixed.items], [str(self.apple.id)])
        self.assertEqual(mixed.subtotal, Decimal("200.00"))
        self.assertEqual(mixed.total, Decimal("715.00"))
        self.assertEqual(mixed.status, OrderStatus.PENDING)

    def test_emptied_order_is_cancelled_not_deleted(self):
        self.banana.delete()
        OrderMaintenance().purge_orphan_items()

        emptied = self.repo.get_by_id(self.banana_only.id)
        self.assertIsNotNone(emptied)
        self.assertEqual(emptied.items, [])
        self.assertEqual(emptied.status, OrderStatus.CANCELLED)
        self.assertEqual(emptied.total, Decimal("0.00"))
        last = emptied.status_history[-1]
        self.assertEqual(last.actor, "system")
        self.assertEqual(last.notes, ORPHAN_CANCEL_NOTE)

    def test_dry_run_saves_nothing(self):
        self.banana.delete()
        report = OrderMaintenance().purge_orphan_items(dry_run=True)

        self.assertEqual(report.items_removed, 2)
        self.assertEqual(OrderORM.objects.get(id=self.mixed.id).items.count(), 2)
        self.assertEqual(OrderORM.objects.get(id=self.banana_only.id).status, "pending")

    def test_management_command(self):
        self.banana.delete()
        out = StringIO()
        call_command("purge_orphan_items", "--dry-run", stdout=out)

        output = out.getvalue()
        self.assertIn("[dry run] Items removed: 2", output)
        self.assertIn("[dry run] Orders cancelled: 1", output)
        self.assertEqual(OrderORM.objects.get(id=self.banana_only.id).status, "pending")


class ReleaseStaleReservationsTest(TestCase):
    def setUp(self):
        self.apple = make_product(name="Apple", price="100.00", stock=10)
        self.repo = OrderRepository()

    def reserving_order(self, quantity=2, stock_taken=True, age=timedelta(hours=1)):
        """An order abandoned mid-creation, as left behind by a crashed worker."""
        order = Order.place(
            owner_id=CUSTOMER.id,
            items=[OrderItem(product_id=str(self.apple.id), quantity=quantity, unit_price=Decimal("100.00"))],
            pricing=PricingEngine(),
            client_total=Decimal("715.00") if quantity == 2 else Decimal("607.00"),
            delivery_address="1 Main St",
            payment_method="card",
        )
        self.repo.save(order)
        if stock_taken:
            ProductORM.objects.filter(id=self.apple.id).update(stock=F("stock") - quantity)
            self.repo.mark_stock_reserved(order.id)
        OrderORM.objects.filter(id=order.id).update(created_at=timezone.now() - age)
        return order

    def test_reserved_stock_is_returned(self):
        order = self.reserving_order()

        report = OrderMaintenance().release_stale_reservations()

        self.assertEqual((report.orders_failed, report.orders_restocked), (1, 1))
        self.apple.refresh_from_db()
        self.assertEqual(self.apple.stock, 10)
        self.assertEqual(OrderORM.objects.get(id=order.id).status, "failed")

    def test_unflagged_order_is_failed_without_restock(self):
        order = self.reserving_order(stock_taken=False)

        report = OrderMaintenance().release_stale_reservations()

        self.assertEqual((report.orders_failed, report.orders_restocked), (1, 0))
        self.apple.refresh_from_db()
        self.assertEqual(self.apple.stock, 10)
        self.assertEqual(OrderORM.objects.get(id=order.id).status, "failed")

    def test_recent_and_committed_orders_are_left_alone(self):
        recent = self.reserving_order(age=timedelta(minutes=1))
        placed = OrderService().place_order(CUSTOMER, order_payload([(self.apple, 1)], "607.00"))
        OrderORM.objects.filter(id=placed.id).update(created_at=timezone.now() - timedelta(days=1))

        report = OrderMaintenance().release_stale_reservations()

        self.assertEqual(report.orders_failed, 0)
        self.assertEqual(OrderORM.objects.get(id=recent.id).status, "reserving")
        self.assertEqual(OrderORM.objects.get(id=placed.id).status, "pending")
        self.apple.refresh_from_db()
        self.assertEqual(self.apple.stock, 7)

    def test_failed_restock_keeps_order_for_next_run(self):
        class NoRestockCatalog(OrmProductCatalog):
            def increment(self, product_id, quantity):
                raise DatabaseError("stock table unavailable")

        order = self.reserving_order()
        with self.assertLogs("orders.services.maintenance", level="ERROR"):
            report = OrderMaintenance(catalog=NoRestockCatalog()).release_stale_reservations()

        self.assertEqual(report.orders_failed, 0)
        self.assertEqual(OrderORM.objects.get(id=order.id).status, "reserving")

    def test_management_command(self):
        order = self.reserving_order()
        out = StringIO()

        call_command("purge_orphan_items", "--dry-run", stdout=out)
        self.assertIn("[dry run] Stale reservations restocked: 1", out.getvalue())
        self.assertEqual(OrderORM.objects.get(id=order.id).status, "reserving")

        call_command("purge_orphan_items", "--stale-minutes", "5", stdout=StringIO())
        self.assertEqual(OrderORM.objects.get(id=order.id).status, "failed")
        self.apple.refresh_from_db()
        self.assertEqual(self.apple.stock, 10)
