"""
Tests for persisted order invariants.
"""
from datetime import timedelta
from decimal import Decimal

from django.db.models import ProtectedError
from django.test import TestCase
from django.utils import timezone

from orders.domain.order import OrderStatus
from orders.infra.models import OrderORM, OrderStatusHistoryORM
from orders.infra.repositories import OrderRepository
from orders.test.factories import build_order


class OrderInvariantTest(TestCase):
    """Tests for order invariants enforced on save."""

    def setUp(self):
        self.repo = OrderRepository()

    def test_total_must_match_components(self):
        order = build_order()
        order.total = Decimal("1.00")
        with self.assertRaises(ValueError) as context:
            self.repo.save(order)
        self.assertIn("does not match", str(context.exception))
        self.assertFalse(OrderORM.objects.exists())

    def test_discount_cannot_exceed_subtotal(self):
        order = build_order()
        order.discount = order.subtotal + 1
        order.total = order.subtotal + order.tax + order.shipping - order.discount
        with self.assertRaises(ValueError):
            self.repo.save(order)

    def test_actual_delivery_requires_delivered_status(self):
        order = build_order()
        order._actual_delivery = timezone.now()
        with self.assertRaises(ValueError) as context:
            self.repo.save(order)
        self.assertIn("actual_delivery", str(context.exception))

    def test_round_trip_keeps_every_field(self):
        order = build_order()
        order.change_status(OrderStatus.DELIVERED, actor="admin@x", notes="left at door")
        self.repo.save(order)

        loaded = self.repo.get_by_id(order.id)
        self.assertEqual(loaded.total, order.total)
        self.assertEqual(loaded.status, OrderStatus.DELIVERED)
        self.assertEqual(loaded.actual_delivery, order.actual_delivery)
        self.assertEqual(
            [(entry.status, entry.actor, entry.notes) for entry in loaded.status_history],
            [(OrderStatus.PENDING, "system", ""), (OrderStatus.DELIVERED, "admin@x", "left at door")],
        )
        self.assertEqual([item.product_id for item in loaded.items], ["product-0", "product-1"])


class StatusHistoryAppendOnlyTest(TestCase):
    """History rows are only ever inserted."""

    def setUp(self):
        self.repo = OrderRepository()
        self.order = build_order()
        self.repo.save(self.order)

    def test_saves_insert_only_new_entries(self):
        first_row = OrderStatusHistoryORM.objects.get(order_id=self.order.id)

        self.order.change_status(OrderStatus.CONFIRMED, actor="admin@x")
        self.repo.save(self.order)
        self.order.change_status(OrderStatus.PREPARING, actor="admin@x")
        self.repo.save(self.order)

        rows = list(OrderStatusHistoryORM.objects.filter(order_id=self.order.id))
        self.assertEqual([row.sequence_number for row in rows], [1, 2, 3])
        self.assertEqual([row.status for row in rows], ["pending", "confirmed", "preparing"])
        self.assertEqual(rows[0].id, first_row.id)
        self.assertEqual(rows[0].timestamp, first_row.timestamp)

    def test_stale_aggregate_cannot_drop_history(self):
        stale = self.repo.get_by_id(self.order.id)
        self.order.change_status(OrderStatus.SHIPPED, actor="admin@x")
        self.repo.save(self.order)

        with self.assertRaises(ValueError):
            self.repo.save(stale)

    def test_orders_with_history_cannot_be_deleted(self):
        with self.assertRaises(ProtectedError):
            OrderORM.objects.filter(id=self.order.id).delete()

    def test_history_timestamps_are_non_decreasing(self):
        future = timezone.now() + timedelta(days=1)
        self.order.change_status(OrderStatus.CONFIRMED, actor="admin@x", now=future)
        self.order.change_status(OrderStatus.PREPARING, actor="admin@x", now=future - timedelta(hours=2))
        self.repo.save(self.order)

        timestamps = list(
            OrderStatusHistoryORM.objects.filter(order_id=self.order.id).values_list("timestamp", flat=True)
        )
        self.assertEqual(timestamps, sorted(timestamps))
