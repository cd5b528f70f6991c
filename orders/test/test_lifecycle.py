"""
Tests for admin status changes and overrides.
"""
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from unittest import mock
from uuid import uuid4

from django.db import DatabaseError
from django.test import TestCase, override_settings

from orders.domain.exceptions import (
    Forbidden,
    InvalidDiscount,
    InvalidStatus,
    InvalidTransition,
    NotFound,
    PersistenceError,
    TrackingNumberLocked,
    Unauthorized,
)
from orders.domain.order import LEGACY_STATUSES, OrderStatus
from orders.infra.audit_log import AuditLogEntry
from orders.infra.models import OrderORM
from orders.infra.outbox import OutboxEvent
from orders.infra.repositories import OrderRepository
from orders.services.lifecycle import OrderLifecycle
from orders.test.factories import ADMIN, CUSTOMER, build_order


class OrderLifecycleTestCase(TestCase):
    def setUp(self):
        self.repo = OrderRepository()
        self.order = build_order()
        self.repo.save(self.order)
        self.lifecycle = OrderLifecycle()

    def events(self, event_type):
        return list(
            OutboxEvent.objects.filter(order_id=self.order.id, event_type=event_type).order_by("created_at")
        )


class ChangeStatusTest(OrderLifecycleTestCase):
    """Tests for OrderLifecycle.change_status."""

    def test_delivering_a_preparing_order(self):
        self.lifecycle.change_status(ADMIN, self.order.id, "preparing")
        delivered_at = datetime(2099, 3, 1, 9, 30, tzinfo=dt_timezone.utc)

        with mock.patch("orders.services.lifecycle.timezone.now", return_value=delivered_at):
            order = self.lifecycle.change_status(ADMIN, self.order.id, "delivered")

        last = order.status_history[-1]
        self.assertEqual(last.status, OrderStatus.DELIVERED)
        self.assertEqual(last.actor, "admin@x")
        self.assertEqual(last.timestamp, delivered_at)
        self.assertEqual(order.actual_delivery, delivered_at)

        stored = self.repo.get_by_id(self.order.id)
        self.assertEqual(stored.actual_delivery, delivered_at)
        self.assertEqual(len(stored.status_history), 3)

    def test_open_model_allows_moving_back(self):
        self.lifecycle.change_status(ADMIN, self.order.id, "delivered")
        order = self.lifecycle.change_status(ADMIN, self.order.id, "pending", notes="customer not home")

        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertIsNone(order.actual_delivery)
        self.assertEqual(order.status_history[-1].notes, "customer not home")

    def test_status_change_emits_event(self):
        self.lifecycle.change_status(ADMIN, self.order.id, "shipped")

        events = self.events("order.statusChanged")
        self.assertEqual(len(events), 1)
        self.assertEqual(
            events[0].payload,
            {"orderId": str(self.order.id), "status": "shipped"},
        )

    def test_customer_cannot_change_status(self):
        with self.assertRaises(Forbidden):
            self.lifecycle.change_status(CUSTOMER, self.order.id, "shipped")
        with self.assertRaises(Unauthorized):
            self.lifecycle.change_status(None, self.order.id, "shipped")
        self.assertEqual(OrderORM.objects.get(id=self.order.id).status, "pending")

    def test_legacy_status_set(self):
        with self.assertRaises(InvalidStatus):
            self.lifecycle.change_status(ADMIN, self.order.id, "preparing", allowed=LEGACY_STATUSES)
        order = self.lifecycle.change_status(ADMIN, self.order.id, "processing", allowed=LEGACY_STATUSES)
        self.assertEqual(order.status, OrderStatus.PROCESSING)

    def test_internal_statuses_are_rejected(self):
        for status in ("reserving", "failed", "lost"):
            with self.assertRaises(InvalidStatus):
                self.lifecycle.change_status(ADMIN, self.order.id, status)

    def test_missing_orders(self):
        with self.assertRaises(NotFound):
            self.lifecycle.change_status(ADMIN, uuid4(), "shipped")
        with self.assertRaises(NotFound):
            self.lifecycle.change_status(ADMIN, "not-a-uuid", "shipped")

    def test_failed_orders_are_not_found(self):
        OrderORM.objects.filter(id=self.order.id).update(status="failed")
        with self.assertRaises(NotFound):
            self.lifecycle.change_status(ADMIN, self.order.id, "shipped")

    @override_settings(ORDERS={"STRICT_TRANSITIONS": True})
    def test_strict_transitions(self):
        lifecycle = OrderLifecycle()
        lifecycle.change_status(ADMIN, self.order.id, "processing")
        with self.assertRaises(InvalidTransition):
            lifecycle.change_status(ADMIN, self.order.id, "pending")
        self.assertEqual(OrderORM.objects.get(id=self.order.id).status, "processing")


class ApplyOverrideTest(OrderLifecycleTestCase):
    """Tests for OrderLifecycle.apply_override."""

    def test_discount_recomputes_total(self):
        order = self.lifecycle.apply_override(ADMIN, self.order.id, {"discount": "85"})

        self.assertEqual(order.total, Decimal("900.00"))
        stored = OrderORM.objects.get(id=self.order.id)
        self.assertEqual(stored.discount, Decimal("85.00"))
        self.assertEqual(stored.total, Decimal("900.00"))

        self.assertEqual(len(self.events("order.updated")), 1)
        self.assertEqual(self.events("order.statusChanged"), [])

    def test_override_with_status_emits_both_events(self):
        order = self.lifecycle.apply_override(
            ADMIN,
            self.order.id,
            {"status": "shipped", "trackingNumber": "TRK-1", "statusChangeNotes": "left warehouse"},
        )

        self.assertEqual(order.status, OrderStatus.SHIPPED)
        self.assertEqual(order.tracking_number, "TRK-1")
        self.assertEqual(order.status_history[-1].notes, "left warehouse")

        updated = self.events("order.updated")[0].payload
        self.assertEqual(updated["trackingNumber"], "TRK-1")
        changed = self.events("order.statusChanged")[0].payload
        self.assertEqual(changed["status"], "shipped")
        self.assertEqual(changed["orderId"], str(self.order.id))

    def test_rejected_override_changes_nothing(self):
        with self.assertRaises(InvalidDiscount):
            self.lifecycle.apply_override(
                ADMIN,
                self.order.id,
                {"discount": "1000", "adminNotes": "should not stick", "status": "cancelled"},
            )

        stored = OrderORM.objects.get(id=self.order.id)
        self.assertEqual(stored.admin_notes, "")
        self.assertEqual(stored.status, "pending")
        self.assertEqual(stored.total, Decimal("985.00"))
        self.assertFalse(OutboxEvent.objects.filter(order_id=self.order.id).exists())

    def test_tracking_number_cannot_be_reassigned(self):
        self.lifecycle.apply_override(ADMIN, self.order.id, {"trackingNumber": "TRK-1"})
        self.lifecycle.apply_override(ADMIN, self.order.id, {"trackingNumber": "TRK-1"})
        with self.assertRaises(TrackingNumberLocked):
            self.lifecycle.apply_override(ADMIN, self.order.id, {"trackingNumber": "TRK-2"})
        self.assertEqual(OrderORM.objects.get(id=self.order.id).tracking_number, "TRK-1")

    def test_estimated_delivery_can_be_cleared(self):
        self.lifecycle.apply_override(ADMIN, self.order.id, {"estimatedDelivery": "2099-05-01T00:00:00Z"})
        self.assertIsNotNone(OrderORM.objects.get(id=self.order.id).estimated_delivery)
        self.lifecycle.apply_override(ADMIN, self.order.id, {"estimatedDelivery": None})
        self.assertIsNone(OrderORM.objects.get(id=self.order.id).estimated_delivery)

    def test_customer_cannot_override(self):
        with self.assertRaises(Forbidden):
            self.lifecycle.apply_override(CUSTOMER, self.order.id, {"adminNotes": "hi"})


class AuditLogTest(OrderLifecycleTestCase):
    """Every admin mutation attempt leaves an audit row."""

    def test_successful_change_is_audited(self):
        self.lifecycle.change_status(ADMIN, self.order.id, "confirmed")

        entry = AuditLogEntry.objects.get()
        self.assertEqual(entry.action, "order.status_change")
        self.assertEqual(entry.actor_id, ADMIN.id)
        self.assertEqual(entry.actor_label, "admin@x")
        self.assertEqual(entry.order_id, str(self.order.id))
        self.assertTrue(entry.success)
        self.assertEqual(entry.result["status"], "confirmed")

    def test_failed_attempts_are_audited(self):
        with self.assertRaises(InvalidDiscount):
            self.lifecycle.apply_override(ADMIN, self.order.id, {"discount": "1000"})
        with self.assertRaises(Forbidden):
            self.lifecycle.change_status(CUSTOMER, self.order.id, "shipped")

        entries = {entry.result["error"]: entry for entry in AuditLogEntry.objects.all()}
        self.assertEqual(set(entries), {"INVALID_DISCOUNT", "FORBIDDEN"})
        self.assertFalse(any(entry.success for entry in entries.values()))
        self.assertEqual(entries["INVALID_DISCOUNT"].payload, {"discount": "1000"})
        self.assertEqual(entries["FORBIDDEN"].actor_id, CUSTOMER.id)

    def test_storage_failures_are_audited(self):
        class BrokenRepository(OrderRepository):
            def save(self, order):
                raise DatabaseError("orders table unavailable")

        lifecycle = OrderLifecycle(order_repo=BrokenRepository())
        with self.assertRaises(PersistenceError):
            lifecycle.change_status(ADMIN, self.order.id, "shipped")
        with self.assertRaises(PersistenceError):
            lifecycle.apply_override(ADMIN, self.order.id, {"adminNotes": "fragile"})

        entries = AuditLogEntry.objects.order_by("action")
        self.assertEqual([entry.action for entry in entries], ["order.override", "order.status_change"])
        self.assertEqual({entry.result["error"] for entry in entries}, {"PERSISTENCE_ERROR"})
        self.assertFalse(any(entry.success for entry in entries))
        self.assertEqual(self.repo.get_by_id(self.order.id).status, OrderStatus.PENDING)
