"""
Order lifecycle: admin status changes and admin overrides.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable

from django.db import DatabaseError, transaction
from django.utils import timezone

from orders.conf import get_setting
from orders.domain.events import OrderStatusChanged, OrderUpdated
from orders.domain.exceptions import NotFound, OrderError, PersistenceError
from orders.domain.order import PUBLIC_STATUSES, Order, OrderOverride, OrderStatus, parse_status
from orders.domain.principal import AuthPrincipal, require_admin, require_principal
from orders.infra.audit_log import AuditLogRepository
from orders.infra.outbox import OutboxRepository
from orders.infra.repositories import OrderRepository


logger = logging.getLogger(__name__)


class OrderLifecycle:
    """State-machine surface for existing orders. Every call is admin-only."""

    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        outbox_repo: OutboxRepository | None = None,
        audit_log: AuditLogRepository | None = None,
        strict_transitions: bool | None = None,
    ):
        self.order_repo = order_repo or OrderRepository()
        self.outbox_repo = outbox_repo or OutboxRepository()
        self.audit_log = audit_log or AuditLogRepository()
        if strict_transitions is None:
            strict_transitions = get_setting("STRICT_TRANSITIONS")
        self.strict_transitions = strict_transitions

    def change_status(
        self,
        principal: AuthPrincipal | None,
        order_id,
        status: Any,
        notes: str | None = None,
        allowed: Iterable[OrderStatus] = PUBLIC_STATUSES,
    ) -> Order:
        """Set a new status; appends exactly one history entry."""
        principal = require_principal(principal)
        payload = {"status": status, "notes": notes}

        try:
            require_admin(principal)
            new_status = parse_status(status, allowed)
            with transaction.atomic():
                order = self._load_for_update(order_id)
                order.change_status(
                    new_status,
                    actor=principal.actor,
                    notes=notes,
                    now=timezone.now(),
                    strict=self.strict_transitions,
                )
                self.order_repo.save(order)
                self._emit_status_changed(order, patch={})
                self._audit(principal, "order.status_change", order_id, payload, order)
        except OrderError as e:
            self._audit_failure(principal, "order.status_change", order_id, payload, e)
            raise
        except DatabaseError as e:
            error = PersistenceError("Failed to update order status")
            self._audit_failure(principal, "order.status_change", order_id, payload, error)
            raise error from e

        logger.info(
            "order_status_changed",
            extra={"order_id": str(order.id), "status": order.status.value, "operation": "change_status"},
        )
        return order

    def apply_override(self, principal: AuthPrincipal | None, order_id, payload: Any) -> Order:
        """
        Apply an admin partial update.

        Every field is validated before any is applied; a rejected patch leaves
        the order untouched.
        """
        principal = require_principal(principal)

        try:
            require_admin(principal)
            override = OrderOverride.from_payload(payload)
            with transaction.atomic():
                order = self._load_for_update(order_id)
                entry = order.apply_override(
                    override,
                    actor=principal.actor,
                    now=timezone.now(),
                    strict=self.strict_transitions,
                )
                self.order_repo.save(order)

                patch = override.as_event_patch()
                self.outbox_repo.enqueue(OrderUpdated(order_id=order.id, patch=patch))
                if entry is not None:
                    self._emit_status_changed(order, patch=patch)
                self._audit(principal, "order.override", order_id, payload, order)
        except OrderError as e:
            self._audit_failure(principal, "order.override", order_id, payload, e)
            raise
        except DatabaseError as e:
            error = PersistenceError("Failed to update order")
            self._audit_failure(principal, "order.override", order_id, payload, error)
            raise error from e

        logger.info(
            "order_overridden",
            extra={"order_id": str(order.id), "status": order.status.value, "operation": "apply_override"},
        )
        return order

    def _load_for_update(self, order_id) -> Order:
        order = self.order_repo.get_for_update(order_id)
        if order is None or not order.is_visible:
            raise NotFound("Order not found")
        return order

    def _emit_status_changed(self, order: Order, patch: dict) -> None:
        self.outbox_repo.enqueue(OrderStatusChanged(
            order_id=order.id,
            status=order.status.value,
            patch=patch,
        ))

    def _audit(self, principal: AuthPrincipal, action: str, order_id, payload, order: Order) -> None:
        self.audit_log.record(
            action=action,
            actor_id=principal.id,
            actor_label=principal.actor,
            order_id=order_id,
            payload=payload if isinstance(payload, dict) else {"body": str(payload)},
            result={"status": order.status.value, "total": order.total},
            success=True,
        )

    def _audit_failure(self, principal: AuthPrincipal, action: str, order_id, payload, error: OrderError) -> None:
        try:
            with transaction.atomic():
                self.audit_log.record(
                    action=action,
                    actor_id=principal.id,
                    actor_label=principal.actor,
                    order_id=order_id,
                    payload=payload if isinstance(payload, dict) else {"body": str(payload)},
                    result={"error": error.code, "message": error.message},
                    success=False,
                )
        except DatabaseError:
            logger.error(
                "audit_log_write_failed",
                extra={"order_id": str(order_id), "operation": action},
                exc_info=True,
            )
