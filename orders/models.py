"""
Expose ORM models for Django's auto-discovery while keeping real definitions
under the infrastructure module.
"""

from orders.infra.models import (
    CartItemORM,
    IdempotencyKey,
    OrderItemORM,
    OrderORM,
    OrderStatusHistoryORM,
    ProductORM,
)
from orders.infra.outbox import OutboxEvent
from orders.infra.audit_log import AuditLogEntry

__all__ = [
    "AuditLogEntry",
    "CartItemORM",
    "IdempotencyKey",
    "OrderItemORM",
    "OrderORM",
    "OrderStatusHistoryORM",
    "OutboxEvent",
    "ProductORM",
]
