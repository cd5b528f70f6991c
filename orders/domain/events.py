"""
Domain events emitted to the push channel through the outbox.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(kw_only=True)
class OrderEvent:
    """Something subscribers of an order should hear about."""
    name: ClassVar[str]

    order_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)

    def payload(self) -> dict:
        raise NotImplementedError


@dataclass(kw_only=True)
class OrderCreated(OrderEvent):
    """Order committed with ``pending`` status."""
    name: ClassVar[str] = "order.created"

    owner_id: str
    total: Decimal
    status: str

    def payload(self) -> dict:
        return {
            "orderId": str(self.order_id),
            "ownerId": self.owner_id,
            "total": str(self.total),
            "status": self.status,
        }


@dataclass(kw_only=True)
class OrderStatusChanged(OrderEvent):
    """Order received a new status."""
    name: ClassVar[str] = "order.statusChanged"

    status: str
    patch: dict = field(default_factory=dict)

    def payload(self) -> dict:
        return {**self.patch, "orderId": str(self.order_id), "status": self.status}


@dataclass(kw_only=True)
class OrderUpdated(OrderEvent):
    """Admin override applied to an order."""
    name: ClassVar[str] = "order.updated"

    patch: dict = field(default_factory=dict)

    def payload(self) -> dict:
        return {**self.patch, "orderId": str(self.order_id)}
