"""
Outbox of order events awaiting push delivery.

Rows are written inside the transaction that changes the order, so an event
exists if and only if the change it describes was committed.
"""
from __future__ import annotations

import logging
from uuid import UUID

from django.db import models
from django.db.models import F
from django.utils import timezone

from orders.domain.events import OrderEvent
from orders.infra.models import TimeStampedModel


logger = logging.getLogger(__name__)


class OutboxEvent(TimeStampedModel):
    """Pending or delivered order event."""
    id = models.UUIDField(primary_key=True, editable=False)
    order_id = models.UUIDField()
    event_type = models.CharField(max_length=100)
    payload = models.JSONField()
    occurred_at = models.DateTimeField()
    processed = models.BooleanField(default=False)
    processed_at = models.DateTimeField(null=True, blank=True)
    retry_count = models.IntegerField(default=0)
    last_error = models.TextField(default="", blank=True)

    class Meta:
        indexes = [
            models.Index(fields=("processed", "created_at")),
            models.Index(fields=("order_id",)),
        ]


class OutboxRepository:
    """Queue operations over ``OutboxEvent`` rows."""

    def enqueue(self, event: OrderEvent) -> UUID:
        """Store the event; must run inside the caller's transaction."""
        OutboxEvent.objects.create(
            id=event.event_id,
            order_id=event.order_id,
            event_type=event.name,
            payload=event.payload(),
            occurred_at=event.occurred_at,
        )
        logger.debug(
            "outbox_event_enqueued",
            extra={"event_type": event.name, "order_id": str(event.order_id)},
        )
        return event.event_id

    def pending(self, limit: int, max_retries: int) -> list[OutboxEvent]:
        """Undelivered events that still have retries left, in commit order."""
        return list(
            OutboxEvent.objects
            .filter(processed=False, retry_count__lt=max_retries)
            .order_by("created_at", "occurred_at")[:limit]
        )

    def mark_delivered(self, event_id: UUID) -> None:
        OutboxEvent.objects.filter(id=event_id).update(processed=True, processed_at=timezone.now())

    def record_failure(self, event_id: UUID, error: str) -> None:
        OutboxEvent.objects.filter(id=event_id).update(
            retry_count=F("retry_count") + 1,
            last_error=error,
        )
