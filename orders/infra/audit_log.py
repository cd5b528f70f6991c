"""
Append-only audit log of admin actions on orders.
"""
from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from django.db import models

from orders.infra.models import TimeStampedModel


class AuditLogEntry(TimeStampedModel):
    """One admin action attempt, successful or not."""
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    action = models.CharField(max_length=64)
    actor_id = models.CharField(max_length=64)
    actor_label = models.CharField(max_length=255, default="")
    order_id = models.CharField(max_length=64, default="", blank=True)
    payload = models.JSONField(default=dict)
    result = models.JSONField(default=dict)
    success = models.BooleanField(default=False)

    class Meta:
        indexes = [
            models.Index(fields=("-created_at",)),
            models.Index(fields=("action", "-created_at")),
            models.Index(fields=("order_id",)),
        ]
        ordering = ["created_at"]


class AuditLogRepository:
    """Repository for the audit log; entries are only ever inserted."""

    def record(
        self,
        action: str,
        actor_id: str,
        actor_label: str = "",
        order_id=None,
        payload: dict | None = None,
        result: dict | None = None,
        success: bool = False,
    ) -> UUID:
        entry = AuditLogEntry.objects.create(
            action=action,
            actor_id=actor_id,
            actor_label=actor_label,
            order_id=str(order_id) if order_id else "",
            payload=self._jsonable(payload or {}),
            result=self._jsonable(result or {}),
            success=success,
        )
        return entry.id

    def for_order(self, order_id) -> list[AuditLogEntry]:
        return list(AuditLogEntry.objects.filter(order_id=str(order_id)).order_by("created_at"))

    def _jsonable(self, data: dict) -> dict:
        """Stringify values JSONField cannot store as-is."""
        serialized = {}
        for key, value in data.items():
            if isinstance(value, dict):
                serialized[key] = self._jsonable(value)
            elif isinstance(value, (UUID, Decimal)):
                serialized[key] = str(value)
            elif hasattr(value, "isoformat"):
                serialized[key] = value.isoformat()
            else:
                serialized[key] = value
        return serialized
