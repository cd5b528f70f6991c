"""
Outbox dispatcher: delivers committed order events to the push channel.
"""
from __future__ import annotations

import logging
import time
from typing import Callable

from orders.conf import build_component, get_setting
from orders.infra.outbox import OutboxEvent, OutboxRepository
from orders.infra.push import PushChannel
from orders.infra.retry import Backoff, retry_with_backoff


logger = logging.getLogger(__name__)


class OutboxDispatcher:
    """Reads unprocessed outbox rows and emits them to a ``PushChannel``."""

    def __init__(
        self,
        push_channel: PushChannel | None = None,
        outbox_repo: OutboxRepository | None = None,
        backoff: Backoff = Backoff(),
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.push_channel = push_channel or build_component("PUSH_CHANNEL")
        self.outbox_repo = outbox_repo or OutboxRepository()
        self._emit = retry_with_backoff(backoff, sleep=sleep)(self.push_channel.emit)

    def process_outbox_events(self, limit: int | None = None) -> int:
        """Deliver up to ``limit`` pending events; returns how many were delivered."""
        events = self.outbox_repo.pending(
            limit=limit or get_setting("OUTBOX_BATCH_SIZE"),
            max_retries=get_setting("OUTBOX_MAX_RETRIES"),
        )
        processed_count = 0

        for event_orm in events:
            try:
                self._deliver(event_orm)
            except Exception as e:
                # Leave the row pending; it is picked up again until retries run out
                self.outbox_repo.record_failure(event_orm.id, str(e))
                logger.error(
                    "outbox_delivery_failed",
                    extra={
                        "event_type": event_orm.event_type,
                        "order_id": str(event_orm.order_id),
                        "error": str(e),
                    },
                    exc_info=True,
                )
                continue
            self.outbox_repo.mark_delivered(event_orm.id)
            processed_count += 1

        return processed_count

    def _deliver(self, event_orm: OutboxEvent) -> None:
        self._emit(event_orm.event_type, event_orm.payload)
