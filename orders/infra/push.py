"""
Push channel collaborator: fire-and-forget delivery of order events.
"""
from __future__ import annotations

import logging
from typing import Protocol


logger = logging.getLogger(__name__)


class PushChannel(Protocol):
    def emit(self, event_name: str, payload: dict) -> None: ...


class LoggingPushChannel:
    """Default channel: writes each event to the log for a broadcaster to tail."""

    def emit(self, event_name: str, payload: dict) -> None:
        logger.info(
            "push_event",
            extra={
                "event_type": event_name,
                "order_id": payload.get("orderId"),
                "status": payload.get("status"),
            },
        )


class RecordingPushChannel:
    """Keeps emitted events in memory."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def emit(self, event_name: str, payload: dict) -> None:
        self.events.append((event_name, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]
