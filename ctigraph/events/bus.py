"""Lightweight event bus for extraction and feedback lifecycle events."""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    FEEDBACK_SUBMITTED = "feedback_submitted"
    THRESHOLD_ADJUSTED = "threshold_adjusted"
    STORE_FAILED = "store_failed"


@dataclass
class Event:
    """One lifecycle notification; ``data`` carries plain JSON-able values."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class EventBus:
    """Synchronous pub/sub; handlers run in subscription order on the emitting thread."""

    def __init__(self) -> None:
        self._subscribers: dict[EventType, list[Callable[[Event], Any]]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable[[Event], Any]) -> None:
        self._subscribers[event_type].append(handler)

    def emit(self, event: Event) -> None:
        """Deliver ``event``; a failing handler is logged and the rest still run."""
        for handler in self._subscribers.get(event.type, []):
            try:
                handler(event)
            except Exception:
                logger.exception("Error in event handler for %s", event.type)

    def publish(self, event_type: EventType, data: dict[str, Any] | None = None) -> Event:
        event = Event(type=event_type, data=dict(data or {}))
        self.emit(event)
        return event
