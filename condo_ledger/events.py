"""
Domain events and a small synchronous dispatcher.

Posting returns an event value instead of calling downstream
workflows inline. The services queue their events on the
dispatcher; they reach listeners (budget execution,
notifications, email) only after the caller commits.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionPosted:
    transaction_id: int
    scope_id: int
    transaction_number: str
    total_amount: Decimal
    posted_at: datetime
    reference_type: str | None = None


@dataclass(frozen=True)
class ReserveAppropriationCreated:
    transaction_id: int
    scope_id: int
    month: int
    year: int
    appropriated_amount: Decimal
    monthly_income: Decimal


Handler = Callable[[object], None]


class EventDispatcher:
    """
    Routes events to the handlers registered for their type.

    Services queue their events with enqueue(); the caller that
    owns the session delivers them with publish_pending() once
    its commit went through, or drops them with
    discard_pending() after a rollback. A failing handler is
    logged and does not affect the other handlers or the
    committed transaction.
    """

    def __init__(self):
        self._handlers: dict[type, list[Handler]] = defaultdict(list)
        self._pending: list[object] = []

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        if handler in self._handlers.get(event_type, []):
            self._handlers[event_type].remove(handler)

    @property
    def pending(self) -> tuple:
        return tuple(self._pending)

    def enqueue(self, event) -> None:
        """Hold an event until the surrounding transaction commits."""
        self._pending.append(event)

    def publish_pending(self) -> int:
        """Deliver the queued events in order; return handler successes."""
        events, self._pending = self._pending, []
        return sum(self.publish(event) for event in events)

    def discard_pending(self) -> int:
        dropped = len(self._pending)
        if dropped:
            logger.info("events_discarded", extra={"event_count": dropped})
        self._pending = []
        return dropped

    def publish(self, event) -> int:
        """Deliver an event; return how many handlers succeeded."""
        delivered = 0
        for handler in list(self._handlers.get(type(event), [])):
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "event_handler_failed",
                    extra={
                        "event_type": type(event).__name__,
                        "handler": getattr(handler, "__name__", repr(handler)),
                    },
                )
        return delivered
