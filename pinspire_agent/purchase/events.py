"""
Purchase event stream
State transitions are published here; display and persistence live in subscribers.
"""

import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import structlog

from pinspire_agent.models import PurchaseState

logger = structlog.get_logger()


@dataclass(frozen=True)
class PurchaseEvent:
    """A single state transition of a purchase attempt"""
    attempt_id: str
    resource_id: str
    from_state: Optional[PurchaseState]
    to_state: PurchaseState
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    detail: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "attempt_id": self.attempt_id,
            "resource_id": self.resource_id,
            "from_state": self.from_state.value if self.from_state else None,
            "to_state": self.to_state.value,
            "timestamp": self.timestamp.isoformat(),
            "detail": self.detail,
        }


Subscriber = Callable[[PurchaseEvent], Union[None, Awaitable[None]]]


class PurchaseEventStream:
    """Fan-out of purchase events to sync or async subscribers"""

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that removes it"""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def emit(self, event: PurchaseEvent):
        """
        Deliver an event to every subscriber in registration order.

        A failing subscriber is logged and skipped; it never changes the
        outcome of the purchase.
        """
        for callback in list(self._subscribers):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "purchase_event_subscriber_failed",
                    subscriber=getattr(callback, "__name__", repr(callback)),
                    to_state=event.to_state.value,
                    error=str(e),
                )
