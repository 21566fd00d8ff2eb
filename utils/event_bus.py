"""
Asynchronous in-process event bus for workflow, assignment and payment events.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from models.events import LogisticsEvent

logger_event_bus = logging.getLogger(__name__)

Subscriber = Callable[[LogisticsEvent], Coroutine[Any, Any, None]]


def _callback_name(callback: Any) -> str:
    return getattr(callback, "__name__", type(callback).__name__)


class EventBus:
    """Publish/subscribe hub; subscriber failures are logged and never reach the publisher."""

    def __init__(self):
        self.subscribers: dict[str, list[Subscriber]] = {}
        self.published_count = 0

    def subscribe(self, event_type: str, callback: Subscriber) -> None:
        """Subscribe to an event type."""
        if not callable(callback):
            raise TypeError("Callback must be a callable async function.")
        callbacks = self.subscribers.setdefault(event_type, [])
        if callback in callbacks:
            logger_event_bus.warning(f"Callback {_callback_name(callback)} already subscribed to {event_type}")
            return
        callbacks.append(callback)
        logger_event_bus.debug(f"Callback {_callback_name(callback)} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, callback: Subscriber) -> None:
        """Unsubscribe a specific callback from an event type."""
        if event_type not in self.subscribers:
            return
        try:
            self.subscribers[event_type].remove(callback)
        except ValueError:
            logger_event_bus.warning(
                f"Callback {_callback_name(callback)} not found for event type {event_type}"
            )
            return
        logger_event_bus.debug(f"Callback {_callback_name(callback)} unsubscribed from {event_type}")
        if not self.subscribers[event_type]:
            del self.subscribers[event_type]

    async def publish(self, event: LogisticsEvent) -> None:
        """Publish an event to subscribers and wait for them to finish."""
        if not isinstance(event, LogisticsEvent):
            logger_event_bus.error(f"Attempted to publish invalid event type: {type(event)}")
            return

        self.published_count += 1
        logger_event_bus.info(f"Event published: {event.event_type} from {event.source.value}")
        callbacks = list(self.subscribers.get(event.event_type, []))
        if not callbacks:
            return
        results = await asyncio.gather(*(callback(event) for callback in callbacks), return_exceptions=True)
        for callback, result in zip(callbacks, results):
            if isinstance(result, Exception):
                logger_event_bus.error(
                    f"Error in subscriber callback '{_callback_name(callback)}' for event {event.event_type}: {result}"
                )
