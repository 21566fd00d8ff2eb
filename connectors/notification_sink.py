"""
Module: connectors.notification_sink

Where customer and agent notifications go. The default sink writes to the log;
an SMS or push gateway would implement the same ``notify`` call.
"""

import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    async def notify(self, recipient: str, event_type: str, payload: dict[str, Any]) -> None: ...


class LoggingNotificationSink:
    """Logs each notification and keeps the last ones for inspection."""

    def __init__(self, keep: int = 100):
        self.keep = keep
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    async def notify(self, recipient: str, event_type: str, payload: dict[str, Any]) -> None:
        logger.info(f"Notify {recipient} [{event_type}]: {payload.get('message', '')}")
        self.sent.append((recipient, event_type, payload))
        if len(self.sent) > self.keep:
            del self.sent[: len(self.sent) - self.keep]
