"""
Turns workflow events into customer and agent notifications.

Each (order, event type, status, recipient) is notified at most once, so a
replayed event does not message anybody twice. The record is kept for the most
recently notified orders and shrinks once an order settles. Sink failures are logged.
"""

import logging
from typing import Any

from connectors.notification_sink import NotificationSink
from models.enums import OrderStatus
from models.events import LogisticsEvent
from utils.event_bus import EventBus

from .transitions import TERMINAL_STATES
from .workflow import ORDER_CREATED, STATUS_CHANGED

logger = logging.getLogger(__name__)

# status -> (agent id payload key, notification type, title)
AGENT_NOTIFICATIONS: dict[str, tuple[str, str, str]] = {
    OrderStatus.ASSIGNED_PICKUP.value: ("pickup_agent_id", "PICKUP_ASSIGNED", "New Pickup Assigned"),
    OrderStatus.AT_DESTINATION_HUB.value: ("delivery_agent_id", "DELIVERY_ASSIGNED", "New Delivery Assigned"),
}


_SETTLED = frozenset(status.value for status in TERMINAL_STATES)


def _humanize(status: str) -> str:
    return status.lower().replace("_", " ")


class NotificationDispatcher:
    def __init__(self, sink: NotificationSink, max_tracked_orders: int = 10_000):
        self.sink = sink
        self.max_tracked_orders = max_tracked_orders
        # order_id -> (event type, status, recipient) already notified
        self._delivered: dict[str, set[tuple[str, str, str]]] = {}

    def register(self, event_bus: EventBus) -> None:
        event_bus.subscribe(ORDER_CREATED, self.handle_event)
        event_bus.subscribe(STATUS_CHANGED, self.handle_event)

    async def handle_event(self, event: LogisticsEvent) -> None:
        payload = event.payload
        status = payload.get("status") or ""
        seller_order_id = payload.get("seller_order_id", payload.get("order_id"))

        if event.event_type == ORDER_CREATED:
            message = f"Your order {seller_order_id} has been created"
        else:
            message = f"Your order {seller_order_id} is now {_humanize(status)}"
        await self._send(
            f"customer:{payload.get('customer_id')}",
            event.event_type,
            payload,
            {
                "type": "STATUS_UPDATE",
                "title": "Order Status Update",
                "message": message,
                "status": status,
                "location": payload.get("location"),
                "phone": payload.get("recipient_phone"),
                "email": payload.get("recipient_email"),
            },
        )

        agent_rule = AGENT_NOTIFICATIONS.get(status)
        if event.event_type == STATUS_CHANGED and agent_rule:
            key, kind, title = agent_rule
            agent_id = payload.get(key)
            if agent_id:
                await self._send(
                    f"agent:{agent_id}",
                    event.event_type,
                    payload,
                    {
                        "type": kind,
                        "title": title,
                        "message": f"You have been assigned {seller_order_id}",
                        "status": status,
                    },
                )

        if event.event_type == STATUS_CHANGED and status in _SETTLED:
            self._forget_order(str(payload.get("order_id")), keep_status=status)

    async def _send(
        self, recipient: str, event_type: str, payload: dict[str, Any], notification: dict[str, Any]
    ) -> None:
        order_id = str(payload.get("order_id"))
        key = (event_type, notification["status"], recipient)
        if key in self._delivered.get(order_id, ()):
            logger.debug(f"Notification {key} for order {order_id} already sent; skipping")
            return
        notification["order_id"] = payload.get("order_id")
        try:
            await self.sink.notify(recipient, event_type, notification)
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Failed to notify {recipient} about order {payload.get('order_id')}: {exc}")
            return
        self._remember(order_id, key)

    def _remember(self, order_id: str, key: tuple[str, str, str]) -> None:
        sent = self._delivered.pop(order_id, set())
        sent.add(key)
        self._delivered[order_id] = sent
        while len(self._delivered) > self.max_tracked_orders:
            oldest = next(iter(self._delivered))
            del self._delivered[oldest]

    def _forget_order(self, order_id: str, keep_status: str) -> None:
        """A settled order emits nothing but its final status again."""
        sent = self._delivered.get(order_id)
        if sent:
            self._delivered[order_id] = {key for key in sent if key[1] == keep_status}
