import logging

import pytest
from conftest import CUSTOMER_ID, make_order_request

from connectors.notification_sink import LoggingNotificationSink, NotificationSink
from models.enums import EventSource, OrderStatus
from models.events import LogisticsEvent
from services.notifications import NotificationDispatcher
from services.workflow import STATUS_CHANGED


class FlakySink:
    """Fails the first ``failures`` sends, then records like the logging sink."""

    def __init__(self, failures: int = 1):
        self.failures = failures
        self.sent = []

    async def notify(self, recipient, event_type, payload):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("SMS gateway unreachable")
        self.sent.append((recipient, event_type, payload))


def status_event(status: OrderStatus = OrderStatus.PICKED_UP, **payload) -> LogisticsEvent:
    data = {"order_id": "order_1", "seller_order_id": "ORD-1", "customer_id": "CUST-1", "status": status.value}
    data.update(payload)
    return LogisticsEvent(event_type=STATUS_CHANGED, payload=data, source=EventSource.WORKFLOW)


def test_sinks_satisfy_protocol():
    assert isinstance(LoggingNotificationSink(), NotificationSink)
    assert isinstance(FlakySink(), NotificationSink)


@pytest.mark.asyncio
async def test_logging_sink_keeps_recent_notifications(caplog):
    sink = LoggingNotificationSink(keep=2)
    with caplog.at_level(logging.INFO):
        for i in range(3):
            await sink.notify(f"customer:{i}", STATUS_CHANGED, {"message": f"update {i}"})

    assert [recipient for recipient, _, _ in sink.sent] == ["customer:1", "customer:2"]
    assert "update 0" in caplog.text


@pytest.mark.asyncio
async def test_customer_notified_on_creation(seeded):
    result = await seeded.workflow.create_order(CUSTOMER_ID, make_order_request())

    sent = seeded.notifications.sink.sent
    assert len(sent) == 1
    recipient, event_type, notification = sent[0]
    assert recipient == f"customer:{CUSTOMER_ID}"
    assert event_type == "order.created"
    assert notification["message"] == f"Your order {result.order.seller_order_id} has been created"
    assert notification["phone"] == "9876543210"


@pytest.mark.asyncio
async def test_pickup_agent_notified(seeded):
    order = (await seeded.workflow.create_order(CUSTOMER_ID, make_order_request())).order

    order = await seeded.workflow.advance_status(order.order_id, OrderStatus.ASSIGNED_PICKUP)

    recipients = [recipient for recipient, _, _ in seeded.notifications.sink.sent]
    assert recipients[-2:] == [f"customer:{CUSTOMER_ID}", f"agent:{order.workflow_tracking.pickup_agent_id}"]
    agent_notification = seeded.notifications.sink.sent[-1][2]
    assert agent_notification["type"] == "PICKUP_ASSIGNED"
    assert agent_notification["order_id"] == order.order_id


@pytest.mark.asyncio
async def test_replayed_event_is_not_sent_twice():
    sink = LoggingNotificationSink()
    dispatcher = NotificationDispatcher(sink)
    event = status_event(OrderStatus.AT_DESTINATION_HUB, delivery_agent_id="AG-7")

    await dispatcher.handle_event(event)
    await dispatcher.handle_event(event)

    assert [recipient for recipient, _, _ in sink.sent] == ["customer:CUST-1", "agent:AG-7"]
    assert sink.sent[0][2]["message"] == "Your order ORD-1 is now at destination hub"


@pytest.mark.asyncio
async def test_agent_skipped_without_agent_id():
    sink = LoggingNotificationSink()
    await NotificationDispatcher(sink).handle_event(status_event(OrderStatus.ASSIGNED_PICKUP, pickup_agent_id=None))
    assert [recipient for recipient, _, _ in sink.sent] == ["customer:CUST-1"]


@pytest.mark.asyncio
async def test_sink_failure_is_logged_and_retried_on_replay(caplog):
    sink = FlakySink(failures=1)
    dispatcher = NotificationDispatcher(sink)
    event = status_event()

    with caplog.at_level(logging.ERROR):
        await dispatcher.handle_event(event)
    assert sink.sent == []
    assert "Failed to notify customer:CUST-1" in caplog.text

    await dispatcher.handle_event(event)
    assert len(sink.sent) == 1


@pytest.mark.asyncio
async def test_settled_order_keeps_only_final_status():
    sink = LoggingNotificationSink()
    dispatcher = NotificationDispatcher(sink)
    for status in (OrderStatus.PICKED_UP, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED):
        await dispatcher.handle_event(status_event(status))

    assert dispatcher._delivered["order_1"] == {(STATUS_CHANGED, "DELIVERED", "customer:CUST-1")}

    await dispatcher.handle_event(status_event(OrderStatus.DELIVERED))
    assert len(sink.sent) == 3


@pytest.mark.asyncio
async def test_delivery_record_is_bounded():
    sink = LoggingNotificationSink()
    dispatcher = NotificationDispatcher(sink, max_tracked_orders=2)

    for order_id in ("order_1", "order_2", "order_3"):
        await dispatcher.handle_event(status_event(order_id=order_id))

    assert list(dispatcher._delivered) == ["order_2", "order_3"]
