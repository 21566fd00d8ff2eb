import logging
from unittest.mock import AsyncMock

import pytest

from models.enums import EventSource
from models.events import LogisticsEvent
from utils.event_bus import EventBus

STATUS_CHANGED = "order.status_changed"


def create_test_event(event_type: str = STATUS_CHANGED, payload: dict | None = None) -> LogisticsEvent:
    return LogisticsEvent(
        event_type=event_type,
        payload=payload if payload is not None else {"order_id": "order_1", "status": "PICKED_UP"},
        source=EventSource.SYSTEM,
    )


def test_event_bus_initialization():
    bus = EventBus()
    assert bus.subscribers == {}
    assert bus.published_count == 0


# --- Subscription ---


def test_subscribe_multiple_callbacks_same_event():
    bus = EventBus()
    notify = AsyncMock(name="notify")
    settle = AsyncMock(name="settle")

    bus.subscribe(STATUS_CHANGED, notify)
    bus.subscribe(STATUS_CHANGED, settle)

    assert bus.subscribers[STATUS_CHANGED] == [notify, settle]


def test_subscribe_duplicate_callback(caplog):
    """Subscribing the same callback twice keeps a single registration."""
    bus = EventBus()
    callback = AsyncMock(name="cb_duplicate")

    with caplog.at_level(logging.WARNING):
        bus.subscribe(STATUS_CHANGED, callback)
        bus.subscribe(STATUS_CHANGED, callback)

    assert len(bus.subscribers[STATUS_CHANGED]) == 1
    assert "already subscribed" in caplog.text


def test_subscribe_non_callable():
    bus = EventBus()
    with pytest.raises(TypeError, match="Callback must be a callable async function."):
        bus.subscribe(STATUS_CHANGED, "not a function")  # type: ignore [arg-type]
    assert STATUS_CHANGED not in bus.subscribers


# --- Unsubscription ---


def test_unsubscribe_last_callback_removes_event_type():
    bus = EventBus()
    callback = AsyncMock()

    bus.subscribe(STATUS_CHANGED, callback)
    bus.unsubscribe(STATUS_CHANGED, callback)

    assert STATUS_CHANGED not in bus.subscribers


def test_unsubscribe_nonexistent_callback(caplog):
    bus = EventBus()
    bus.subscribe(STATUS_CHANGED, AsyncMock(name="cb1"))

    with caplog.at_level(logging.WARNING):
        bus.unsubscribe(STATUS_CHANGED, AsyncMock(name="cb2_not_subscribed"))

    assert len(bus.subscribers[STATUS_CHANGED]) == 1
    assert "Callback AsyncMock not found" in caplog.text


def test_unsubscribe_from_unknown_event_type():
    bus = EventBus()
    bus.unsubscribe("order.created", AsyncMock())
    assert bus.subscribers == {}


# --- Publishing ---


@pytest.mark.asyncio
async def test_publish_calls_only_matching_subscribers():
    bus = EventBus()
    on_status = AsyncMock(name="on_status")
    on_created = AsyncMock(name="on_created")
    bus.subscribe(STATUS_CHANGED, on_status)
    bus.subscribe("order.created", on_created)

    event = create_test_event()
    await bus.publish(event)

    on_status.assert_called_once_with(event)
    on_created.assert_not_called()
    assert bus.published_count == 1


@pytest.mark.asyncio
async def test_publish_without_subscribers_is_counted():
    bus = EventBus()
    await bus.publish(create_test_event("workflow.side_effect_failed"))
    assert bus.published_count == 1


@pytest.mark.asyncio
async def test_publish_with_callback_exception(caplog):
    """A failing subscriber is logged and does not stop the others."""
    bus = EventBus()
    ok = AsyncMock(name="cb_ok")
    failing = AsyncMock(name="cb_fail", side_effect=ValueError("SMS gateway down"))
    bus.subscribe(STATUS_CHANGED, ok)
    bus.subscribe(STATUS_CHANGED, failing)

    event = create_test_event()
    with caplog.at_level(logging.ERROR):
        await bus.publish(event)

    ok.assert_called_once_with(event)
    failing.assert_called_once_with(event)
    assert "Error in subscriber callback 'AsyncMock'" in caplog.text
    assert "SMS gateway down" in caplog.text


@pytest.mark.asyncio
async def test_publish_invalid_event_object(caplog):
    bus = EventBus()
    callback = AsyncMock(name="cb1")
    bus.subscribe(STATUS_CHANGED, callback)
    invalid_event = {"event_type": STATUS_CHANGED, "payload": {}}

    with caplog.at_level(logging.ERROR):
        await bus.publish(invalid_event)  # type: ignore [arg-type]

    assert f"Attempted to publish invalid event type: {type(invalid_event)}" in caplog.text
    callback.assert_not_called()
    assert bus.published_count == 0
