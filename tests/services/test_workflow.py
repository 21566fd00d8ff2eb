import asyncio
import logging
from unittest.mock import AsyncMock, patch

import pytest

from conftest import CUSTOMER_ID, make_order_request
from models.customer import Customer
from models.enums import AssignmentStatus, OrderStatus
from services.exceptions import (
    CustomerNotFoundError,
    DuplicateOrderError,
    InvalidTransitionError,
    OrderNotFoundError,
)

DELIVERY_PATH = [
    OrderStatus.PICKED_UP,
    OrderStatus.AT_ORIGIN_HUB,
    OrderStatus.DISPATCHED_FROM_ORIGIN,
    OrderStatus.IN_TRANSIT,
    OrderStatus.AT_DESTINATION_HUB,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]


async def advance_through(engine, order_id, statuses):
    order = None
    for status in statuses:
        order = await engine.advance_status(order_id, status, location=f"at {status.value}")
    return order


# --- CreateOrder ---


@pytest.mark.asyncio
async def test_create_order_mumbai_to_delhi(seeded, order_request):
    """A new COD order is PENDING with one history entry, an ETA and a Maharashtra origin hub."""
    result = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order = result.order

    assert order.status == OrderStatus.PENDING
    assert len(order.status_history) == 1
    assert len(order.tracking_history) == 1
    first = order.status_history[0]
    assert first.status == OrderStatus.PENDING
    assert first.location == "Mumbai, Maharashtra"
    assert first.remarks == "Order created"
    assert order.shipping_details.estimated_delivery_date is not None

    origin = await seeded.store.get_hub(order.workflow_tracking.origin_hub_id)
    assert origin.state == "Maharashtra"
    destination = await seeded.store.get_hub(order.workflow_tracking.destination_hub_id)
    assert destination.state == "Delhi"
    assert result.route_plan.is_interstate is True


@pytest.mark.asyncio
async def test_create_order_fills_generated_fields(seeded, order_request):
    result = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order = result.order

    assert order.seller_order_id.startswith("ORD-")
    assert order.shipping_details.awb.startswith("AWB")
    assert order.shipping_details.tracking_id.startswith("TRK")
    assert order.payment_details.cod_amount == 25000
    assert order.shipping_details.rate == result.pricing
    assert order.package_details.volumetric_weight_kg == pytest.approx(40 * 30 * 10 / 5000)

    customer = await seeded.store.get_customer(CUSTOMER_ID)
    assert customer.order_history == [order.order_id]


@pytest.mark.asyncio
async def test_create_order_binds_vehicle_and_agent(seeded, order_request):
    result = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    route = result.order.route_optimization

    assert route.assignment_status == AssignmentStatus.ASSIGNED
    assert route.assigned_vehicle_id is not None
    assert route.delivery_agent_id is not None
    agent = await seeded.store.get_agent(route.delivery_agent_id)
    assert agent.hub_id == result.order.workflow_tracking.destination_hub_id
    # planning alone reserves no load
    assert agent.capacity.current_orders == 0


@pytest.mark.asyncio
async def test_create_order_without_network_is_unassigned(container, order_request):
    await container.store.add_customer(Customer(customer_id=CUSTOMER_ID))

    result = await container.workflow.create_order(CUSTOMER_ID, order_request)

    assert result.order.status == OrderStatus.PENDING
    assert result.order.route_optimization.assignment_status == AssignmentStatus.UNASSIGNED
    assert "no delivery agent" in result.route_plan.unassigned_reason
    assert "no vehicle" in result.route_plan.unassigned_reason


@pytest.mark.asyncio
async def test_create_order_unknown_customer(seeded, order_request):
    with pytest.raises(CustomerNotFoundError):
        await seeded.workflow.create_order("CUST-MISSING", order_request)
    assert await seeded.store.list_orders() == []


@pytest.mark.asyncio
async def test_create_order_duplicate_seller_order_id(seeded):
    request = make_order_request(seller_order_id="SELLER-42")
    await seeded.workflow.create_order(CUSTOMER_ID, request)

    with pytest.raises(DuplicateOrderError) as excinfo:
        await seeded.workflow.create_order(CUSTOMER_ID, request)
    assert excinfo.value.status_code == 400
    assert len(await seeded.store.list_orders()) == 1


@pytest.mark.asyncio
async def test_create_order_retries_generated_seller_id_collision(seeded, order_request):
    ids = iter(["ORD-1-AAAAAA", "ORD-1-AAAAAA", "ORD-1-BBBBBB"])
    with patch("services.workflow.generate_seller_order_id", side_effect=lambda: next(ids)):
        first = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
        second = await seeded.workflow.create_order(CUSTOMER_ID, order_request)

    assert first.order.seller_order_id == "ORD-1-AAAAAA"
    assert second.order.seller_order_id == "ORD-1-BBBBBB"


@pytest.mark.asyncio
async def test_create_order_publishes_event(seeded, order_request):
    listener = AsyncMock()
    seeded.event_bus.subscribe("order.created", listener)

    result = await seeded.workflow.create_order(CUSTOMER_ID, order_request)

    listener.assert_called_once()
    event = listener.call_args.args[0]
    assert event.payload["order_id"] == result.order.order_id
    assert event.payload["status"] == "PENDING"


# --- AdvanceStatus ---


@pytest.mark.asyncio
async def test_full_delivery_path(seeded, order_request):
    """Walking the whole path yields eight history entries and a delivery stamp."""
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)

    order = await advance_through(seeded.workflow, created.order.order_id, DELIVERY_PATH)

    assert order.status == OrderStatus.DELIVERED
    assert len(order.status_history) == 8
    assert [e.status for e in order.status_history] == [OrderStatus.PENDING, *DELIVERY_PATH]
    assert order.shipping_details.delivered_at is not None
    assert order.shipping_details.actual_delivery_date == order.shipping_details.delivered_at
    assert order.shipping_details.shipped_at is not None
    assert order.shipping_details.delivery_attempts == 1
    timestamps = [e.timestamp for e in order.status_history]
    assert timestamps == sorted(timestamps)
    assert order.status == order.status_history[-1].status


@pytest.mark.asyncio
async def test_delivery_agent_load_is_reserved_and_released(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id
    agent_id = created.route_plan.delivery_agent_id

    order = await advance_through(seeded.workflow, order_id, DELIVERY_PATH[:5])
    assert order.workflow_tracking.delivery_agent_id == agent_id
    assert (await seeded.store.get_agent(agent_id)).capacity.current_orders == 1

    await advance_through(seeded.workflow, order_id, DELIVERY_PATH[5:])
    assert (await seeded.store.get_agent(agent_id)).capacity.current_orders == 0


@pytest.mark.asyncio
async def test_pickup_agent_assigned_and_released(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id

    order = await seeded.workflow.advance_status(order_id, OrderStatus.ASSIGNED_PICKUP)
    pickup_agent_id = order.workflow_tracking.pickup_agent_id
    assert pickup_agent_id is not None
    pickup_agent = await seeded.store.get_agent(pickup_agent_id)
    assert pickup_agent.hub_id == order.workflow_tracking.origin_hub_id
    assert pickup_agent.capacity.current_orders == 1

    await seeded.workflow.advance_status(order_id, OrderStatus.PICKED_UP)
    assert (await seeded.store.get_agent(pickup_agent_id)).capacity.current_orders == 0


@pytest.mark.asyncio
async def test_invalid_transition_leaves_order_unchanged(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id

    with pytest.raises(InvalidTransitionError) as excinfo:
        await seeded.workflow.advance_status(order_id, OrderStatus.DELIVERED)

    assert excinfo.value.current_status == "PENDING"
    assert excinfo.value.target_status == "DELIVERED"
    stored = await seeded.store.get_order(order_id)
    assert stored.status == OrderStatus.PENDING
    assert len(stored.status_history) == 1
    assert stored.shipping_details.delivered_at is None


@pytest.mark.asyncio
async def test_resubmitting_current_status_is_a_noop(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id

    await seeded.workflow.advance_status(order_id, OrderStatus.PICKED_UP)
    again = await seeded.workflow.advance_status(order_id, OrderStatus.PICKED_UP)

    assert again.status == OrderStatus.PICKED_UP
    assert len(again.status_history) == 2


@pytest.mark.asyncio
async def test_terminal_states_accept_nothing(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id
    await seeded.workflow.advance_status(order_id, OrderStatus.CANCELLED, remarks="Seller cancelled")

    with pytest.raises(InvalidTransitionError):
        await seeded.workflow.advance_status(order_id, OrderStatus.PICKED_UP)


@pytest.mark.asyncio
async def test_cancel_releases_delivery_agent(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id
    agent_id = created.route_plan.delivery_agent_id
    await advance_through(seeded.workflow, order_id, DELIVERY_PATH[:5])

    order = await seeded.workflow.advance_status(order_id, OrderStatus.RETURNED, remarks="Refused")

    assert order.status == OrderStatus.RETURNED
    assert (await seeded.store.get_agent(agent_id)).capacity.current_orders == 0


@pytest.mark.asyncio
async def test_full_planned_agent_falls_back_to_another_agent(seeded, order_request):
    """The agent picked at creation is only a plan; a full one is replaced on arrival."""
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id
    planned_id = created.route_plan.delivery_agent_id
    planned = await seeded.store.get_agent(planned_id)
    await seeded.store.adjust_agent_load(planned_id, planned.capacity.max_orders)

    order = await advance_through(seeded.workflow, order_id, DELIVERY_PATH[:5])

    bound_id = order.workflow_tracking.delivery_agent_id
    assert bound_id is not None
    assert bound_id != planned_id
    assert order.route_optimization.delivery_agent_id == bound_id
    bound = await seeded.store.get_agent(bound_id)
    assert bound.hub_id == order.workflow_tracking.destination_hub_id
    assert bound.capacity.current_orders == 1
    assert (await seeded.store.get_agent(planned_id)).capacity.current_orders == planned.capacity.max_orders


@pytest.mark.asyncio
async def test_missing_planned_agent_falls_back(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id

    def forget_agent(order):
        order.route_optimization.delivery_agent_id = "AGENT-GONE"

    await seeded.store.update_order(order_id, forget_agent)
    order = await advance_through(seeded.workflow, order_id, DELIVERY_PATH[:5])

    assert order.workflow_tracking.delivery_agent_id not in (None, "AGENT-GONE")


@pytest.mark.asyncio
async def test_hub_load_follows_the_order(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id
    origin_id = created.route_plan.origin_hub_id
    destination_id = created.route_plan.destination_hub_id

    async def loads():
        origin = await seeded.store.get_hub(origin_id)
        destination = await seeded.store.get_hub(destination_id)
        return origin.capacity.current_load, destination.capacity.current_load

    await advance_through(seeded.workflow, order_id, DELIVERY_PATH[:2])
    assert await loads() == (1, 0)
    await advance_through(seeded.workflow, order_id, DELIVERY_PATH[2:5])
    assert await loads() == (0, 1)
    await seeded.workflow.advance_status(order_id, OrderStatus.OUT_FOR_DELIVERY)
    assert await loads() == (0, 0)


@pytest.mark.asyncio
async def test_cancel_at_hub_releases_hub_load(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id
    await advance_through(seeded.workflow, order_id, DELIVERY_PATH[:2])

    await seeded.workflow.advance_status(order_id, OrderStatus.CANCELLED)

    origin = await seeded.store.get_hub(created.route_plan.origin_hub_id)
    assert origin.capacity.current_load == 0


@pytest.mark.asyncio
async def test_order_lock_dropped_once_settled(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id

    await seeded.workflow.advance_status(order_id, OrderStatus.PICKED_UP)
    assert order_id in seeded.workflow._locks

    await advance_through(seeded.workflow, order_id, DELIVERY_PATH[1:])
    assert order_id not in seeded.workflow._locks

    with pytest.raises(InvalidTransitionError):
        await seeded.workflow.advance_status(order_id, OrderStatus.CANCELLED)
    assert order_id not in seeded.workflow._locks


@pytest.mark.asyncio
async def test_advance_unknown_order(seeded):
    with pytest.raises(OrderNotFoundError):
        await seeded.workflow.advance_status("order_missing", OrderStatus.PICKED_UP)
    assert "order_missing" not in seeded.workflow._locks


@pytest.mark.asyncio
async def test_concurrent_advances_of_one_order_serialize(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id

    results = await asyncio.gather(
        seeded.workflow.advance_status(order_id, OrderStatus.PICKED_UP),
        seeded.workflow.advance_status(order_id, OrderStatus.PICKED_UP),
    )

    assert all(r.status == OrderStatus.PICKED_UP for r in results)
    stored = await seeded.store.get_order(order_id)
    assert len(stored.status_history) == 2


@pytest.mark.asyncio
async def test_side_effect_failure_does_not_undo_transition(seeded, order_request, caplog):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id
    await advance_through(seeded.workflow, order_id, DELIVERY_PATH[:4])
    listener = AsyncMock()
    seeded.event_bus.subscribe("workflow.side_effect_failed", listener)

    with (
        patch.object(seeded.store, "adjust_agent_load", AsyncMock(side_effect=RuntimeError("store offline"))),
        caplog.at_level(logging.ERROR),
    ):
        order = await seeded.workflow.advance_status(order_id, OrderStatus.AT_DESTINATION_HUB)

    assert order.status == OrderStatus.AT_DESTINATION_HUB
    assert (await seeded.store.get_order(order_id)).status == OrderStatus.AT_DESTINATION_HUB
    assert "store offline" in caplog.text
    listener.assert_called_once()
    assert listener.call_args.args[0].payload["error_code"] == "INTERNAL_ERROR"


@pytest.mark.asyncio
async def test_status_change_event_payload(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    listener = AsyncMock()
    seeded.event_bus.subscribe("order.status_changed", listener)

    await seeded.workflow.advance_status(
        created.order.order_id, OrderStatus.PICKED_UP, location="Andheri", remarks="Collected"
    )

    payload = listener.call_args.args[0].payload
    assert payload["previous_status"] == "PENDING"
    assert payload["status"] == "PICKED_UP"
    assert payload["location"] == "Andheri"
    assert payload["recipient_phone"] == "9876543210"


@pytest.mark.asyncio
async def test_arrival_updates_current_location_and_route(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id

    order = await advance_through(seeded.workflow, order_id, DELIVERY_PATH[:2])

    origin_hub_id = order.workflow_tracking.origin_hub_id
    assert order.workflow_tracking.current_location.hub_id == origin_hub_id
    first_stop = order.route_optimization.transit_route[0]
    assert first_stop.hub_id == origin_hub_id
    assert first_stop.actual_arrival is not None


# --- Bulk and snapshot ---


@pytest.mark.asyncio
async def test_bulk_advance_with_one_missing_order(seeded):
    order_ids = []
    for _ in range(3):
        result = await seeded.workflow.create_order(CUSTOMER_ID, make_order_request())
        order_ids.append(result.order.order_id)
    order_ids.insert(1, "order_missing")

    result = await seeded.workflow.bulk_advance_status(order_ids, OrderStatus.PICKED_UP, location="Mumbai")

    assert result.total == 4
    assert result.successful == 3
    assert result.failed == 1
    failed = result.results[1]
    assert failed.index == 1
    assert failed.order_id == "order_missing"
    assert failed.error_code == "ORDER_NOT_FOUND"
    assert list(result.failures) == ["order_missing"]


@pytest.mark.asyncio
async def test_bulk_advance_reports_invalid_transitions(seeded):
    first = (await seeded.workflow.create_order(CUSTOMER_ID, make_order_request())).order.order_id
    second = (await seeded.workflow.create_order(CUSTOMER_ID, make_order_request())).order.order_id
    await seeded.workflow.advance_status(first, OrderStatus.PICKED_UP)

    result = await seeded.workflow.bulk_advance_status([first, second], OrderStatus.AT_ORIGIN_HUB)

    assert result.results[0].success is True
    assert result.results[1].success is False
    assert result.results[1].error_code == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_workflow_snapshot(seeded, order_request):
    created = await seeded.workflow.create_order(CUSTOMER_ID, order_request)
    order_id = created.order.order_id
    await seeded.workflow.advance_status(order_id, OrderStatus.PICKED_UP)

    snapshot = await seeded.workflow.get_workflow_status(order_id)

    assert snapshot.status == OrderStatus.PICKED_UP
    assert [e.status for e in snapshot.status_history] == [OrderStatus.PENDING, OrderStatus.PICKED_UP]
    assert snapshot.origin_hub_id == created.route_plan.origin_hub_id

    with pytest.raises(OrderNotFoundError):
        await seeded.workflow.get_workflow_status("order_missing")
