import asyncio

import pytest
from conftest import make_order

from connectors.memory_store import InMemoryLogisticsStore
from connectors.store import LogisticsStore
from models.customer import Customer
from models.enums import AgentStatus, Area, OrderStatus, VehicleStatus
from models.network import (
    AgentCapacity,
    DeliveryAgent,
    DeliveryHub,
    DeliveryVehicle,
    HubCapacity,
    VehicleCapacity,
    VehicleRoute,
)
from models.order import Order
from services.exceptions import (
    AgentNotFoundError,
    CapacityExceededError,
    ConcurrentUpdateError,
    CustomerNotFoundError,
    DuplicateOrderError,
    HubNotFoundError,
    OrderNotFoundError,
)


@pytest.fixture
def store() -> InMemoryLogisticsStore:
    return InMemoryLogisticsStore()


@pytest.fixture
def agent() -> DeliveryAgent:
    return DeliveryAgent(agent_id="AG-1", name="Ravi", hub_id="HUB-1", area=Area.NORTH, capacity=AgentCapacity(max_orders=3))


def test_store_satisfies_protocol(store):
    assert isinstance(store, LogisticsStore)


# --- Orders ---


@pytest.mark.asyncio
async def test_insert_and_get_returns_copies(store):
    order = make_order()
    await store.insert_order(order)

    fetched = await store.get_order("order_1")
    fetched.status = OrderStatus.CANCELLED

    assert (await store.get_order("order_1")).status == OrderStatus.PENDING
    assert await store.seller_order_id_exists("ORD-1-AAAAAA")
    assert await store.get_order("missing") is None


@pytest.mark.asyncio
async def test_insert_rejects_duplicate_seller_order_id(store):
    await store.insert_order(make_order())
    with pytest.raises(DuplicateOrderError):
        await store.insert_order(make_order(order_id="order_2"))


@pytest.mark.asyncio
async def test_replace_order_compare_and_swap(store):
    await store.insert_order(make_order())
    order = await store.get_order("order_1")
    order.record_status(OrderStatus.ASSIGNED_PICKUP, location="Mumbai")

    await store.replace_order(order, expected_status=OrderStatus.PENDING)

    stale = await store.get_order("order_1")
    stale.record_status(OrderStatus.CANCELLED, location="Mumbai")
    with pytest.raises(ConcurrentUpdateError):
        await store.replace_order(stale, expected_status=OrderStatus.PENDING)
    assert (await store.get_order("order_1")).status == OrderStatus.ASSIGNED_PICKUP


@pytest.mark.asyncio
async def test_replace_missing_order(store):
    with pytest.raises(OrderNotFoundError):
        await store.replace_order(make_order(), expected_status=OrderStatus.PENDING)


@pytest.mark.asyncio
async def test_update_order_applies_mutator(store):
    await store.insert_order(make_order())

    def mutate(order: Order) -> None:
        order.shipping_details.delivery_attempts = 2

    updated = await store.update_order("order_1", mutate)

    assert updated.shipping_details.delivery_attempts == 2
    assert (await store.get_order("order_1")).shipping_details.delivery_attempts == 2
    with pytest.raises(OrderNotFoundError):
        await store.update_order("missing", mutate)


@pytest.mark.asyncio
async def test_list_orders_filters(store):
    await store.insert_order(make_order())
    await store.insert_order(
        make_order(order_id="order_2", seller_order_id="ORD-2-BBBBBB", customer_id="CUST-2", status=OrderStatus.DELIVERED)
    )

    assert [o.order_id for o in await store.list_orders(customer_id="CUST-2")] == ["order_2"]
    assert [o.order_id for o in await store.list_orders(statuses=[OrderStatus.PENDING])] == ["order_1"]
    assert len(await store.list_orders()) == 2


# --- Customers ---


@pytest.mark.asyncio
async def test_append_customer_order(store):
    await store.add_customer(Customer(customer_id="CUST-1", name="Asha"))
    await store.append_customer_order("CUST-1", "order_1")

    customer = await store.get_customer("CUST-1")
    assert customer.order_history == ["order_1"]
    with pytest.raises(CustomerNotFoundError):
        await store.append_customer_order("CUST-404", "order_1")


# --- Hubs ---


@pytest.mark.asyncio
async def test_hub_lookup_is_case_insensitive(store):
    await store.add_hub(DeliveryHub(hub_id="HUB-1", state="Delhi", city="New Delhi"))

    assert (await store.find_hub("new delhi", " DELHI ")).hub_id == "HUB-1"
    assert (await store.find_hub_in_state("delhi")).hub_id == "HUB-1"
    assert await store.find_hub("Mumbai", "Maharashtra") is None


@pytest.mark.asyncio
async def test_add_hub_keeps_first_definition(store):
    await store.add_hub(DeliveryHub(hub_id="HUB-1", name="First", state="Delhi", city="Delhi"))
    stored = await store.add_hub(DeliveryHub(hub_id="HUB-1", name="Second", state="Delhi", city="Delhi"))
    assert stored.name == "First"


# --- Agent capacity ---


@pytest.mark.asyncio
async def test_find_available_agent_skips_full_and_inactive(store):
    await store.add_agent(
        DeliveryAgent(agent_id="AG-FULL", name="Full", hub_id="HUB-1", area=Area.NORTH, capacity=AgentCapacity(max_orders=0))
    )
    await store.add_agent(DeliveryAgent(agent_id="AG-OFF", name="Off", hub_id="HUB-1", area=Area.NORTH, is_active=False))
    await store.add_agent(
        DeliveryAgent(agent_id="AG-BREAK", name="Break", hub_id="HUB-1", area=Area.NORTH, status=AgentStatus.BREAK)
    )
    assert await store.find_available_agent("HUB-1", Area.NORTH) is None

    await store.add_agent(DeliveryAgent(agent_id="AG-OK", name="Ok", hub_id="HUB-1", area=Area.SOUTH))
    assert (await store.find_available_agent("HUB-1")).agent_id == "AG-OK"
    assert await store.find_available_agent("HUB-1", Area.NORTH) is None


@pytest.mark.asyncio
async def test_adjust_agent_load_bounds(store, agent, caplog):
    await store.add_agent(agent)

    assert (await store.adjust_agent_load("AG-1", 3)).capacity.current_orders == 3
    with pytest.raises(CapacityExceededError):
        await store.adjust_agent_load("AG-1", 1)

    await store.adjust_agent_load("AG-1", -5)
    assert (await store.get_agent("AG-1")).capacity.current_orders == 0
    assert "clamping" in caplog.text
    with pytest.raises(AgentNotFoundError):
        await store.adjust_agent_load("AG-404", 1)


@pytest.mark.asyncio
async def test_concurrent_load_updates_are_serialized(store, agent):
    agent.capacity.max_orders = 50
    await store.add_agent(agent)

    await asyncio.gather(*(store.adjust_agent_load("AG-1", 1) for _ in range(40)))

    assert (await store.get_agent("AG-1")).capacity.current_orders == 40


@pytest.mark.asyncio
async def test_reserve_agent_capacity_is_all_or_nothing(store, agent):
    await store.add_agent(agent)

    with pytest.raises(CapacityExceededError):
        await store.reserve_agent_capacity("AG-1", ["o1", "o2", "o3", "o4"])
    untouched = await store.get_agent("AG-1")
    assert untouched.capacity.current_orders == 0
    assert untouched.assigned_orders == []

    reserved = await store.reserve_agent_capacity("AG-1", ["o1", "o2"])
    assert reserved.capacity.current_orders == 2
    assert reserved.assigned_orders == ["o1", "o2"]
    assert reserved.status == AgentStatus.ON_DELIVERY


@pytest.mark.asyncio
async def test_reserve_agent_capacity_releases_previous_agent(store, agent):
    await store.add_agent(agent)
    await store.add_agent(DeliveryAgent(agent_id="AG-2", name="Meena", hub_id="HUB-1", area=Area.NORTH))
    await store.reserve_agent_capacity("AG-1", ["o1", "o2"])

    moved = await store.reserve_agent_capacity("AG-2", ["o1"], released={"AG-1": ["o1"]})

    assert moved.capacity.current_orders == 1
    previous = await store.get_agent("AG-1")
    assert previous.capacity.current_orders == 1
    assert previous.assigned_orders == ["o2"]

    await store.reserve_agent_capacity("AG-2", ["o2"], released={"AG-1": ["o2"]})
    emptied = await store.get_agent("AG-1")
    assert emptied.capacity.current_orders == 0
    assert emptied.status == AgentStatus.AVAILABLE


@pytest.mark.asyncio
async def test_release_skipped_when_reservation_fails(store, agent):
    await store.add_agent(agent)
    await store.add_agent(
        DeliveryAgent(agent_id="AG-FULL", name="Full", hub_id="HUB-1", area=Area.NORTH, capacity=AgentCapacity(max_orders=0))
    )
    await store.reserve_agent_capacity("AG-1", ["o1"])

    with pytest.raises(CapacityExceededError):
        await store.reserve_agent_capacity("AG-FULL", ["o1"], released={"AG-1": ["o1"]})

    assert (await store.get_agent("AG-1")).capacity.current_orders == 1


# --- Hub load ---


@pytest.mark.asyncio
async def test_adjust_hub_load_bounds(store):
    await store.add_hub(DeliveryHub(hub_id="HUB-1", state="Delhi", city="Delhi", capacity=HubCapacity(max_orders=2)))

    assert (await store.adjust_hub_load("HUB-1", 2)).capacity.current_load == 2
    with pytest.raises(CapacityExceededError):
        await store.adjust_hub_load("HUB-1", 1)
    assert (await store.adjust_hub_load("HUB-1", -5)).capacity.current_load == 0
    with pytest.raises(HubNotFoundError):
        await store.adjust_hub_load("HUB-404", 1)


# --- Vehicle capacity ---


@pytest.mark.asyncio
async def test_reserve_vehicle_capacity_checks_volume(store):
    await store.add_vehicle(
        DeliveryVehicle(
            vehicle_id="VH-1",
            capacity=VehicleCapacity(max_volume_cbm=1.0, max_orders=5),
            route=VehicleRoute(from_state="Delhi"),
        )
    )

    with pytest.raises(CapacityExceededError) as exc_info:
        await store.reserve_vehicle_capacity("VH-1", ["o1"], weight_kg=10, volume_cbm=1.5)
    assert exc_info.value.resource == "vehicle volume (cbm)"

    vehicle = await store.reserve_vehicle_capacity("VH-1", ["o1", "o2"], weight_kg=10, volume_cbm=0.5)
    assert vehicle.capacity.current_weight_kg == 10
    assert vehicle.status == VehicleStatus.IN_TRANSIT
    assert vehicle.order_headroom == 3
    # a vehicle in transit is no longer offered for new interstate bindings
    assert await store.find_available_vehicle("Delhi", "Goa") is None
