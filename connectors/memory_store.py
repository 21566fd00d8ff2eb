"""
Module: connectors.memory_store

In-memory implementation of ``LogisticsStore`` for tests, demos and single-process
deployments. Documents are copied on the way in and out so callers never hold a
live reference to stored state. Counter updates run under the store lock.
"""

import asyncio
import copy
import logging
from collections.abc import Iterable

from models.customer import Customer
from models.enums import AgentStatus, Area, OrderStatus, VehicleStatus
from models.network import DeliveryAgent, DeliveryHub, DeliveryVehicle
from models.order import Order
from services.exceptions import (
    AgentNotFoundError,
    CapacityExceededError,
    ConcurrentUpdateError,
    CustomerNotFoundError,
    DuplicateOrderError,
    HubNotFoundError,
    OrderNotFoundError,
    VehicleNotFoundError,
)

from .store import OrderMutator

logger = logging.getLogger(__name__)


def _same(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


class InMemoryLogisticsStore:
    """
    Dictionary-backed store. All mutations take ``self._lock`` so a check and its
    write are never interleaved with another coroutine's update.
    """

    def __init__(self):
        self._orders: dict[str, Order] = {}
        self._seller_ids: dict[str, str] = {}  # seller_order_id -> order_id
        self._customers: dict[str, Customer] = {}
        self._hubs: dict[str, DeliveryHub] = {}
        self._agents: dict[str, DeliveryAgent] = {}
        self._vehicles: dict[str, DeliveryVehicle] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ orders

    async def insert_order(self, order: Order) -> Order:
        async with self._lock:
            if order.seller_order_id in self._seller_ids:
                raise DuplicateOrderError(order.seller_order_id)
            if order.order_id in self._orders:
                raise DuplicateOrderError(order.order_id)
            self._orders[order.order_id] = order.model_copy(deep=True)
            self._seller_ids[order.seller_order_id] = order.order_id
        logger.debug(f"Inserted order {order.order_id} ({order.seller_order_id})")
        return order.model_copy(deep=True)

    async def get_order(self, order_id: str) -> Order | None:
        order = self._orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def seller_order_id_exists(self, seller_order_id: str) -> bool:
        return seller_order_id in self._seller_ids

    async def replace_order(self, order: Order, expected_status: OrderStatus) -> Order:
        async with self._lock:
            stored = self._orders.get(order.order_id)
            if stored is None:
                raise OrderNotFoundError(order.order_id)
            if stored.status != expected_status:
                raise ConcurrentUpdateError(order.order_id, expected_status.value, stored.status.value)
            self._orders[order.order_id] = order.model_copy(deep=True)
        return order.model_copy(deep=True)

    async def update_order(self, order_id: str, mutator: OrderMutator) -> Order:
        async with self._lock:
            stored = self._orders.get(order_id)
            if stored is None:
                raise OrderNotFoundError(order_id)
            working = stored.model_copy(deep=True)
            mutator(working)
            self._orders[order_id] = working
        return working.model_copy(deep=True)

    async def list_orders(
        self,
        *,
        customer_id: str | None = None,
        statuses: Iterable[OrderStatus] | None = None,
    ) -> list[Order]:
        wanted = set(statuses) if statuses is not None else None
        return [
            order.model_copy(deep=True)
            for order in self._orders.values()
            if (customer_id is None or order.customer_id == customer_id)
            and (wanted is None or order.status in wanted)
        ]

    # --------------------------------------------------------------- customers

    async def add_customer(self, customer: Customer) -> Customer:
        async with self._lock:
            self._customers[customer.customer_id] = copy.deepcopy(customer)
        return copy.deepcopy(customer)

    async def get_customer(self, customer_id: str) -> Customer | None:
        customer = self._customers.get(customer_id)
        return copy.deepcopy(customer) if customer else None

    async def append_customer_order(self, customer_id: str, order_id: str) -> None:
        async with self._lock:
            customer = self._customers.get(customer_id)
            if customer is None:
                raise CustomerNotFoundError(customer_id)
            customer.order_history.append(order_id)

    # -------------------------------------------------------------------- hubs

    async def add_hub(self, hub: DeliveryHub) -> DeliveryHub:
        async with self._lock:
            stored = self._hubs.setdefault(hub.hub_id, hub.model_copy(deep=True))
        return stored.model_copy(deep=True)

    async def get_hub(self, hub_id: str) -> DeliveryHub | None:
        hub = self._hubs.get(hub_id)
        return hub.model_copy(deep=True) if hub else None

    async def find_hub(self, city: str, state: str) -> DeliveryHub | None:
        for hub in self._hubs.values():
            if hub.is_active and _same(hub.city, city) and _same(hub.state, state):
                return hub.model_copy(deep=True)
        return None

    async def find_hub_in_state(self, state: str) -> DeliveryHub | None:
        for hub in self._hubs.values():
            if hub.is_active and _same(hub.state, state):
                return hub.model_copy(deep=True)
        return None

    async def list_hubs(self, state: str | None = None) -> list[DeliveryHub]:
        return [
            hub.model_copy(deep=True)
            for hub in self._hubs.values()
            if state is None or _same(hub.state, state)
        ]

    async def adjust_hub_load(self, hub_id: str, delta: int) -> DeliveryHub:
        async with self._lock:
            hub = self._hubs.get(hub_id)
            if hub is None:
                raise HubNotFoundError(hub_id)
            would_be = hub.capacity.current_load + delta
            if would_be > hub.capacity.max_orders:
                raise CapacityExceededError(
                    "hub", hub_id, delta, hub.capacity.max_orders - hub.capacity.current_load
                )
            hub.capacity.current_load = max(would_be, 0)
            return hub.model_copy(deep=True)

    # ------------------------------------------------------------------ agents

    async def add_agent(self, agent: DeliveryAgent) -> DeliveryAgent:
        async with self._lock:
            self._agents[agent.agent_id] = agent.model_copy(deep=True)
        return agent.model_copy(deep=True)

    async def get_agent(self, agent_id: str) -> DeliveryAgent | None:
        agent = self._agents.get(agent_id)
        return agent.model_copy(deep=True) if agent else None

    async def list_agents(self, *, hub_id: str | None = None, area: Area | None = None) -> list[DeliveryAgent]:
        return [
            agent.model_copy(deep=True)
            for agent in self._agents.values()
            if (hub_id is None or agent.hub_id == hub_id) and (area is None or agent.area == area)
        ]

    async def find_available_agent(self, hub_id: str, area: Area | None = None) -> DeliveryAgent | None:
        candidates = [
            agent
            for agent in self._agents.values()
            if agent.hub_id == hub_id
            and (area is None or agent.area == area)
            and agent.is_active
            and agent.status == AgentStatus.AVAILABLE
            and agent.has_spare_capacity
        ]
        if not candidates:
            return None
        best = min(candidates, key=lambda a: (a.capacity.current_orders, a.agent_id))
        return best.model_copy(deep=True)

    async def adjust_agent_load(self, agent_id: str, delta: int) -> DeliveryAgent:
        async with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None:
                raise AgentNotFoundError(agent_id)
            capacity = agent.capacity
            would_be = capacity.current_orders + delta
            if would_be > capacity.max_orders:
                raise CapacityExceededError("agent", agent_id, delta, capacity.headroom)
            if would_be < 0:
                logger.warning(f"Agent {agent_id} load would drop below zero ({would_be}); clamping")
            capacity.current_orders = max(would_be, 0)
            return agent.model_copy(deep=True)

    async def reserve_agent_capacity(
        self,
        agent_id: str,
        order_ids: list[str],
        released: dict[str, list[str]] | None = None,
    ) -> DeliveryAgent:
        released = {prev: ids for prev, ids in (released or {}).items() if prev != agent_id}
        async with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None:
                raise AgentNotFoundError(agent_id)
            requested = len(order_ids)
            if agent.capacity.current_orders + requested > agent.capacity.max_orders:
                raise CapacityExceededError("agent", agent_id, requested, agent.capacity.headroom)
            for previous_id, given_up in released.items():
                previous = self._agents.get(previous_id)
                if previous is None:
                    logger.warning(f"Previously bound agent {previous_id} no longer exists; nothing to release")
                    continue
                previous.capacity.current_orders = max(previous.capacity.current_orders - len(given_up), 0)
                previous.assigned_orders = [oid for oid in previous.assigned_orders if oid not in given_up]
                if previous.capacity.current_orders == 0 and previous.status == AgentStatus.ON_DELIVERY:
                    previous.status = AgentStatus.AVAILABLE
            agent.capacity.current_orders += requested
            agent.assigned_orders.extend(order_ids)
            agent.status = AgentStatus.ON_DELIVERY
            return agent.model_copy(deep=True)

    # ---------------------------------------------------------------- vehicles

    async def add_vehicle(self, vehicle: DeliveryVehicle) -> DeliveryVehicle:
        async with self._lock:
            self._vehicles[vehicle.vehicle_id] = vehicle.model_copy(deep=True)
        return vehicle.model_copy(deep=True)

    async def get_vehicle(self, vehicle_id: str) -> DeliveryVehicle | None:
        vehicle = self._vehicles.get(vehicle_id)
        return vehicle.model_copy(deep=True) if vehicle else None

    async def list_vehicles(self) -> list[DeliveryVehicle]:
        return [vehicle.model_copy(deep=True) for vehicle in self._vehicles.values()]

    async def find_available_vehicle(self, from_state: str, to_state: str) -> DeliveryVehicle | None:
        for vehicle in self._vehicles.values():
            if (
                vehicle.is_active
                and vehicle.status == VehicleStatus.AVAILABLE
                and (vehicle.route.serves(from_state) or vehicle.route.serves(to_state))
            ):
                return vehicle.model_copy(deep=True)
        return None

    async def reserve_vehicle_capacity(
        self,
        vehicle_id: str,
        order_ids: list[str],
        weight_kg: float = 0.0,
        volume_cbm: float = 0.0,
    ) -> DeliveryVehicle:
        async with self._lock:
            vehicle = self._vehicles.get(vehicle_id)
            if vehicle is None:
                raise VehicleNotFoundError(vehicle_id)
            capacity = vehicle.capacity
            requested = len(order_ids)
            if len(vehicle.assigned_orders) + requested > capacity.max_orders:
                raise CapacityExceededError("vehicle", vehicle_id, requested, vehicle.order_headroom)
            if capacity.current_weight_kg + weight_kg > capacity.max_weight_kg:
                raise CapacityExceededError(
                    "vehicle weight (kg)",
                    vehicle_id,
                    weight_kg,
                    capacity.max_weight_kg - capacity.current_weight_kg,
                )
            if capacity.current_volume_cbm + volume_cbm > capacity.max_volume_cbm:
                raise CapacityExceededError(
                    "vehicle volume (cbm)",
                    vehicle_id,
                    volume_cbm,
                    capacity.max_volume_cbm - capacity.current_volume_cbm,
                )
            vehicle.assigned_orders.extend(order_ids)
            capacity.current_weight_kg += weight_kg
            capacity.current_volume_cbm += volume_cbm
            vehicle.status = VehicleStatus.IN_TRANSIT
            return vehicle.model_copy(deep=True)
