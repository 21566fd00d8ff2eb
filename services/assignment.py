"""
Network assignment: hub, vehicle and courier resolution with capacity accounting.

Resolution never fails for a well-formed location; missing agents or vehicles come
back as ``None``. Batch capacity commits are all-or-nothing and go through the
store's atomic reservation operations.
"""

import logging
import random
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any

from config.config import WorkflowConfig
from connectors.store import LogisticsStore
from models.api import AssignmentResult, RoutePlan
from models.enums import (
    AgentVehicleType,
    Area,
    AssignmentStatus,
    EventSource,
    OrderStatus,
    VehicleType,
)
from models.events import LogisticsEvent
from models.network import (
    AgentCapacity,
    DeliveryAgent,
    DeliveryHub,
    DeliveryVehicle,
    VehicleCapacity,
    VehicleDriver,
    VehicleRoute,
)
from models.order import Order, TransitStop
from models.pricing import TimeEstimate
from utils.event_bus import EventBus
from utils.logistics import calculate_location_distance, get_delivery_area

from .exceptions import (
    AgentNotFoundError,
    HubNotFoundError,
    OrderNotFoundError,
    OrderValidationError,
    VehicleNotFoundError,
)
from .transitions import is_terminal

logger = logging.getLogger(__name__)

NETWORK_AREAS = (Area.NORTH, Area.SOUTH, Area.EAST, Area.WEST)
MINUTES_PER_DELIVERY = 45

_VEHICLE_PRESETS: dict[VehicleType, VehicleCapacity] = {
    VehicleType.MINI_TRUCK: VehicleCapacity(max_weight_kg=1500, max_volume_cbm=8, max_orders=300),
    VehicleType.TRUCK: VehicleCapacity(max_weight_kg=5000, max_volume_cbm=25, max_orders=500),
    VehicleType.TEMPO: VehicleCapacity(max_weight_kg=1000, max_volume_cbm=6, max_orders=300),
}


def _slug(value: str) -> str:
    return "".join(value.split()).upper()


def default_hub_id(state: str, city: str) -> str:
    return f"HUB-{_slug(state)}-{_slug(city)}"


class NetworkAssignmentResolver:
    """
    Binds orders to hubs, interstate vehicles and couriers.

    Args:
        store: persistence for hubs, agents, vehicles and orders.
        event_bus: optional bus for ``agent.orders_assigned`` / ``vehicle.orders_assigned``.
        config: workflow defaults (service area, network sizes).
    """

    def __init__(
        self,
        store: LogisticsStore,
        event_bus: EventBus | None = None,
        config: WorkflowConfig | None = None,
    ):
        self.store = store
        self.event_bus = event_bus
        self.config = config or WorkflowConfig()

    # ------------------------------------------------------------- resolution

    async def resolve_hub(self, city: str, state: str) -> DeliveryHub:
        """Exact city+state hub, else any hub in the state, else a new default hub."""
        if not state or not state.strip():
            raise OrderValidationError("A state is required to resolve a hub", city=city)
        city = city or "Unknown"

        hub = await self.store.find_hub(city, state)
        if hub:
            return hub
        hub = await self.store.find_hub_in_state(state)
        if hub:
            logger.debug(f"No hub in {city}; using {hub.hub_id} elsewhere in {state}")
            return hub

        created = DeliveryHub(
            hub_id=default_hub_id(state, city),
            name=f"{city} Hub",
            state=state,
            city=city,
            area=Area.NORTH,
            service_areas=[self.config.default_service_area],
        )
        hub = await self.store.add_hub(created)
        logger.info(f"Created default hub {hub.hub_id} for {city}, {state}")
        return hub

    async def assign_vehicle(self, from_state: str, to_state: str) -> DeliveryVehicle | None:
        vehicle = await self.store.find_available_vehicle(from_state, to_state)
        if vehicle is None:
            logger.info(f"No interstate vehicle available for {from_state} -> {to_state}")
        return vehicle

    async def assign_agent(
        self, hub_id: str, area: Area | None, hub_wide_fallback: bool = True
    ) -> DeliveryAgent | None:
        """Least-loaded available agent in the hub area; optionally anywhere in the hub."""
        agent = await self.store.find_available_agent(hub_id, area)
        if agent is None and hub_wide_fallback and area is not None:
            agent = await self.store.find_available_agent(hub_id, None)
        if agent is None:
            logger.info(f"No delivery agent with spare capacity at hub {hub_id} (area={area})")
        return agent

    # ------------------------------------------------------------- planning

    def plan_route(
        self,
        origin: DeliveryHub,
        destination: DeliveryHub,
        time_estimate: TimeEstimate | None = None,
        now: datetime | None = None,
    ) -> list[TransitStop]:
        """Transit hubs in visiting order with estimated arrivals."""
        start = now or datetime.now(timezone.utc)
        stops = [
            TransitStop(
                hub_id=origin.hub_id,
                state=origin.state,
                city=origin.city,
                area=origin.area,
                estimated_arrival=start,
            )
        ]
        if destination.hub_id != origin.hub_id:
            days = time_estimate.estimated_days if time_estimate else 1
            stops.append(
                TransitStop(
                    hub_id=destination.hub_id,
                    state=destination.state,
                    city=destination.city,
                    area=destination.area,
                    estimated_arrival=start + timedelta(days=max(days - 1, 0)),
                )
            )
        return stops

    async def plan_order(self, order: Order, time_estimate: TimeEstimate | None = None) -> RoutePlan:
        """
        Resolve origin and destination hubs, an interstate vehicle and a delivery
        agent for a new order. Writes the bindings into ``order`` in place.

        Missing vehicle or agent leaves the order UNASSIGNED with a reason; that is
        not an error.
        """
        pickup = order.pickup_address
        drop = order.recipient_details.address
        origin = await self.resolve_hub(pickup.city, pickup.state)
        destination = await self.resolve_hub(drop.city, drop.state)
        is_interstate = origin.state.casefold() != destination.state.casefold()
        distance = calculate_location_distance(pickup.city, pickup.state, drop.city, drop.state)

        route = order.route_optimization
        route.delivery_area = Area(get_delivery_area(drop.pincode))
        route.transit_route = self.plan_route(origin, destination, time_estimate)

        reasons: list[str] = []
        vehicle = None
        if is_interstate:
            vehicle = await self.assign_vehicle(origin.state, destination.state)
            if vehicle:
                route.assigned_vehicle_id = vehicle.vehicle_id
            else:
                reasons.append(f"no vehicle available for {origin.state} -> {destination.state}")

        agent = await self.assign_agent(destination.hub_id, route.delivery_area)
        if agent:
            route.delivery_agent_id = agent.agent_id
        else:
            reasons.append(f"no delivery agent available at {destination.hub_id}")

        route.assignment_status = AssignmentStatus.UNASSIGNED if reasons else AssignmentStatus.ASSIGNED
        route.unassigned_reason = "; ".join(reasons) or None

        tracking = order.workflow_tracking
        tracking.origin_hub_id = origin.hub_id
        tracking.destination_hub_id = destination.hub_id
        tracking.current_location.hub_id = origin.hub_id
        tracking.current_location.description = pickup.label()

        return RoutePlan(
            origin_hub_id=origin.hub_id,
            destination_hub_id=destination.hub_id,
            is_interstate=is_interstate,
            distance_km=float(distance["distance"]),
            transit_route=route.transit_route,
            vehicle_id=route.assigned_vehicle_id,
            delivery_agent_id=route.delivery_agent_id,
            unassigned_reason=route.unassigned_reason,
        )

    # ------------------------------------------------------------- capacity

    async def _load_orders(self, order_ids: list[str]) -> list[Order]:
        if not order_ids:
            raise OrderValidationError("order_ids must contain at least one order id")
        if len(set(order_ids)) != len(order_ids):
            raise OrderValidationError("order_ids contains duplicates", order_ids=order_ids)
        orders = []
        for order_id in order_ids:
            order = await self.store.get_order(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            orders.append(order)
        return orders

    async def assign_orders_to_agent(self, agent_id: str, order_ids: list[str]) -> AssignmentResult:
        """
        Admit a batch of orders to an agent. Either every order is admitted or none.

        Orders already holding another agent's capacity are moved: that agent's
        load is given back in the same step.

        Raises:
            AgentNotFoundError, OrderNotFoundError, CapacityExceededError (nothing applied),
            OrderValidationError: finished orders, or orders already bound to this agent.
        """
        if await self.store.get_agent(agent_id) is None:
            raise AgentNotFoundError(agent_id)
        orders = await self._load_orders(order_ids)

        released: dict[str, list[str]] = defaultdict(list)
        for order in orders:
            if is_terminal(order.status):
                raise OrderValidationError(
                    f"Order {order.order_id} is {order.status.value} and cannot be assigned",
                    order_id=order.order_id,
                    status=order.status.value,
                )
            bound_to = order.workflow_tracking.delivery_agent_id
            if bound_to == agent_id:
                raise OrderValidationError(
                    f"Order {order.order_id} is already assigned to agent {agent_id}",
                    order_id=order.order_id,
                    agent_id=agent_id,
                )
            if bound_to:
                released[bound_to].append(order.order_id)

        agent = await self.store.reserve_agent_capacity(agent_id, order_ids, released=dict(released))
        for previous_id, moved in released.items():
            logger.info(f"Released {len(moved)} orders from agent {previous_id}")

        def bind(order: Order) -> None:
            order.route_optimization.delivery_agent_id = agent_id
            order.route_optimization.assignment_status = AssignmentStatus.ASSIGNED
            # load already reserved above; the workflow must not count it again
            order.workflow_tracking.delivery_agent_id = agent_id
            order.route_optimization.unassigned_reason = None

        for order_id in order_ids:
            await self.store.update_order(order_id, bind)

        logger.info(
            f"Assigned {len(order_ids)} orders to agent {agent_id} "
            f"({agent.capacity.current_orders}/{agent.capacity.max_orders})"
        )
        await self._publish("agent.orders_assigned", {"agent_id": agent_id, "order_ids": order_ids})
        return AssignmentResult(
            resource="agent",
            resource_id=agent_id,
            assigned_order_ids=list(order_ids),
            current_load=agent.capacity.current_orders,
            capacity=agent.capacity.max_orders,
        )

    async def assign_orders_to_vehicle(self, vehicle_id: str, order_ids: list[str]) -> AssignmentResult:
        """All-or-nothing admission of orders to an interstate vehicle (count, weight, volume)."""
        if await self.store.get_vehicle(vehicle_id) is None:
            raise VehicleNotFoundError(vehicle_id)
        orders = await self._load_orders(order_ids)
        weight = sum(o.package_details.chargeable_weight_kg for o in orders)
        volume = sum(o.package_details.dimensions_cm.volume_cm3 / 1_000_000 for o in orders)
        vehicle = await self.store.reserve_vehicle_capacity(vehicle_id, order_ids, weight, volume)

        def bind(order: Order) -> None:
            order.route_optimization.assigned_vehicle_id = vehicle_id

        for order_id in order_ids:
            await self.store.update_order(order_id, bind)

        logger.info(f"Loaded {len(order_ids)} orders ({weight:.1f} kg) onto vehicle {vehicle_id}")
        await self._publish("vehicle.orders_assigned", {"vehicle_id": vehicle_id, "order_ids": order_ids})
        return AssignmentResult(
            resource="vehicle",
            resource_id=vehicle_id,
            assigned_order_ids=list(order_ids),
            current_load=len(vehicle.assigned_orders),
            capacity=vehicle.capacity.max_orders,
        )

    async def optimize_delivery_routes(self, hub_id: str) -> list[dict[str, Any]]:
        """
        Proposed delivery runs for the hub's available agents.

        Orders waiting at the hub are split across agents up to each agent's
        headroom and sequenced by pincode. Nothing is persisted.
        """
        if await self.store.get_hub(hub_id) is None:
            raise HubNotFoundError(hub_id)
        waiting = [
            order
            for order in await self.store.list_orders(statuses=[OrderStatus.AT_DESTINATION_HUB])
            if order.workflow_tracking.destination_hub_id == hub_id
        ]
        agents = [
            agent
            for agent in await self.store.list_agents(hub_id=hub_id)
            if agent.is_active and agent.has_spare_capacity
        ]
        runs: list[dict[str, Any]] = []
        taken: set[str] = set()
        for agent in sorted(agents, key=lambda a: (a.capacity.current_orders, a.agent_id)):
            eligible = [
                order
                for order in waiting
                if order.order_id not in taken
                and order.route_optimization.delivery_agent_id in (None, agent.agent_id)
            ][: agent.capacity.headroom]
            if not eligible:
                continue
            eligible.sort(key=lambda o: o.recipient_details.address.pincode)
            taken.update(o.order_id for o in eligible)
            runs.append(
                {
                    "agent_id": agent.agent_id,
                    "agent_name": agent.name,
                    "order_ids": [o.order_id for o in eligible],
                    "estimated_minutes": len(eligible) * MINUTES_PER_DELIVERY,
                }
            )
        return runs

    # ------------------------------------------------------------- bootstrap

    async def initialize_delivery_network(self, state: str, cities: list[str]) -> dict[str, Any]:
        """Create a hub per city and area, couriers for every hub and interstate vehicles."""
        if not state or not cities:
            raise OrderValidationError("State and a non-empty cities list are required")

        hubs: list[DeliveryHub] = []
        agents: list[DeliveryAgent] = []
        vehicles: list[DeliveryVehicle] = []
        for city in cities:
            for area in NETWORK_AREAS:
                hub = await self.store.add_hub(
                    DeliveryHub(
                        hub_id=f"{_slug(state)}-{_slug(city)}-{area.value}",
                        name=f"{city} {area.value.title()} Hub",
                        state=state,
                        city=city,
                        area=area,
                        service_areas=[f"{city.lower()}_{area.value.lower()}"],
                    )
                )
                hubs.append(hub)
                for i in range(1, self.config.agents_per_hub + 1):
                    agent = await self.store.add_agent(
                        DeliveryAgent(
                            agent_id=f"{hub.hub_id}-AGENT-{i}",
                            name=f"Agent {i} - {area.value}",
                            phone=f"9{random.randint(100000000, 999999999)}",
                            hub_id=hub.hub_id,
                            area=area,
                            vehicle_type=AgentVehicleType.BIKE if i <= 2 else AgentVehicleType.SCOOTER,
                            capacity=AgentCapacity(max_orders=self.config.default_agent_max_orders),
                        )
                    )
                    agents.append(agent)

        presets = list(_VEHICLE_PRESETS.items())
        for i in range(self.config.vehicles_per_network):
            vehicle_type, capacity = presets[i % len(presets)]
            vehicle = await self.store.add_vehicle(
                DeliveryVehicle(
                    vehicle_id=f"{_slug(state)}-VH-{i + 1}",
                    vehicle_type=vehicle_type,
                    registration_number=f"{_slug(state)[:2]}{random.randint(10, 99)}"
                    f"{chr(65 + random.randint(0, 25))}{random.randint(1000, 9999)}",
                    capacity=capacity.model_copy(),
                    route=VehicleRoute(from_state=state, service_states=[state]),
                    driver=VehicleDriver(name=f"Driver {i + 1}", phone=f"8{random.randint(100000000, 999999999)}"),
                )
            )
            vehicles.append(vehicle)

        logger.info(
            f"Delivery network initialized for {state}: "
            f"{len(hubs)} hubs, {len(agents)} agents, {len(vehicles)} vehicles"
        )
        return {
            "state": state,
            "cities": len(cities),
            "hubs_created": len(hubs),
            "agents_created": len(agents),
            "vehicles_created": len(vehicles),
            "hub_ids": [h.hub_id for h in hubs],
        }

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.publish(
            LogisticsEvent(event_type=event_type, payload=payload, source=EventSource.ASSIGNMENT)
        )
