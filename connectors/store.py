"""
Module: connectors.store

Storage contract for orders, customers and the delivery network. Implementations
must make every load counter change atomic; callers never read-modify-write a
counter themselves.
"""

from collections.abc import Callable, Iterable
from typing import Protocol, runtime_checkable

from models.customer import Customer
from models.enums import Area, OrderStatus
from models.network import DeliveryAgent, DeliveryHub, DeliveryVehicle
from models.order import Order

OrderMutator = Callable[[Order], None]


@runtime_checkable
class LogisticsStore(Protocol):
    """Document-store style persistence used by the workflow services."""

    # Orders
    async def insert_order(self, order: Order) -> Order:
        """Persist a new order; raises DuplicateOrderError if the seller order id is taken."""
        ...

    async def get_order(self, order_id: str) -> Order | None: ...

    async def seller_order_id_exists(self, seller_order_id: str) -> bool: ...

    async def replace_order(self, order: Order, expected_status: OrderStatus) -> Order:
        """Compare-and-swap on status; raises ConcurrentUpdateError when the stored status differs."""
        ...

    async def update_order(self, order_id: str, mutator: OrderMutator) -> Order:
        """Apply a field-level change to the stored order in one atomic step."""
        ...

    async def list_orders(
        self,
        *,
        customer_id: str | None = None,
        statuses: Iterable[OrderStatus] | None = None,
    ) -> list[Order]: ...

    # Customers
    async def add_customer(self, customer: Customer) -> Customer: ...

    async def get_customer(self, customer_id: str) -> Customer | None: ...

    async def append_customer_order(self, customer_id: str, order_id: str) -> None: ...

    # Hubs
    async def add_hub(self, hub: DeliveryHub) -> DeliveryHub:
        """Insert the hub unless one with the same id exists; returns the stored hub."""
        ...

    async def get_hub(self, hub_id: str) -> DeliveryHub | None: ...

    async def find_hub(self, city: str, state: str) -> DeliveryHub | None: ...

    async def find_hub_in_state(self, state: str) -> DeliveryHub | None: ...

    async def list_hubs(self, state: str | None = None) -> list[DeliveryHub]: ...

    async def adjust_hub_load(self, hub_id: str, delta: int) -> DeliveryHub: ...

    # Agents
    async def add_agent(self, agent: DeliveryAgent) -> DeliveryAgent: ...

    async def get_agent(self, agent_id: str) -> DeliveryAgent | None: ...

    async def list_agents(self, *, hub_id: str | None = None, area: Area | None = None) -> list[DeliveryAgent]: ...

    async def find_available_agent(self, hub_id: str, area: Area | None = None) -> DeliveryAgent | None:
        """Active AVAILABLE agent with spare capacity; lowest current load first."""
        ...

    async def adjust_agent_load(self, agent_id: str, delta: int) -> DeliveryAgent:
        """Atomic increment/decrement; raises CapacityExceededError instead of overcommitting."""
        ...

    async def reserve_agent_capacity(
        self,
        agent_id: str,
        order_ids: list[str],
        released: dict[str, list[str]] | None = None,
    ) -> DeliveryAgent:
        """
        All-or-nothing batch admission of orders to an agent. ``released`` maps
        previously bound agents to the orders they give up in the same step.
        """
        ...

    # Vehicles
    async def add_vehicle(self, vehicle: DeliveryVehicle) -> DeliveryVehicle: ...

    async def get_vehicle(self, vehicle_id: str) -> DeliveryVehicle | None: ...

    async def list_vehicles(self) -> list[DeliveryVehicle]: ...

    async def find_available_vehicle(self, from_state: str, to_state: str) -> DeliveryVehicle | None: ...

    async def reserve_vehicle_capacity(
        self,
        vehicle_id: str,
        order_ids: list[str],
        weight_kg: float = 0.0,
        volume_cbm: float = 0.0,
    ) -> DeliveryVehicle:
        """All-or-nothing batch admission of orders to a vehicle (count, weight and volume)."""
        ...
