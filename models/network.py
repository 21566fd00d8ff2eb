"""
Data models for the delivery network: hubs, couriers and interstate vehicles.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .enums import AgentStatus, AgentVehicleType, Area, VehicleStatus, VehicleType


class HubCapacity(BaseModel):
    max_orders: int = Field(default=1000, ge=0)
    current_load: int = Field(default=0, ge=0)
    max_weight_kg: float = 10000.0


class DeliveryHub(BaseModel):
    """Fixed network node scoped to a state, city and area."""

    hub_id: str
    name: str = ""
    state: str
    city: str
    area: Area = Area.NORTH
    service_areas: list[str] = Field(default_factory=list)  # pincodes
    capacity: HubCapacity = Field(default_factory=HubCapacity)
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AgentCapacity(BaseModel):
    max_orders: int = Field(default=10, ge=0)
    current_orders: int = Field(default=0, ge=0)
    max_weight_kg: float = 50.0

    @property
    def headroom(self) -> int:
        return max(self.max_orders - self.current_orders, 0)


class DeliveryAgent(BaseModel):
    """Courier responsible for pickup or last-mile delivery inside one hub area."""

    agent_id: str
    name: str
    phone: str = ""
    hub_id: str
    area: Area
    vehicle_type: AgentVehicleType = AgentVehicleType.BIKE
    capacity: AgentCapacity = Field(default_factory=AgentCapacity)
    status: AgentStatus = AgentStatus.AVAILABLE
    assigned_orders: list[str] = Field(default_factory=list)
    is_active: bool = True

    @property
    def has_spare_capacity(self) -> bool:
        return self.capacity.current_orders < self.capacity.max_orders


class VehicleCapacity(BaseModel):
    max_weight_kg: float = 5000.0
    max_volume_cbm: float = 30.0
    max_orders: int = Field(default=200, ge=0)
    current_weight_kg: float = 0.0
    current_volume_cbm: float = 0.0


class VehicleRoute(BaseModel):
    from_state: str
    to_state: str = ""
    service_states: list[str] = Field(default_factory=list)

    def serves(self, state: str) -> bool:
        if not state:
            return False
        return state in self.service_states or state in (self.from_state, self.to_state)


class VehicleDriver(BaseModel):
    name: str
    phone: str = ""
    license_number: str = ""


class DeliveryVehicle(BaseModel):
    """Interstate transport unit carrying batches of orders between state hubs."""

    vehicle_id: str
    vehicle_type: VehicleType = VehicleType.TRUCK
    registration_number: str = ""
    capacity: VehicleCapacity = Field(default_factory=VehicleCapacity)
    route: VehicleRoute
    driver: VehicleDriver | None = None
    status: VehicleStatus = VehicleStatus.AVAILABLE
    assigned_orders: list[str] = Field(default_factory=list)
    is_active: bool = True

    @property
    def order_headroom(self) -> int:
        return max(self.capacity.max_orders - len(self.assigned_orders), 0)
