"""
Centralized Enum definitions for the project.
"""

from enum import Enum


class OrderStatus(str, Enum):
    """Hand-off stages of a shipping order"""

    PENDING = "PENDING"  # Order created
    ASSIGNED_PICKUP = "ASSIGNED_PICKUP"  # Pickup agent bound
    PICKED_UP = "PICKED_UP"
    AT_ORIGIN_HUB = "AT_ORIGIN_HUB"
    DISPATCHED_FROM_ORIGIN = "DISPATCHED_FROM_ORIGIN"
    IN_TRANSIT = "IN_TRANSIT"  # Moving between states
    AT_DESTINATION_HUB = "AT_DESTINATION_HUB"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class OrderType(str, Enum):
    """Handling category of a shipment"""

    NORMAL = "NORMAL"
    HANDLE_WITH_CARE = "HANDLE_WITH_CARE"
    BY_AIR = "BY_AIR"
    BY_ROAD = "BY_ROAD"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"
    CRITICAL = "CRITICAL"


class DeliveryType(str, Enum):
    STANDARD = "STANDARD"
    EXPRESS = "EXPRESS"
    SCHEDULED = "SCHEDULED"


class PaymentMethod(str, Enum):
    COD = "COD"
    PREPAID = "PREPAID"
    CREDIT = "CREDIT"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class Area(str, Enum):
    """Quadrant zones an agent or hub serves within a city"""

    NORTH = "NORTH"
    SOUTH = "SOUTH"
    EAST = "EAST"
    WEST = "WEST"
    CENTRAL = "CENTRAL"


class AgentStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    ON_DELIVERY = "ON_DELIVERY"
    OFF_DUTY = "OFF_DUTY"
    BREAK = "BREAK"


class AgentVehicleType(str, Enum):
    BIKE = "BIKE"
    SCOOTER = "SCOOTER"
    CYCLE = "CYCLE"
    VAN = "VAN"


class VehicleType(str, Enum):
    MINI_TRUCK = "MINI_TRUCK"
    TRUCK = "TRUCK"
    TEMPO = "TEMPO"
    CONTAINER = "CONTAINER"


class VehicleStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    IN_TRANSIT = "IN_TRANSIT"
    LOADING = "LOADING"
    MAINTENANCE = "MAINTENANCE"


class AssignmentStatus(str, Enum):
    """Whether the delivery network has been bound to an order"""

    ASSIGNED = "ASSIGNED"
    UNASSIGNED = "UNASSIGNED"


class EstimateSource(str, Enum):
    """Which estimator produced a quote"""

    REMOTE = "remote"
    DETERMINISTIC = "deterministic"


class LoyaltyTier(str, Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class EventSource(str, Enum):
    """Components that publish events on the bus"""

    WORKFLOW = "workflow"
    ASSIGNMENT = "assignment"
    PAYMENT = "payment"
    SYSTEM = "system"
