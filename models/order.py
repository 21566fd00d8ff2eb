"""
Data models for the shipping order aggregate.
Includes addresses, package and payment details, workflow tracking and the Order itself.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, model_validator

from utils.logistics import calculate_volumetric_weight, lookup_state

from .enums import (
    Area,
    AssignmentStatus,
    DeliveryType,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    Priority,
)
from .pricing import Dimensions, EstimationRequest, PriceBreakdown


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Address(BaseModel):
    """Postal address. A missing state is filled from the city or pincode."""

    address_line1: str = ""
    address_line2: str | None = None
    city: str = Field(min_length=1)
    state: str = ""
    pincode: str = ""
    country: str = "India"
    phone: str | None = None

    @model_validator(mode="after")
    def _fill_state(self) -> "Address":
        if not self.state.strip():
            self.state = lookup_state(self.city, self.pincode) or "Unknown"
        return self

    def label(self) -> str:
        return f"{self.city}, {self.state}"


class RecipientDetails(BaseModel):
    name: str = ""
    email: str | None = None
    phone: str = ""
    address: Address


class PackageItem(BaseModel):
    sku: str | None = None
    name: str = "Item"
    quantity: int = Field(default=1, ge=1)
    price: float = Field(default=0.0, ge=0)
    weight_grams: float | None = None
    category: str | None = None


class PackageDetails(BaseModel):
    items: list[PackageItem] = Field(default_factory=list)
    dead_weight_kg: float = Field(default=1.0, gt=0)
    dimensions_cm: Dimensions = Field(default_factory=Dimensions)
    volumetric_weight_kg: float | None = None
    special_instructions: str | None = None
    fragile: bool = False
    perishable: bool = False

    def ensure_volumetric_weight(self) -> float:
        """Fill the volumetric weight from the dimensions when it was not supplied."""
        if not self.volumetric_weight_kg:
            dims = self.dimensions_cm
            self.volumetric_weight_kg = calculate_volumetric_weight(dims.length, dims.width, dims.height)
        return self.volumetric_weight_kg

    @property
    def chargeable_weight_kg(self) -> float:
        return max(self.dead_weight_kg, self.volumetric_weight_kg or 0.0)


class PaymentDetails(BaseModel):
    method: PaymentMethod
    total_value: float = Field(ge=0)
    cod_amount: float | None = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: str | None = None
    payment_intent_id: str | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None


class ShippingDetails(BaseModel):
    courier_partner: str | None = None
    awb: str | None = None
    tracking_id: str | None = None
    rate: PriceBreakdown | None = None
    estimated_delivery_date: datetime | None = None
    actual_delivery_date: datetime | None = None
    delivery_attempts: int = 0
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None


class TransitStop(BaseModel):
    """One planned hub on the order's route."""

    hub_id: str
    state: str
    city: str
    area: Area | None = None
    estimated_arrival: datetime | None = None
    actual_arrival: datetime | None = None
    status: str = "PENDING"


class RouteOptimization(BaseModel):
    transit_route: list[TransitStop] = Field(default_factory=list)
    assigned_vehicle_id: str | None = None
    delivery_agent_id: str | None = None
    delivery_area: Area = Area.NORTH
    assignment_status: AssignmentStatus = AssignmentStatus.UNASSIGNED
    unassigned_reason: str | None = None


class CurrentLocation(BaseModel):
    hub_id: str | None = None
    agent_id: str | None = None
    description: str | None = None
    last_updated: datetime = Field(default_factory=utcnow)


class StatusHistoryEntry(BaseModel):
    status: OrderStatus
    timestamp: datetime = Field(default_factory=utcnow)
    location: str | None = None
    handled_by: str = "SYSTEM"
    remarks: str = ""


class TrackingEntry(BaseModel):
    """Customer-facing tracking line."""

    timestamp: datetime = Field(default_factory=utcnow)
    status: str
    location: str | None = None
    remarks: str = ""
    updated_by: str = "SYSTEM"


class WorkflowTracking(BaseModel):
    pickup_agent_id: str | None = None
    delivery_agent_id: str | None = None
    origin_hub_id: str | None = None
    destination_hub_id: str | None = None
    current_location: CurrentLocation = Field(default_factory=CurrentLocation)
    status_history: list[StatusHistoryEntry] = Field(default_factory=list)


class OrderInsights(BaseModel):
    risk_score: int = Field(default=0, ge=0, le=100)
    delivery_confidence: float | None = None
    delivery_factors: list[str] = Field(default_factory=list)
    pricing_factors: dict[str, float] = Field(default_factory=dict)


class Order(BaseModel):
    """Root aggregate of a shipment and its hand-off history."""

    order_id: str
    seller_order_id: str
    customer_id: str
    status: OrderStatus = OrderStatus.PENDING
    order_type: OrderType = OrderType.NORMAL
    priority: Priority = Priority.MEDIUM
    delivery_type: DeliveryType = DeliveryType.STANDARD
    pickup_address: Address
    recipient_details: RecipientDetails
    package_details: PackageDetails
    payment_details: PaymentDetails
    shipping_details: ShippingDetails = Field(default_factory=ShippingDetails)
    route_optimization: RouteOptimization = Field(default_factory=RouteOptimization)
    workflow_tracking: WorkflowTracking = Field(default_factory=WorkflowTracking)
    tracking_history: list[TrackingEntry] = Field(default_factory=list)
    insights: OrderInsights = Field(default_factory=OrderInsights)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def status_history(self) -> list[StatusHistoryEntry]:
        return self.workflow_tracking.status_history

    @property
    def last_status_entry(self) -> StatusHistoryEntry | None:
        history = self.workflow_tracking.status_history
        return history[-1] if history else None

    def record_status(
        self,
        new_status: OrderStatus,
        *,
        location: str | None,
        remarks: str = "",
        handled_by: str | None = None,
        at: datetime | None = None,
    ) -> StatusHistoryEntry:
        """Set the status and append one entry to both history logs.

        The timestamp is clamped so the history stays non-decreasing.
        """
        timestamp = at or utcnow()
        last = self.last_status_entry
        if last is not None and timestamp < last.timestamp:
            timestamp = last.timestamp
        actor = handled_by or "SYSTEM"

        entry = StatusHistoryEntry(
            status=new_status,
            timestamp=timestamp,
            location=location,
            handled_by=actor,
            remarks=remarks,
        )
        self.workflow_tracking.status_history.append(entry)
        self.tracking_history.append(
            TrackingEntry(
                timestamp=timestamp,
                status=new_status.value,
                location=location,
                remarks=remarks,
                updated_by=actor,
            )
        )
        self.status = new_status
        self.updated_at = timestamp
        return entry

    def to_estimation_request(self) -> EstimationRequest:
        pkg = self.package_details
        drop = self.recipient_details.address
        return EstimationRequest(
            pickup_city=self.pickup_address.city,
            pickup_state=self.pickup_address.state,
            pickup_pincode=self.pickup_address.pincode or "000000",
            drop_city=drop.city,
            drop_state=drop.state,
            drop_pincode=drop.pincode or "000000",
            dead_weight_kg=pkg.dead_weight_kg,
            volumetric_weight_kg=pkg.volumetric_weight_kg,
            dimensions=pkg.dimensions_cm,
            declared_value=self.payment_details.total_value,
            payment_method=self.payment_details.method,
            cod_amount=self.payment_details.cod_amount,
            order_type=self.order_type,
            priority=self.priority,
            delivery_type=self.delivery_type,
            item_names=[f"{item.name} ({item.quantity})" for item in pkg.items],
        )

    def summary(self) -> dict[str, Any]:
        """Compact view used in dashboards and event payloads."""
        return {
            "order_id": self.order_id,
            "seller_order_id": self.seller_order_id,
            "customer_id": self.customer_id,
            "status": self.status.value,
            "destination": self.recipient_details.address.label(),
        }
