"""
Command and result models exchanged at the service boundary (HTTP or in-process).
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import DeliveryType, OrderStatus, OrderType, Priority
from .order import (
    Address,
    CurrentLocation,
    Order,
    PackageDetails,
    PaymentDetails,
    RecipientDetails,
    StatusHistoryEntry,
    TransitStop,
)
from .pricing import PriceBreakdown, PricingItem, TimeEstimate


class OrderCreateRequest(BaseModel):
    """Well-formed order payload handed to the workflow engine."""

    seller_order_id: str | None = None
    order_type: OrderType = OrderType.NORMAL
    priority: Priority = Priority.MEDIUM
    delivery_type: DeliveryType = DeliveryType.STANDARD
    pickup_address: Address
    recipient_details: RecipientDetails
    package_details: PackageDetails = Field(default_factory=PackageDetails)
    payment_details: PaymentDetails


class RoutePlan(BaseModel):
    origin_hub_id: str
    destination_hub_id: str
    is_interstate: bool
    distance_km: float
    transit_route: list[TransitStop] = Field(default_factory=list)
    vehicle_id: str | None = None
    delivery_agent_id: str | None = None
    unassigned_reason: str | None = None


class CreateOrderResult(BaseModel):
    order: Order
    pricing: PriceBreakdown
    time_estimation: TimeEstimate
    route_plan: RoutePlan


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    location: str | None = None
    remarks: str = ""
    actor_id: str | None = None


class BulkStatusRequest(BaseModel):
    order_ids: list[str] = Field(min_length=1)
    status: OrderStatus
    location: str | None = None
    remarks: str = ""
    actor_id: str | None = None


class BulkItemResult(BaseModel):
    index: int
    order_id: str
    success: bool
    status: OrderStatus | None = None
    error_code: str | None = None
    reason: str | None = None


class BulkUpdateResult(BaseModel):
    """Partial-failure result of a bulk transition; never raised."""

    total: int
    successful: int
    failed: int
    results: list[BulkItemResult]

    @property
    def failures(self) -> dict[str, str]:
        return {r.order_id: r.reason or "" for r in self.results if not r.success}


class WorkflowSnapshot(BaseModel):
    order_id: str
    seller_order_id: str
    status: OrderStatus
    pickup_agent_id: str | None = None
    delivery_agent_id: str | None = None
    origin_hub_id: str | None = None
    destination_hub_id: str | None = None
    current_location: CurrentLocation
    status_history: list[StatusHistoryEntry]
    updated_at: datetime


class AssignOrdersRequest(BaseModel):
    order_ids: list[str] = Field(min_length=1)


class AssignmentResult(BaseModel):
    resource: str  # "agent" | "vehicle"
    resource_id: str
    assigned_order_ids: list[str]
    current_load: int
    capacity: int


class PricingQuoteRequest(BaseModel):
    items: list[PricingItem] = Field(min_length=1)
    pickup_pincode: str
    drop_pincode: str
    delivery_type: DeliveryType = DeliveryType.STANDARD
    order_type: OrderType = OrderType.NORMAL
    priority: Priority = Priority.MEDIUM


class BulkPricingRequest(BaseModel):
    orders: list[PricingQuoteRequest] = Field(min_length=1)


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class CustomerCreateRequest(BaseModel):
    customer_id: str | None = None
    name: str = Field(min_length=1)
    email: str = ""
    phone: str = ""


class NetworkInitRequest(BaseModel):
    state: str = Field(min_length=1)
    cities: list[str] = Field(min_length=1)


class PaymentIntentRequest(BaseModel):
    amount: float | None = Field(default=None, ge=0)
    currency: str = "inr"


class PaymentConfirmRequest(BaseModel):
    payment_intent_id: str
