"""
Pricing and delivery-time estimate models.

Input models fill every optional field with its nominal default once, at the
boundary, so the estimators compute over fully populated values.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .enums import DeliveryType, EstimateSource, OrderType, PaymentMethod, Priority

DEFAULT_ITEM_WEIGHT_KG = 1.0
DEFAULT_ITEM_SIDE_CM = 10.0


class Dimensions(BaseModel):
    """Package dimensions in centimetres."""

    length: float = Field(default=DEFAULT_ITEM_SIDE_CM, gt=0)
    width: float = Field(default=DEFAULT_ITEM_SIDE_CM, gt=0)
    height: float = Field(default=DEFAULT_ITEM_SIDE_CM, gt=0)

    @field_validator("length", "width", "height", mode="before")
    @classmethod
    def _default_missing_side(cls, value: Any) -> Any:
        return DEFAULT_ITEM_SIDE_CM if value is None else value

    @property
    def volume_cm3(self) -> float:
        return self.length * self.width * self.height


class PricingItem(BaseModel):
    """One priced line. Missing weight, dimensions or value take nominal defaults."""

    name: str = "Package"
    weight: float = Field(default=DEFAULT_ITEM_WEIGHT_KG, ge=0)  # kg
    dimensions: Dimensions = Field(default_factory=Dimensions)
    value: float = Field(default=0.0, ge=0)
    quantity: int = Field(default=1, ge=1)

    @field_validator("weight", mode="before")
    @classmethod
    def _default_weight(cls, value: Any) -> Any:
        return DEFAULT_ITEM_WEIGHT_KG if value is None else value

    @field_validator("value", mode="before")
    @classmethod
    def _default_value(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator("dimensions", mode="before")
    @classmethod
    def _default_dimensions(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("quantity", mode="before")
    @classmethod
    def _default_quantity(cls, value: Any) -> Any:
        return 1 if value is None else value


class PricingRequest(BaseModel):
    """Inputs of the pure pricing pipeline."""

    items: list[PricingItem]
    pickup_pincode: str = ""
    drop_pincode: str = ""
    delivery_type: DeliveryType = DeliveryType.STANDARD
    order_type: OrderType = OrderType.NORMAL
    priority: Priority = Priority.MEDIUM


class DeliveryWindow(BaseModel):
    estimated_hours: int
    estimated_delivery_date: datetime


class PriceBreakdown(BaseModel):
    """Cost breakdown of a shipment quote (INR)."""

    base_price: float = Field(ge=0)
    weight_charge: float = Field(ge=0)
    volume_charge: float = Field(ge=0)
    value_charge: float = Field(ge=0)
    distance_charge: float = Field(ge=0)
    order_type_charge: float = Field(default=0.0, ge=0)
    cod_charge: float = Field(default=0.0, ge=0)
    priority_multiplier: float = Field(default=1.0, gt=0)
    delivery_type_multiplier: float = Field(default=1.0, gt=0)
    subtotal: float = Field(gt=0)
    tax: float = Field(ge=0)
    total: float = Field(gt=0)
    distance_km: float = Field(default=0.0, ge=0)
    item_count: int = Field(default=1, ge=1)
    estimated_delivery: DeliveryWindow | None = None
    recommendations: list[str] = Field(default_factory=list)
    source: EstimateSource = EstimateSource.DETERMINISTIC


class TimeEstimate(BaseModel):
    """Delivery-time estimate; always positive days and a 0-100 confidence."""

    estimated_days: int = Field(gt=0)
    min_days: int = Field(ge=0)
    max_days: int = Field(ge=0)
    estimated_delivery_date: datetime
    confidence: float = Field(ge=0, le=100)
    factors: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    source: EstimateSource = EstimateSource.DETERMINISTIC


class EstimationRequest(BaseModel):
    """Shipment attributes handed to an Estimator."""

    pickup_city: str = "Unknown City"
    pickup_state: str = "Unknown State"
    pickup_pincode: str = "000000"
    drop_city: str = "Unknown City"
    drop_state: str = "Unknown State"
    drop_pincode: str = "000000"
    dead_weight_kg: float = DEFAULT_ITEM_WEIGHT_KG
    volumetric_weight_kg: float | None = None
    dimensions: Dimensions = Field(default_factory=Dimensions)
    declared_value: float = 0.0
    payment_method: PaymentMethod = PaymentMethod.PREPAID
    cod_amount: float | None = None
    order_type: OrderType = OrderType.NORMAL
    priority: Priority = Priority.MEDIUM
    delivery_type: DeliveryType = DeliveryType.STANDARD
    item_names: list[str] = Field(default_factory=list)

    @property
    def chargeable_weight_kg(self) -> float:
        return max(self.dead_weight_kg, self.volumetric_weight_kg or 0.0)
