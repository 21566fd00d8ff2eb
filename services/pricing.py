"""
Deterministic shipment pricing.

``estimate_price`` is a pure function: identical inputs always give an identical
breakdown, and nothing outside its arguments is read or written. Item fields that
were left out have already been filled with nominal defaults by ``PricingItem``.
"""

import logging
from datetime import datetime, timedelta, timezone

from config.config import PricingRates
from models.enums import DeliveryType, OrderType, Priority
from models.pricing import DeliveryWindow, PriceBreakdown, PricingItem, PricingRequest

from .exceptions import OrderValidationError

logger = logging.getLogger(__name__)

DEFAULT_RATES = PricingRates()


def pincode_distance_km(pickup_pincode: str, drop_pincode: str) -> float:
    """Coarse distance proxy: numeric pincode difference / 1000. Non-numeric codes give 0."""
    try:
        return abs(int(pickup_pincode) - int(drop_pincode)) / 1000
    except (TypeError, ValueError):
        return 0.0


def estimate_delivery_window(
    delivery_type: DeliveryType,
    priority: Priority,
    now: datetime | None = None,
    rates: PricingRates = DEFAULT_RATES,
) -> DeliveryWindow:
    """Processing window in hours plus the absolute delivery timestamp."""
    hours = rates.express_delivery_hours if delivery_type == DeliveryType.EXPRESS else rates.base_delivery_hours
    if priority == Priority.CRITICAL:
        hours = hours // 2
    start = now or datetime.now(timezone.utc)
    return DeliveryWindow(estimated_hours=hours, estimated_delivery_date=start + timedelta(hours=hours))


def estimate_price(
    items: list[PricingItem] | None,
    pickup_pincode: str,
    drop_pincode: str,
    delivery_type: DeliveryType = DeliveryType.STANDARD,
    order_type: OrderType = OrderType.NORMAL,
    priority: Priority = Priority.MEDIUM,
    rates: PricingRates = DEFAULT_RATES,
) -> PriceBreakdown:
    """
    Price a shipment.

    Pipeline: per-item base + weight + volume + declared value + distance (floored),
    scaled by the priority and delivery-type multipliers, plus a flat order-type
    charge, then GST.

    Raises:
        OrderValidationError: if the item list is missing or empty.
    """
    if not items:
        raise OrderValidationError("At least one item is required for pricing")

    item_count = sum(item.quantity for item in items)
    base_price = rates.base_price_per_item * item_count
    weight_charge = sum(item.weight * item.quantity * rates.weight_rate_per_kg for item in items)
    volume_charge = sum(
        item.dimensions.volume_cm3 / 1000 * rates.volume_rate_per_litre * item.quantity for item in items
    )
    value_charge = sum(item.value * rates.value_rate for item in items)

    distance_km = pincode_distance_km(pickup_pincode, drop_pincode)
    distance_charge = max(distance_km * rates.distance_rate_per_km, rates.min_distance_charge)

    priority_multiplier = rates.priority_multipliers.get(priority.value, 1.0)
    delivery_type_multiplier = rates.delivery_type_multipliers.get(delivery_type.value, 1.0)
    order_type_charge = rates.order_type_charges.get(order_type.value, 0.0)

    charges = base_price + weight_charge + volume_charge + value_charge + distance_charge
    subtotal = charges * priority_multiplier * delivery_type_multiplier + order_type_charge
    tax = subtotal * rates.tax_rate
    total = subtotal + tax

    return PriceBreakdown(
        base_price=round(base_price, 2),
        weight_charge=round(weight_charge, 2),
        volume_charge=round(volume_charge, 2),
        value_charge=round(value_charge, 2),
        distance_charge=round(distance_charge, 2),
        order_type_charge=order_type_charge,
        priority_multiplier=priority_multiplier,
        delivery_type_multiplier=delivery_type_multiplier,
        subtotal=round(subtotal, 2),
        tax=round(tax, 2),
        total=round(total, 2),
        distance_km=distance_km,
        item_count=item_count,
    )


def estimate_request(request: PricingRequest, rates: PricingRates = DEFAULT_RATES) -> PriceBreakdown:
    return estimate_price(
        request.items,
        request.pickup_pincode,
        request.drop_pincode,
        delivery_type=request.delivery_type,
        order_type=request.order_type,
        priority=request.priority,
        rates=rates,
    )


def cod_charge(cod_amount: float | None, rates: PricingRates = DEFAULT_RATES) -> float:
    """2% of the collected amount, never below the minimum."""
    return round(max((cod_amount or 0.0) * rates.cod_rate, rates.min_cod_charge), 2)


def apply_bulk_discount(total: float, rates: PricingRates = DEFAULT_RATES) -> tuple[float, float]:
    """Return (discount, final_total) for a bulk quote."""
    discount = total * rates.bulk_discount_rate if total > rates.bulk_discount_threshold else 0.0
    return round(discount, 2), round(total - discount, 2)
