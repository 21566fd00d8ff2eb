"""Prompt builders for the remote pricing and delivery-time estimator.

The functions here only format the user-visible prompt text. The system message and
model parameters stay with ``RemoteEstimator`` so they can follow its configuration.
Every prompt asks for a single JSON object whose keys match the result models.
"""

from models.pricing import EstimationRequest

__all__ = [
    "ESTIMATOR_SYSTEM_PROMPT",
    "build_pricing_prompt",
    "build_time_estimation_prompt",
]

ESTIMATOR_SYSTEM_PROMPT = (
    "You are a logistics pricing and delivery planning expert for shipments within India. "
    "Answer with one JSON object only, no prose."
)


def _route_lines(request: EstimationRequest) -> str:
    return (
        f"- Pickup Location: {request.pickup_city}, {request.pickup_state} ({request.pickup_pincode})\n"
        f"        - Delivery Location: {request.drop_city}, {request.drop_state} ({request.drop_pincode})"
    )


def build_pricing_prompt(request: EstimationRequest) -> str:
    """Return the user prompt for a shipment price quote."""
    dims = request.dimensions
    volumetric = (
        f"{request.volumetric_weight_kg:.2f} kg" if request.volumetric_weight_kg else "Not calculated"
    )
    items = ", ".join(request.item_names) or "Not specified"
    return f"""
        Calculate the shipping cost for this order.
        ORDER DETAILS:
        {_route_lines(request)}
        - Package Weight: {request.dead_weight_kg} kg
        - Package Dimensions: {dims.length}x{dims.width}x{dims.height} cm
        - Volumetric Weight: {volumetric}
        - Order Type: {request.order_type.value}
        - Priority: {request.priority.value}
        - Delivery Type: {request.delivery_type.value}
        - Payment Method: {request.payment_method.value}
        - Total Value: INR {request.declared_value}
        - Items: {items}
        PRICING FACTORS:
        1. Distance between pickup and delivery locations
        2. Chargeable weight (higher of dead and volumetric weight)
        3. Order type surcharge (HANDLE_WITH_CARE and BY_AIR cost more)
        4. COD charges: 2% of the COD amount, minimum INR 20
        5. GST at 18% on the subtotal
        Respond with this exact JSON shape (numbers in INR):
        {{"base_price": number, "weight_charge": number, "volume_charge": number,
          "value_charge": number, "distance_charge": number, "order_type_charge": number,
          "cod_charge": number, "subtotal": number, "tax": number, "total": number,
          "distance_km": number, "recommendations": [string]}}
        """


def build_time_estimation_prompt(request: EstimationRequest) -> str:
    """Return the user prompt for a delivery-time estimate."""
    return f"""
        Estimate the delivery time for this shipment.
        {_route_lines(request)}
        - Order Type: {request.order_type.value}
        - Delivery Type: {request.delivery_type.value}
        - Package Weight: {request.dead_weight_kg} kg
        Consider distance, hub transfers, regional holidays and weather.
        Respond with this exact JSON shape:
        {{"estimated_days": integer >= 1, "min_days": integer, "max_days": integer,
          "confidence": number between 0 and 100, "factors": [string], "risks": [string]}}
        """
