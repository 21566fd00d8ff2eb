"""
Order insights: risk scoring, delivery priority, service recommendations and
tracking progress. Pure functions over an order and its estimates.
"""

from datetime import datetime, timezone
from typing import Any

from models.enums import OrderStatus, OrderType, PaymentMethod
from models.order import Order
from models.pricing import EstimationRequest, PriceBreakdown, TimeEstimate

from .transitions import PROGRESS_PERCENT

MAX_SCORE = 100
VOLUMETRIC_SAVINGS_PER_KG = 10


def calculate_risk_score(order: Order, time_estimate: TimeEstimate) -> int:
    """Additive delivery-risk heuristic capped at 100."""
    risk = 0
    if order.payment_details.total_value > 10000:
        risk += 20
    if order.payment_details.method == PaymentMethod.COD:
        risk += 15
    if order.package_details.dead_weight_kg > 10:
        risk += 10
    if order.package_details.fragile:
        risk += 25
    if time_estimate.estimated_days > 5:
        risk += 20
    if time_estimate.confidence < 70:
        risk += 10
    return min(risk, MAX_SCORE)


def calculate_delivery_priority(order: Order, now: datetime | None = None) -> int:
    """Dispatch priority in [0, 100]; higher goes out first."""
    score = 0
    value = order.payment_details.total_value
    if value > 10000:
        score += 30
    elif value > 5000:
        score += 20
    elif value > 1000:
        score += 10

    if order.order_type == OrderType.BY_AIR:
        score += 50
    elif order.order_type == OrderType.HANDLE_WITH_CARE:
        score += 30

    if order.payment_details.method == PaymentMethod.COD:
        score -= 10
    if order.package_details.fragile:
        score += 20
    if order.package_details.perishable:
        score += 40

    age_hours = ((now or datetime.now(timezone.utc)) - order.created_at).total_seconds() / 3600
    if age_hours > 48:
        score += 25
    elif age_hours > 24:
        score += 15
    elif age_hours > 12:
        score += 10

    return max(0, min(score, MAX_SCORE))


def service_recommendations(request: EstimationRequest, pricing: PriceBreakdown) -> list[dict[str, Any]]:
    recommendations: list[dict[str, Any]] = []
    if request.payment_method == PaymentMethod.COD:
        recommendations.append(
            {
                "type": "COST_SAVING",
                "message": f"Switch to prepaid and save INR {pricing.cod_charge:.2f} in COD charges",
                "savings": pricing.cod_charge,
            }
        )
    volumetric = request.volumetric_weight_kg or 0.0
    if request.dead_weight_kg < volumetric:
        recommendations.append(
            {
                "type": "PACKAGING",
                "message": "Consider smaller packaging to reduce volumetric weight charges",
                "potential_savings": round((volumetric - request.dead_weight_kg) * VOLUMETRIC_SAVINGS_PER_KG, 2),
            }
        )
    if request.order_type == OrderType.BY_AIR:
        recommendations.append(
            {
                "type": "SERVICE",
                "message": "Air delivery selected. Ensure pickup location has airport connectivity",
                "note": "May require ground transport to nearest airport",
            }
        )
    return recommendations


def delivery_progress(status: OrderStatus) -> int:
    return PROGRESS_PERCENT.get(status, 0)


def apply_insights(order: Order, pricing: PriceBreakdown, time_estimate: TimeEstimate) -> None:
    """Fill ``order.insights`` from the estimates."""
    insights = order.insights
    insights.risk_score = calculate_risk_score(order, time_estimate)
    insights.delivery_confidence = time_estimate.confidence
    insights.delivery_factors = list(time_estimate.factors)
    insights.pricing_factors = {
        "distance": pricing.distance_charge,
        "weight": pricing.weight_charge,
        "volume": order.package_details.volumetric_weight_kg or 0.0,
        "urgency": pricing.priority_multiplier,
        "special_handling": pricing.order_type_charge,
    }
