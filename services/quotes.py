"""
Quote service: price and delivery-time quotes for orders and ad-hoc requests.

All estimates flow through an ``Estimator`` (normally a ``FallbackEstimator``), so a
quote is produced even when the AI provider is down.
"""

import asyncio
import logging
from typing import Any

from config.config import PricingRates
from models.api import PricingQuoteRequest
from models.enums import OrderType
from models.order import Order
from models.pricing import EstimationRequest, PriceBreakdown, TimeEstimate
from utils.logistics import get_zone_type

from .estimation import Estimator
from .exceptions import LogisticsError, OrderValidationError
from .insights import service_recommendations
from .pricing import DEFAULT_RATES, apply_bulk_discount, estimate_delivery_window, estimate_price

logger = logging.getLogger(__name__)

# (base rate INR, multiplier) keyed by the unordered zone pair
ZONAL_RATES: dict[frozenset[str], tuple[float, float]] = {
    frozenset({"metro"}): (45, 1.0),
    frozenset({"metro", "tier1"}): (55, 1.1),
    frozenset({"metro", "tier2"}): (65, 1.2),
    frozenset({"metro", "remote"}): (85, 1.4),
    frozenset({"tier1"}): (50, 1.0),
    frozenset({"tier1", "tier2"}): (60, 1.1),
    frozenset({"tier1", "remote"}): (75, 1.3),
    frozenset({"tier2"}): (55, 1.0),
    frozenset({"tier2", "remote"}): (70, 1.2),
    frozenset({"remote"}): (65, 1.1),
}


class QuoteService:
    def __init__(self, estimator: Estimator, rates: PricingRates = DEFAULT_RATES):
        self.estimator = estimator
        self.rates = rates

    async def estimate(self, request: EstimationRequest) -> tuple[PriceBreakdown, TimeEstimate]:
        """Pricing and time estimate for one shipment, requested concurrently."""
        pricing, time_estimate = await asyncio.gather(
            self.estimator.estimate_pricing(request),
            self.estimator.estimate_delivery_time(request),
        )
        return pricing, time_estimate

    async def estimate_for_order(self, order: Order) -> tuple[PriceBreakdown, TimeEstimate]:
        return await self.estimate(order.to_estimation_request())

    async def get_pricing_estimate(self, request: EstimationRequest) -> dict[str, Any]:
        pricing, time_estimate = await self.estimate(request)
        return {
            "pricing": pricing,
            "delivery_estimation": time_estimate,
            "service_recommendations": service_recommendations(request, pricing),
        }

    async def compare_pricing_options(self, request: EstimationRequest) -> dict[str, Any]:
        """Quote the same shipment under every order type, cheapest first."""
        variants = [request.model_copy(update={"order_type": order_type}) for order_type in OrderType]
        quotes = await asyncio.gather(*(self.get_pricing_estimate(v) for v in variants))
        options = [
            {
                "order_type": variant.order_type,
                "total": quote["pricing"].total,
                "estimated_days": quote["delivery_estimation"].estimated_days,
                "pricing": quote["pricing"],
                "recommendations": quote["service_recommendations"],
            }
            for variant, quote in zip(variants, quotes)
        ]
        options.sort(key=lambda option: option["total"])
        premium = next((o for o in options if o["order_type"] == OrderType.BY_AIR), options[-1])
        return {"options": options, "recommendation": options[0], "premium_option": premium}

    def quote_items(self, request: PricingQuoteRequest) -> dict[str, Any]:
        """Item-level deterministic quote with the delivery window."""
        breakdown = estimate_price(
            request.items,
            request.pickup_pincode,
            request.drop_pincode,
            delivery_type=request.delivery_type,
            order_type=request.order_type,
            priority=request.priority,
            rates=self.rates,
        )
        window = estimate_delivery_window(request.delivery_type, request.priority, rates=self.rates)
        return {
            "pricing": breakdown.model_copy(update={"estimated_delivery": window}),
            "total_weight_kg": sum(item.weight * item.quantity for item in request.items),
            "total_value": sum(item.value for item in request.items),
        }

    async def bulk_pricing_estimate(self, requests: list[PricingQuoteRequest]) -> dict[str, Any]:
        """
        Quote a batch independently. One bad entry never sinks the batch; every
        result carries its input index.
        """
        if not requests:
            raise OrderValidationError("At least one order is required for a bulk estimate")

        async def quote_one(index: int, request: PricingQuoteRequest) -> dict[str, Any]:
            try:
                return {"index": index, "success": True, **self.quote_items(request)}
            except LogisticsError as exc:
                logger.info(f"Bulk pricing entry {index} rejected: {exc}")
                return {"index": index, "success": False, "error": exc.message}

        results = await asyncio.gather(*(quote_one(i, r) for i, r in enumerate(requests)))
        successful = [r for r in results if r["success"]]
        total_cost = round(sum(r["pricing"].total for r in successful), 2)
        discount, final_cost = apply_bulk_discount(total_cost, self.rates)
        return {
            "results": list(results),
            "summary": {
                "total_orders": len(requests),
                "successful_estimates": len(successful),
                "failed_estimates": len(results) - len(successful),
                "total_cost": total_cost,
                "bulk_discount": discount,
                "final_cost": final_cost,
            },
        }

    def zonal_pricing(self, from_pincode: str, to_pincode: str) -> dict[str, Any]:
        if not from_pincode or not to_pincode:
            raise OrderValidationError("From and to pincodes are required")
        from_zone = get_zone_type(from_pincode)
        to_zone = get_zone_type(to_pincode)
        base, multiplier = ZONAL_RATES.get(frozenset({from_zone, to_zone}), ZONAL_RATES[frozenset({"remote"})])
        if from_zone == "metro" and to_zone == "metro":
            delivery_time = "1-2 days"
        elif "remote" not in (from_zone, to_zone):
            delivery_time = "2-4 days"
        else:
            delivery_time = "4-7 days"
        return {
            "route": {
                "from": {"pincode": from_pincode, "zone": from_zone},
                "to": {"pincode": to_pincode, "zone": to_zone},
            },
            "pricing": {"base_rate": base, "multiplier": multiplier, "estimated_cost": round(base * multiplier, 2)},
            "service_features": {
                "delivery_time": delivery_time,
                "tracking_available": True,
                "cod_available": True,
                "insurance_available": "remote" not in (from_zone, to_zone),
            },
        }
