"""
Pricing and delivery-time estimators.

``RemoteEstimator`` asks an OpenAI chat model and raises ``ProviderUnavailableError``
on any failure. ``DeterministicEstimator`` never fails. ``FallbackEstimator`` composes
the two so callers always receive a result.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol, runtime_checkable

from openai import AsyncOpenAI
from pydantic import ValidationError

from config.config import EstimatorConfig, FallbackTimeEstimate, PricingRates
from models.enums import EstimateSource, PaymentMethod
from models.pricing import EstimationRequest, PriceBreakdown, PricingItem, TimeEstimate
from utils.openai_utils import extract_json_object, safe_chat_completion

from .exceptions import ProviderUnavailableError
from .pricing import DEFAULT_RATES, cod_charge, estimate_delivery_window, estimate_price
from .prompts import ESTIMATOR_SYSTEM_PROMPT, build_pricing_prompt, build_time_estimation_prompt

logger = logging.getLogger(__name__)


@runtime_checkable
class Estimator(Protocol):
    """Produces a price breakdown and a delivery-time estimate for a shipment."""

    async def estimate_pricing(self, request: EstimationRequest) -> PriceBreakdown: ...

    async def estimate_delivery_time(self, request: EstimationRequest) -> TimeEstimate: ...


class DeterministicEstimator:
    """Rule-based estimator; pure arithmetic over the request."""

    def __init__(
        self,
        rates: PricingRates = DEFAULT_RATES,
        time_defaults: FallbackTimeEstimate | None = None,
    ):
        self.rates = rates
        self.time_defaults = time_defaults or FallbackTimeEstimate()

    def price(self, request: EstimationRequest, now: datetime | None = None) -> PriceBreakdown:
        item = PricingItem(
            name="Package",
            weight=request.chargeable_weight_kg,
            dimensions=request.dimensions,
            value=request.declared_value,
        )
        breakdown = estimate_price(
            [item],
            request.pickup_pincode,
            request.drop_pincode,
            delivery_type=request.delivery_type,
            order_type=request.order_type,
            priority=request.priority,
            rates=self.rates,
        )
        recommendations: list[str] = []
        update: dict[str, Any] = {
            "estimated_delivery": estimate_delivery_window(
                request.delivery_type, request.priority, now=now, rates=self.rates
            ),
        }
        if request.payment_method == PaymentMethod.COD:
            charge = cod_charge(request.cod_amount or request.declared_value, self.rates)
            subtotal = breakdown.subtotal + charge
            tax = subtotal * self.rates.tax_rate
            update.update(
                cod_charge=charge,
                subtotal=round(subtotal, 2),
                tax=round(tax, 2),
                total=round(subtotal + tax, 2),
            )
            recommendations.append("Consider prepaid to save COD charges")
        update["recommendations"] = recommendations
        return breakdown.model_copy(update=update)

    def delivery_time(self, request: EstimationRequest, now: datetime | None = None) -> TimeEstimate:
        defaults = self.time_defaults
        start = now or datetime.now(timezone.utc)
        return TimeEstimate(
            estimated_days=defaults.estimated_days,
            min_days=defaults.min_days,
            max_days=defaults.max_days,
            estimated_delivery_date=start + timedelta(days=defaults.estimated_days),
            confidence=defaults.confidence,
            factors=list(defaults.factors),
            risks=list(defaults.risks),
            source=EstimateSource.DETERMINISTIC,
        )

    async def estimate_pricing(self, request: EstimationRequest) -> PriceBreakdown:
        return self.price(request)

    async def estimate_delivery_time(self, request: EstimationRequest) -> TimeEstimate:
        return self.delivery_time(request)


class RemoteEstimator:
    """
    Estimator backed by an OpenAI chat model.

    Every call is bounded by ``config.timeout_seconds``. Network errors, timeouts,
    missing JSON and out-of-range values all surface as ``ProviderUnavailableError``.
    """

    def __init__(self, config: EstimatorConfig, client: AsyncOpenAI | None = None):
        self.config = config
        if client is not None:
            self.client = client
        elif config.remote_available:
            self.client = AsyncOpenAI(api_key=config.api_key)
            logger.info(f"Remote estimator using model {config.model}")
        else:
            self.client = None
            logger.warning("OpenAI API key missing or placeholder. Remote estimation disabled.")

    async def _ask(self, prompt: str) -> dict[str, Any]:
        if self.client is None:
            raise ProviderUnavailableError("Remote estimator is not configured")
        messages = [
            {"role": "system", "content": ESTIMATOR_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        try:
            completion = await asyncio.wait_for(
                safe_chat_completion(
                    self.client,
                    model=self.config.model,
                    messages=messages,
                    logger=logger,
                    retry_attempts=self.config.retry_attempts,
                    retry_backoff=self.config.retry_backoff,
                    temperature=self.config.temperature,
                ),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderUnavailableError(
                f"Estimator timed out after {self.config.timeout_seconds}s"
            ) from exc
        except Exception as exc:
            raise ProviderUnavailableError(f"Estimator call failed: {exc}") from exc

        try:
            return extract_json_object(completion)
        except ValueError as exc:
            raise ProviderUnavailableError(f"Unparseable estimator output: {exc}") from exc

    async def estimate_pricing(self, request: EstimationRequest) -> PriceBreakdown:
        data = await self._ask(build_pricing_prompt(request))
        try:
            return PriceBreakdown.model_validate({**data, "source": EstimateSource.REMOTE})
        except ValidationError as exc:
            raise ProviderUnavailableError(f"Invalid pricing payload: {exc.error_count()} errors") from exc

    async def estimate_delivery_time(self, request: EstimationRequest) -> TimeEstimate:
        data = await self._ask(build_time_estimation_prompt(request))
        try:
            days = int(data["estimated_days"])
            return TimeEstimate.model_validate(
                {
                    "min_days": days,
                    "max_days": days,
                    **data,
                    "estimated_days": days,
                    "estimated_delivery_date": datetime.now(timezone.utc) + timedelta(days=days),
                    "source": EstimateSource.REMOTE,
                }
            )
        except (KeyError, TypeError, ValueError) as exc:
            # pydantic's ValidationError is a ValueError
            raise ProviderUnavailableError(f"Invalid time estimate payload: {exc}") from exc


class FallbackEstimator:
    """Tries the remote estimator first and answers deterministically on any failure."""

    def __init__(self, remote: Estimator | None, fallback: DeterministicEstimator | None = None):
        self.remote = remote
        self.fallback = fallback or DeterministicEstimator()
        self.fallback_count = 0

    async def estimate_pricing(self, request: EstimationRequest) -> PriceBreakdown:
        if self.remote is not None:
            try:
                return await self.remote.estimate_pricing(request)
            except Exception as exc:  # noqa: BLE001
                self._record_fallback("pricing", exc)
        return await self.fallback.estimate_pricing(request)

    async def estimate_delivery_time(self, request: EstimationRequest) -> TimeEstimate:
        if self.remote is not None:
            try:
                return await self.remote.estimate_delivery_time(request)
            except Exception as exc:  # noqa: BLE001
                self._record_fallback("time estimation", exc)
        return await self.fallback.estimate_delivery_time(request)

    def _record_fallback(self, what: str, exc: Exception) -> None:
        self.fallback_count += 1
        logger.warning(f"Remote {what} unavailable, using deterministic fallback: {exc}")


def build_estimator(config: EstimatorConfig, rates: PricingRates = DEFAULT_RATES) -> FallbackEstimator:
    """Estimator stack for a configuration; remote is skipped when no usable key is set."""
    remote = RemoteEstimator(config) if config.remote_available else None
    return FallbackEstimator(remote, DeterministicEstimator(rates))
