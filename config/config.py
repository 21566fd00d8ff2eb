"""
Configuration classes for the logistics order workflow service.
Values are passed to the estimators and the workflow engine at construction; nothing reads
them from module globals.
"""

import os
from dataclasses import dataclass, field

PLACEHOLDER_API_KEYS = {"", "your_openai_api_key_here", "your-api-key", "sk-..."}


@dataclass
class EstimatorConfig:
    api_key: str | None = None
    model: str = "gpt-4o-mini"
    timeout_seconds: float = 10.0
    retry_attempts: int = 1
    retry_backoff: float = 0.5
    temperature: float = 0.2
    enabled: bool = True

    @property
    def remote_available(self) -> bool:
        return self.enabled and bool(self.api_key) and self.api_key not in PLACEHOLDER_API_KEYS


@dataclass
class PricingRates:
    base_price_per_item: float = 50.0
    weight_rate_per_kg: float = 15.0
    volume_rate_per_litre: float = 5.0
    value_rate: float = 0.001
    distance_rate_per_km: float = 2.0
    min_distance_charge: float = 50.0
    tax_rate: float = 0.18
    cod_rate: float = 0.02
    min_cod_charge: float = 20.0
    priority_multipliers: dict[str, float] = field(
        default_factory=lambda: {"HIGH": 1.5, "CRITICAL": 2.0}
    )
    delivery_type_multipliers: dict[str, float] = field(
        default_factory=lambda: {"EXPRESS": 1.5, "SCHEDULED": 1.2}
    )
    order_type_charges: dict[str, float] = field(
        default_factory=lambda: {"HANDLE_WITH_CARE": 100.0, "BY_AIR": 200.0}
    )
    base_delivery_hours: int = 24
    express_delivery_hours: int = 12
    bulk_discount_threshold: float = 10000.0
    bulk_discount_rate: float = 0.05


@dataclass
class FallbackTimeEstimate:
    estimated_days: int = 4
    min_days: int = 2
    max_days: int = 6
    confidence: float = 75.0
    factors: list[str] = field(default_factory=lambda: ["Interstate delivery", "Standard processing"])
    risks: list[str] = field(default_factory=lambda: ["Weather conditions", "Festival delays"])


@dataclass
class WorkflowConfig:
    seller_id_retry_limit: int = 5
    default_service_area: str = "000000"
    agents_per_hub: int = 4
    vehicles_per_network: int = 3
    default_agent_max_orders: int = 10
    default_vehicle_max_orders: int = 200


def load_estimator_config() -> EstimatorConfig:
    """Build the estimator configuration from the environment (.env already loaded by utils)."""
    return EstimatorConfig(
        api_key=os.getenv("OPENAI_API_KEY"),
        model=os.getenv("LOGISTICS_AI_MODEL", "gpt-4o-mini"),
        timeout_seconds=float(os.getenv("LOGISTICS_AI_TIMEOUT_SECONDS", "10")),
        retry_attempts=int(os.getenv("LOGISTICS_AI_RETRY_ATTEMPTS", "1")),
    )


# Example usage:
# estimator_config = load_estimator_config()
# engine = OrderWorkflowEngine(store, quote_service=QuoteService(build_estimator(estimator_config)))
