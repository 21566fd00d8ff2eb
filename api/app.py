"""
HTTP boundary for the logistics order workflow.

Routes translate requests into service calls and nothing else; ``LogisticsError``
subclasses become JSON errors with their own status code.
Run with: uvicorn api.app:app --reload
"""

import logging
import uuid
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Header, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from models.api import (
    AssignmentResult,
    AssignOrdersRequest,
    BulkPricingRequest,
    BulkStatusRequest,
    BulkUpdateResult,
    CreateOrderResult,
    CustomerCreateRequest,
    NetworkInitRequest,
    OrderCreateRequest,
    PaymentConfirmRequest,
    PaymentIntentRequest,
    PricingQuoteRequest,
    StatusUpdateRequest,
    WorkflowSnapshot,
)
from models.customer import Customer
from models.enums import OrderStatus
from models.order import Order
from models.pricing import EstimationRequest
from services.exceptions import LogisticsError
from services.tracking import get_agent_orders, get_hub_dashboard, get_order_tracking
from utils.logger import get_logger

from .container import LogisticsContainer, build_container

logger = logging.getLogger(__name__)


def create_app(container: LogisticsContainer | None = None) -> FastAPI:
    """Application factory; tests pass their own container."""
    services = container or build_container()

    app = FastAPI(
        title="Logistics Order Workflow API",
        description="Order creation, status workflow, pricing and delivery network management",
        version="1.0.0",
    )
    app.state.container = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LogisticsError)
    async def logistics_error_handler(request: Request, exc: LogisticsError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({exc.error_code}): {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "events_published": services.event_bus.published_count}

    # --- Customers ---

    @app.post("/customers", status_code=status.HTTP_201_CREATED)
    async def create_customer(request: CustomerCreateRequest) -> Customer:
        customer = Customer(
            customer_id=request.customer_id or f"cust_{uuid.uuid4().hex[:12]}",
            name=request.name,
            email=request.email,
            phone=request.phone,
        )
        return await services.store.add_customer(customer)

    @app.get("/customers/{customer_id}/analytics")
    async def customer_analytics(customer_id: str) -> dict[str, Any]:
        return await services.analytics.customer_analytics(customer_id)

    # --- Orders ---

    @app.post("/orders", status_code=status.HTTP_201_CREATED, response_model=CreateOrderResult)
    async def create_order(request: OrderCreateRequest, x_customer_id: str = Header(...)) -> CreateOrderResult:
        return await services.workflow.create_order(x_customer_id, request)

    @app.post("/orders/bulk-status", response_model=BulkUpdateResult)
    async def bulk_update_status(request: BulkStatusRequest) -> BulkUpdateResult:
        return await services.workflow.bulk_advance_status(
            request.order_ids, request.status, request.location, request.remarks, request.actor_id
        )

    @app.get("/orders/{order_id}", response_model=Order)
    async def get_order(order_id: str) -> Order:
        return await services.workflow.get_order(order_id)

    @app.post("/orders/{order_id}/status", response_model=Order)
    async def update_status(order_id: str, request: StatusUpdateRequest) -> Order:
        return await services.workflow.advance_status(
            order_id, request.status, request.location, request.remarks, request.actor_id
        )

    @app.get("/orders/{order_id}/workflow", response_model=WorkflowSnapshot)
    async def workflow_status(order_id: str) -> WorkflowSnapshot:
        return await services.workflow.get_workflow_status(order_id)

    @app.get("/orders/{order_id}/tracking")
    async def order_tracking(order_id: str) -> dict[str, Any]:
        return await get_order_tracking(services.store, order_id)

    # --- Payments ---

    @app.post("/orders/{order_id}/payments/intent")
    async def create_payment_intent(order_id: str, request: PaymentIntentRequest) -> dict[str, Any]:
        intent = await services.payments.create_payment_intent(
            order_id, amount=request.amount, currency=request.currency
        )
        return {"payment_intent_id": intent.payment_intent_id, "client_secret": intent.client_secret}

    @app.post("/orders/{order_id}/payments/confirm", response_model=Order)
    async def confirm_payment(order_id: str, request: PaymentConfirmRequest) -> Order:
        return await services.payments.confirm_payment(order_id, request.payment_intent_id)

    @app.get("/payments/{payment_intent_id}")
    async def payment_status(payment_intent_id: str) -> dict[str, Any]:
        return await services.payments.get_payment_status(payment_intent_id)

    # --- Pricing ---

    @app.post("/pricing/estimate")
    async def pricing_estimate(request: EstimationRequest) -> dict[str, Any]:
        return await services.quotes.get_pricing_estimate(request)

    @app.post("/pricing/compare")
    async def pricing_compare(request: EstimationRequest) -> dict[str, Any]:
        return await services.quotes.compare_pricing_options(request)

    @app.post("/pricing/quote")
    async def pricing_quote(request: PricingQuoteRequest) -> dict[str, Any]:
        return services.quotes.quote_items(request)

    @app.post("/pricing/bulk")
    async def pricing_bulk(request: BulkPricingRequest) -> dict[str, Any]:
        return await services.quotes.bulk_pricing_estimate(request.orders)

    @app.get("/pricing/zonal")
    async def pricing_zonal(from_pincode: str, to_pincode: str) -> dict[str, Any]:
        return services.quotes.zonal_pricing(from_pincode, to_pincode)

    # --- Delivery network ---

    @app.post("/network/initialize", status_code=status.HTTP_201_CREATED)
    async def initialize_network(request: NetworkInitRequest) -> dict[str, Any]:
        return await services.resolver.initialize_delivery_network(request.state, request.cities)

    @app.post("/agents/{agent_id}/orders", response_model=AssignmentResult)
    async def assign_to_agent(agent_id: str, request: AssignOrdersRequest) -> AssignmentResult:
        return await services.resolver.assign_orders_to_agent(agent_id, request.order_ids)

    @app.get("/agents/{agent_id}/orders", response_model=list[Order])
    async def agent_orders(agent_id: str, role: str = "all", status: OrderStatus | None = None) -> list[Order]:
        return await get_agent_orders(services.store, agent_id, role=role, status=status)

    @app.post("/vehicles/{vehicle_id}/orders", response_model=AssignmentResult)
    async def assign_to_vehicle(vehicle_id: str, request: AssignOrdersRequest) -> AssignmentResult:
        return await services.resolver.assign_orders_to_vehicle(vehicle_id, request.order_ids)

    @app.get("/hubs/{hub_id}/dashboard")
    async def hub_dashboard(hub_id: str) -> dict[str, Any]:
        return await get_hub_dashboard(services.store, hub_id)

    @app.get("/hubs/{hub_id}/routes")
    async def hub_routes(hub_id: str) -> list[dict[str, Any]]:
        return await services.resolver.optimize_delivery_routes(hub_id)

    @app.get("/analytics/deliveries")
    async def delivery_analytics(
        hub_id: str | None = None,
        agent_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> dict[str, Any]:
        return await services.analytics.delivery_analytics(hub_id, agent_id, start_date, end_date)

    return app


def _default_app() -> FastAPI:
    get_logger()
    return create_app()


app = _default_app()
