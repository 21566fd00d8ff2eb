"""
Demonstration of the order workflow: a COD shipment from Mumbai to Delhi is
created, walked through every hand-off stage and delivered.

Runs fully offline unless OPENAI_API_KEY is set.
Run with: python -m demos.order_workflow_demo
"""

import asyncio
import logging

from api.container import build_container
from models.api import OrderCreateRequest
from models.customer import Customer
from models.enums import OrderStatus, PaymentMethod
from models.order import Address, PackageDetails, PackageItem, PaymentDetails, RecipientDetails
from models.pricing import Dimensions
from utils.logger import get_logger

logger = logging.getLogger(__name__)

JOURNEY = [
    (OrderStatus.ASSIGNED_PICKUP, "Mumbai, Maharashtra", "Pickup agent assigned"),
    (OrderStatus.PICKED_UP, "Andheri East, Mumbai", "Package collected from seller"),
    (OrderStatus.AT_ORIGIN_HUB, "Mumbai Hub", "Received at origin hub"),
    (OrderStatus.DISPATCHED_FROM_ORIGIN, "Mumbai Hub", "Loaded for linehaul"),
    (OrderStatus.IN_TRANSIT, "NH48", "On the way to Delhi"),
    (OrderStatus.AT_DESTINATION_HUB, "Delhi Hub", "Received at destination hub"),
    (OrderStatus.OUT_FOR_DELIVERY, "Connaught Place, Delhi", "Out for delivery"),
    (OrderStatus.DELIVERED, "Connaught Place, Delhi", "Delivered to recipient"),
]


def sample_order() -> OrderCreateRequest:
    return OrderCreateRequest(
        pickup_address=Address(address_line1="12 Link Road", city="Mumbai", pincode="400053"),
        recipient_details=RecipientDetails(
            name="Priya Sharma",
            phone="9876543210",
            email="priya@example.com",
            address=Address(address_line1="5 Janpath", city="Delhi", pincode="110001"),
        ),
        package_details=PackageDetails(
            items=[PackageItem(name="Laptop", quantity=1, price=25000)],
            dead_weight_kg=2.5,
            dimensions_cm=Dimensions(length=40, width=30, height=10),
            fragile=True,
        ),
        payment_details=PaymentDetails(method=PaymentMethod.COD, total_value=25000),
    )


async def run_workflow_demo():
    """Create an order and advance it to DELIVERED, logging each stage."""
    logger.info("--- Starting Order Workflow Demo ---")
    services = build_container()

    await services.resolver.initialize_delivery_network("Maharashtra", ["Mumbai"])
    await services.resolver.initialize_delivery_network("Delhi", ["Delhi"])
    await services.store.add_customer(Customer(customer_id="CUST-DEMO-1", name="Demo Seller"))

    result = await services.workflow.create_order("CUST-DEMO-1", sample_order())
    order = result.order
    logger.info(
        f"Created {order.seller_order_id} (AWB {order.shipping_details.awb}): "
        f"total INR {result.pricing.total:.2f}, ~{result.time_estimation.estimated_days} days, "
        f"risk score {order.insights.risk_score}"
    )
    logger.info(
        f"Route {result.route_plan.origin_hub_id} -> {result.route_plan.destination_hub_id}, "
        f"interstate={result.route_plan.is_interstate}, agent={result.route_plan.delivery_agent_id}"
    )

    for status, location, remarks in JOURNEY:
        order = await services.workflow.advance_status(order.order_id, status, location, remarks)
        logger.info(f"  {status.value:<24} @ {location}")

    snapshot = await services.workflow.get_workflow_status(order.order_id)
    order = await services.workflow.get_order(order.order_id)
    logger.info(
        f"Delivered at {order.shipping_details.delivered_at:%Y-%m-%d %H:%M} "
        f"with {len(snapshot.status_history)} history entries; payment {order.payment_details.payment_status.value}"
    )

    analytics = await services.analytics.delivery_analytics()
    logger.info(f"Delivery KPIs: {analytics['summary']}")
    logger.info("--- Order Workflow Demo Finished ---")


if __name__ == "__main__":
    get_logger()
    asyncio.run(run_workflow_demo())
