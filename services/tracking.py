"""
Read-only tracking views: customer tracking page, hub dashboard and agent worklists.
"""

import logging
from typing import Any

from connectors.store import LogisticsStore
from models.enums import OrderStatus
from models.order import Order

from .exceptions import AgentNotFoundError, HubNotFoundError, OrderNotFoundError, OrderValidationError
from .insights import calculate_delivery_priority, delivery_progress

logger = logging.getLogger(__name__)

AGENT_ORDER_LIMIT = 50

ORIGIN_HUB_STATUSES = (OrderStatus.AT_ORIGIN_HUB, OrderStatus.DISPATCHED_FROM_ORIGIN)
DESTINATION_HUB_STATUSES = (OrderStatus.AT_DESTINATION_HUB, OrderStatus.OUT_FOR_DELIVERY)
PICKUP_STATUSES = (OrderStatus.ASSIGNED_PICKUP, OrderStatus.PICKED_UP)
DELIVERY_STATUSES = (OrderStatus.OUT_FOR_DELIVERY,)


async def get_order_tracking(store: LogisticsStore, order_id: str) -> dict[str, Any]:
    """Customer-facing tracking view, newest history entry first."""
    order = await store.get_order(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)

    next_stop = next(
        (stop for stop in order.route_optimization.transit_route if stop.actual_arrival is None),
        None,
    )
    return {
        "order_id": order.order_id,
        "seller_order_id": order.seller_order_id,
        "awb": order.shipping_details.awb,
        "tracking_id": order.shipping_details.tracking_id,
        "status": order.status,
        "progress": delivery_progress(order.status),
        "current_location": order.workflow_tracking.current_location,
        "next_hub": next_stop,
        "estimated_delivery": order.shipping_details.estimated_delivery_date,
        "delivered_at": order.shipping_details.delivered_at,
        "tracking_history": list(reversed(order.tracking_history)),  # appended in time order
    }


def _dashboard_row(order: Order) -> dict[str, Any]:
    row = order.summary()
    row["priority_score"] = calculate_delivery_priority(order)
    row["delivery_agent_id"] = order.workflow_tracking.delivery_agent_id
    return row


async def get_hub_dashboard(store: LogisticsStore, hub_id: str) -> dict[str, Any]:
    """Orders currently held at or leaving the hub, grouped by stage."""
    hub = await store.get_hub(hub_id)
    if hub is None:
        raise HubNotFoundError(hub_id)

    orders = await store.list_orders(statuses=ORIGIN_HUB_STATUSES + DESTINATION_HUB_STATUSES)
    at_hub = [
        order
        for order in orders
        if (order.status in ORIGIN_HUB_STATUSES and order.workflow_tracking.origin_hub_id == hub_id)
        or (order.status in DESTINATION_HUB_STATUSES and order.workflow_tracking.destination_hub_id == hub_id)
    ]

    def rows(status: OrderStatus) -> list[dict[str, Any]]:
        selected = [o for o in at_hub if o.status == status]
        return sorted(
            (_dashboard_row(o) for o in selected),
            key=lambda row: row["priority_score"],
            reverse=True,
        )

    pending_dispatch = rows(OrderStatus.AT_ORIGIN_HUB)
    pending_delivery = rows(OrderStatus.AT_DESTINATION_HUB)
    out_for_delivery = rows(OrderStatus.OUT_FOR_DELIVERY)
    return {
        "hub": hub,
        "stats": {
            "total": len(at_hub),
            "pending_dispatch": len(pending_dispatch),
            "pending_delivery": len(pending_delivery),
            "out_for_delivery": len(out_for_delivery),
        },
        "pending_dispatch": pending_dispatch,
        "pending_delivery": pending_delivery,
        "out_for_delivery": out_for_delivery,
    }


async def get_agent_orders(
    store: LogisticsStore,
    agent_id: str,
    role: str = "all",
    status: OrderStatus | None = None,
) -> list[Order]:
    """
    Orders an agent is working on, newest first.

    ``role`` is ``pickup``, ``delivery`` or ``all``. Without an explicit status the
    pickup role sees ASSIGNED_PICKUP / PICKED_UP and the delivery role sees
    OUT_FOR_DELIVERY.
    """
    if role not in ("all", "pickup", "delivery"):
        raise OrderValidationError(f"Unknown agent role {role!r}", role=role)
    if await store.get_agent(agent_id) is None:
        raise AgentNotFoundError(agent_id)

    def matches(order: Order) -> bool:
        tracking = order.workflow_tracking
        as_pickup = tracking.pickup_agent_id == agent_id and (
            order.status == status if status else order.status in PICKUP_STATUSES
        )
        as_delivery = tracking.delivery_agent_id == agent_id and (
            order.status == status if status else order.status in DELIVERY_STATUSES
        )
        if role == "pickup":
            return as_pickup
        if role == "delivery":
            return as_delivery
        return as_pickup or as_delivery

    selected = [order for order in await store.list_orders() if matches(order)]
    selected.sort(key=lambda o: o.created_at, reverse=True)
    logger.debug(f"Agent {agent_id} ({role}) has {len(selected)} matching orders")
    return selected[:AGENT_ORDER_LIMIT]
