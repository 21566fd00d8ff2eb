"""
Order workflow engine: creation, status transitions and their side effects.

A transition is validated and committed under a per-order lock, with a
compare-and-swap on the stored status as the second line of defence. Agent and hub load
changes and notifications happen after the commit and never undo it.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any

from config.config import WorkflowConfig
from connectors.store import LogisticsStore
from models.api import (
    BulkItemResult,
    BulkUpdateResult,
    CreateOrderResult,
    OrderCreateRequest,
    WorkflowSnapshot,
)
from models.enums import AssignmentStatus, EventSource, OrderStatus, PaymentMethod
from models.events import LogisticsEvent
from models.order import Order, utcnow
from utils.event_bus import EventBus
from utils.identifiers import (
    generate_awb,
    generate_order_id,
    generate_seller_order_id,
    generate_tracking_id,
)

from .assignment import NetworkAssignmentResolver
from .exceptions import (
    AgentNotFoundError,
    CapacityExceededError,
    CustomerNotFoundError,
    DuplicateOrderError,
    InvalidTransitionError,
    LogisticsError,
    OrderNotFoundError,
)
from .insights import apply_insights
from .quotes import QuoteService
from .transitions import can_transition, is_terminal

logger = logging.getLogger(__name__)

ORDER_CREATED = "order.created"
STATUS_CHANGED = "order.status_changed"
SIDE_EFFECT_FAILED = "workflow.side_effect_failed"


class OrderWorkflowEngine:
    """
    Drives orders through the hand-off stages.

    Args:
        store: order, customer and network persistence.
        quote_service: pricing and delivery-time quotes (never fails).
        resolver: hub, vehicle and agent resolution.
        event_bus: optional bus for order events and side-effect failures.
        config: workflow settings.
    """

    def __init__(
        self,
        store: LogisticsStore,
        quote_service: QuoteService,
        resolver: NetworkAssignmentResolver,
        event_bus: EventBus | None = None,
        config: WorkflowConfig | None = None,
    ):
        self.store = store
        self.quote_service = quote_service
        self.resolver = resolver
        self.event_bus = event_bus
        self.config = config or WorkflowConfig()
        # Stores asyncio locks per order_id
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get_lock(self, order_id: str) -> asyncio.Lock:
        """Lock serializing transitions of one order."""
        return self._locks[order_id]

    def _forget_settled(self, order: Order) -> None:
        # terminal orders accept no further transitions
        if is_terminal(order.status):
            self._locks.pop(order.order_id, None)

    # ---------------------------------------------------------------- create

    async def create_order(self, customer_id: str, request: OrderCreateRequest) -> CreateOrderResult:
        """
        Validate, price, route and persist a new order in PENDING.

        Raises:
            CustomerNotFoundError: unknown customer.
            DuplicateOrderError: the supplied seller order id is taken.
        """
        customer = await self.store.get_customer(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)

        supplied_id = request.seller_order_id
        if supplied_id and await self.store.seller_order_id_exists(supplied_id):
            raise DuplicateOrderError(supplied_id)

        order = Order(
            order_id=generate_order_id(),
            seller_order_id=supplied_id or generate_seller_order_id(),
            customer_id=customer_id,
            order_type=request.order_type,
            priority=request.priority,
            delivery_type=request.delivery_type,
            pickup_address=request.pickup_address.model_copy(deep=True),
            recipient_details=request.recipient_details.model_copy(deep=True),
            package_details=request.package_details.model_copy(deep=True),
            payment_details=request.payment_details.model_copy(deep=True),
        )
        order.package_details.ensure_volumetric_weight()
        payment = order.payment_details
        if payment.method == PaymentMethod.COD and payment.cod_amount is None:
            payment.cod_amount = payment.total_value
        order.shipping_details.awb = generate_awb()
        order.shipping_details.tracking_id = generate_tracking_id()

        pricing, time_estimate = await self.quote_service.estimate_for_order(order)
        order.shipping_details.rate = pricing
        order.shipping_details.estimated_delivery_date = time_estimate.estimated_delivery_date
        apply_insights(order, pricing, time_estimate)

        route_plan = await self.resolver.plan_order(order, time_estimate)
        if route_plan.unassigned_reason:
            logger.warning(f"Order {order.order_id} created unassigned: {route_plan.unassigned_reason}")

        order.record_status(
            OrderStatus.PENDING,
            location=order.pickup_address.label(),
            remarks="Order created",
            at=order.created_at,
        )
        stored = await self._insert_with_fresh_seller_id(order, generated=supplied_id is None)
        await self.store.append_customer_order(customer_id, stored.order_id)

        logger.info(
            f"Order {stored.order_id} ({stored.seller_order_id}) created for customer {customer_id}: "
            f"{stored.pickup_address.label()} -> {stored.recipient_details.address.label()}"
        )
        await self._publish(ORDER_CREATED, self._event_payload(stored, previous=None))
        return CreateOrderResult(
            order=stored,
            pricing=pricing,
            time_estimation=time_estimate,
            route_plan=route_plan,
        )

    async def _insert_with_fresh_seller_id(self, order: Order, generated: bool) -> Order:
        attempts = self.config.seller_id_retry_limit if generated else 1
        for attempt in range(1, attempts + 1):
            try:
                return await self.store.insert_order(order)
            except DuplicateOrderError:
                if attempt == attempts:
                    raise
                order.seller_order_id = generate_seller_order_id()
                logger.debug(f"Seller order id collision, retrying with {order.seller_order_id}")
        raise DuplicateOrderError(order.seller_order_id)

    # ---------------------------------------------------------------- advance

    async def advance_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        location: str | None = None,
        remarks: str = "",
        actor_id: str | None = None,
    ) -> Order:
        """
        Move an order to ``new_status``.

        Resubmitting the current status returns the order unchanged. The transition
        is committed before any agent bookkeeping runs.

        Raises:
            OrderNotFoundError, InvalidTransitionError, ConcurrentUpdateError.
        """
        async with self.get_lock(order_id):
            order = await self.store.get_order(order_id)
            if order is None:
                self._locks.pop(order_id, None)
                raise OrderNotFoundError(order_id)
            previous = order.status
            if previous == new_status:
                logger.debug(f"Order {order_id} already {new_status.value}; nothing to do")
                self._forget_settled(order)
                return order
            if not can_transition(previous, new_status):
                self._forget_settled(order)
                raise InvalidTransitionError(order_id, previous.value, new_status.value)

            now = utcnow()
            where = location or order.workflow_tracking.current_location.description
            order.record_status(new_status, location=where, remarks=remarks, handled_by=actor_id, at=now)
            self._stamp_shipping(order, new_status)
            self._move_location(order, new_status, where)

            committed = await self.store.replace_order(order, expected_status=previous)
            logger.info(f"Order {order_id} moved {previous.value} -> {new_status.value}")

            committed = await self._run_side_effects(committed, previous, new_status)
            self._forget_settled(committed)

        await self._publish(STATUS_CHANGED, self._event_payload(committed, previous=previous, remarks=remarks))
        return committed

    @staticmethod
    def _stamp_shipping(order: Order, status: OrderStatus) -> None:
        shipping = order.shipping_details
        stamp = order.updated_at
        if status == OrderStatus.PICKED_UP and shipping.shipped_at is None:
            shipping.shipped_at = stamp
        elif status == OrderStatus.OUT_FOR_DELIVERY:
            shipping.delivery_attempts += 1
        elif status == OrderStatus.DELIVERED:
            shipping.delivered_at = stamp
            shipping.actual_delivery_date = stamp

    @staticmethod
    def _move_location(order: Order, status: OrderStatus, description: str | None) -> None:
        tracking = order.workflow_tracking
        current = tracking.current_location
        current.description = description
        current.last_updated = order.updated_at

        arrived_at = None
        if status == OrderStatus.AT_ORIGIN_HUB:
            arrived_at = tracking.origin_hub_id
        elif status == OrderStatus.AT_DESTINATION_HUB:
            arrived_at = tracking.destination_hub_id
        if arrived_at:
            current.hub_id = arrived_at
            current.agent_id = None
            for stop in order.route_optimization.transit_route:
                if stop.hub_id == arrived_at and stop.actual_arrival is None:
                    stop.actual_arrival = order.updated_at
                    stop.status = "ARRIVED"
                    break
        elif status == OrderStatus.PICKED_UP:
            current.agent_id = tracking.pickup_agent_id
        elif status == OrderStatus.OUT_FOR_DELIVERY:
            current.agent_id = tracking.delivery_agent_id

    # ----------------------------------------------------------- side effects

    async def _run_side_effects(self, order: Order, previous: OrderStatus, status: OrderStatus) -> Order:
        """Agent and hub bookkeeping after a committed transition; failures are reported, not raised."""
        for step in (self._track_agents, self._track_hub_load):
            try:
                order = await step(order, previous, status)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    f"Side effect for order {order.order_id} ({previous.value} -> {status.value}) failed: {exc}",
                    exc_info=not isinstance(exc, LogisticsError),
                )
                await self._publish(
                    SIDE_EFFECT_FAILED,
                    {
                        "order_id": order.order_id,
                        "status": status.value,
                        "previous_status": previous.value,
                        "error": str(exc),
                        "error_code": getattr(exc, "error_code", "INTERNAL_ERROR"),
                    },
                )
        return order

    async def _track_agents(self, order: Order, previous: OrderStatus, status: OrderStatus) -> Order:
        tracking = order.workflow_tracking
        if status == OrderStatus.ASSIGNED_PICKUP:
            order = await self._bind_pickup_agent(order)
        elif status == OrderStatus.PICKED_UP:
            if previous == OrderStatus.ASSIGNED_PICKUP and tracking.pickup_agent_id:
                await self.store.adjust_agent_load(tracking.pickup_agent_id, -1)
        elif status == OrderStatus.AT_DESTINATION_HUB:
            if tracking.delivery_agent_id is None:
                order = await self._bind_delivery_agent(order)
        elif status == OrderStatus.DELIVERED:
            if tracking.delivery_agent_id:
                await self.store.adjust_agent_load(tracking.delivery_agent_id, -1)
        elif status in (OrderStatus.CANCELLED, OrderStatus.RETURNED):
            if previous == OrderStatus.ASSIGNED_PICKUP and tracking.pickup_agent_id:
                await self.store.adjust_agent_load(tracking.pickup_agent_id, -1)
            if tracking.delivery_agent_id:
                await self.store.adjust_agent_load(tracking.delivery_agent_id, -1)
        return order

    async def _track_hub_load(self, order: Order, previous: OrderStatus, status: OrderStatus) -> Order:
        """An order counts against a hub while it sits there."""
        tracking = order.workflow_tracking
        held_at = {
            OrderStatus.AT_ORIGIN_HUB: tracking.origin_hub_id,
            OrderStatus.AT_DESTINATION_HUB: tracking.destination_hub_id,
        }
        left = held_at.get(previous)
        if left:
            await self.store.adjust_hub_load(left, -1)
        arrived = held_at.get(status)
        if arrived:
            await self.store.adjust_hub_load(arrived, 1)
        return order

    async def _bind_pickup_agent(self, order: Order) -> Order:
        hub_id = order.workflow_tracking.origin_hub_id
        if hub_id is None:
            logger.warning(f"Order {order.order_id} has no origin hub; pickup agent not assigned")
            return order
        agent = await self.resolver.assign_agent(hub_id, None)
        if agent is None:
            return order
        await self.store.adjust_agent_load(agent.agent_id, 1)

        def bind(target: Order) -> None:
            target.workflow_tracking.pickup_agent_id = agent.agent_id

        logger.info(f"Pickup agent {agent.agent_id} assigned to order {order.order_id}")
        return await self.store.update_order(order.order_id, bind)

    async def _bind_delivery_agent(self, order: Order) -> Order:
        """
        Reserve the agent planned at creation, or the least-loaded agent at the
        destination hub when the planned one is gone or full.
        """
        route = order.route_optimization
        agent_id = route.delivery_agent_id
        if agent_id is not None:
            try:
                await self.store.adjust_agent_load(agent_id, 1)
            except (AgentNotFoundError, CapacityExceededError) as exc:
                logger.info(f"Planned delivery agent {agent_id} unavailable for order {order.order_id}: {exc}")
                agent_id = None
        if agent_id is None:
            hub_id = order.workflow_tracking.destination_hub_id
            if hub_id is None:
                logger.warning(f"Order {order.order_id} has no destination hub; delivery agent not assigned")
                return order
            agent = await self.resolver.assign_agent(hub_id, route.delivery_area)
            if agent is None:
                logger.warning(f"No delivery agent with spare capacity for order {order.order_id} at {hub_id}")
                return order
            agent_id = agent.agent_id
            await self.store.adjust_agent_load(agent_id, 1)

        def bind(target: Order) -> None:
            target.workflow_tracking.delivery_agent_id = agent_id
            target.route_optimization.delivery_agent_id = agent_id
            target.route_optimization.assignment_status = AssignmentStatus.ASSIGNED
            target.route_optimization.unassigned_reason = None

        logger.info(f"Delivery agent {agent_id} assigned to order {order.order_id}")
        return await self.store.update_order(order.order_id, bind)

    # ------------------------------------------------------------------ bulk

    async def bulk_advance_status(
        self,
        order_ids: list[str],
        new_status: OrderStatus,
        location: str | None = None,
        remarks: str = "",
        actor_id: str | None = None,
    ) -> BulkUpdateResult:
        """Advance each order independently; one failure never affects the others."""

        async def advance_one(index: int, order_id: str) -> BulkItemResult:
            try:
                order = await self.advance_status(order_id, new_status, location, remarks, actor_id)
            except LogisticsError as exc:
                return BulkItemResult(
                    index=index, order_id=order_id, success=False, error_code=exc.error_code, reason=exc.message
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception(f"Unexpected error advancing order {order_id}")
                return BulkItemResult(
                    index=index, order_id=order_id, success=False, error_code="INTERNAL_ERROR", reason=str(exc)
                )
            return BulkItemResult(index=index, order_id=order_id, success=True, status=order.status)

        results = await asyncio.gather(*(advance_one(i, oid) for i, oid in enumerate(order_ids)))
        successful = sum(1 for r in results if r.success)
        logger.info(f"Bulk update to {new_status.value}: {successful}/{len(results)} succeeded")
        return BulkUpdateResult(
            total=len(results),
            successful=successful,
            failed=len(results) - successful,
            results=list(results),
        )

    # ----------------------------------------------------------------- reads

    async def get_order(self, order_id: str) -> Order:
        order = await self.store.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def get_workflow_status(self, order_id: str) -> WorkflowSnapshot:
        order = await self.get_order(order_id)
        tracking = order.workflow_tracking
        return WorkflowSnapshot(
            order_id=order.order_id,
            seller_order_id=order.seller_order_id,
            status=order.status,
            pickup_agent_id=tracking.pickup_agent_id,
            delivery_agent_id=tracking.delivery_agent_id,
            origin_hub_id=tracking.origin_hub_id,
            destination_hub_id=tracking.destination_hub_id,
            current_location=tracking.current_location,
            status_history=tracking.status_history,
            updated_at=order.updated_at,
        )

    # ---------------------------------------------------------------- events

    @staticmethod
    def _event_payload(order: Order, previous: OrderStatus | None, remarks: str = "") -> dict[str, Any]:
        recipient = order.recipient_details
        last = order.last_status_entry
        return {
            "order_id": order.order_id,
            "seller_order_id": order.seller_order_id,
            "customer_id": order.customer_id,
            "previous_status": previous.value if previous else None,
            "status": order.status.value,
            "location": last.location if last else None,
            "remarks": remarks,
            "recipient_phone": recipient.phone,
            "recipient_email": recipient.email,
            "pickup_agent_id": order.workflow_tracking.pickup_agent_id,
            "delivery_agent_id": order.workflow_tracking.delivery_agent_id,
        }

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.publish(
            LogisticsEvent(event_type=event_type, payload=payload, source=EventSource.WORKFLOW)
        )
